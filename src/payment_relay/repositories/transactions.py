"""Read access to transactions owned by the payment-processing collaborator."""
from __future__ import annotations

from uuid import UUID

from asyncpg import Pool  # type: ignore[import-untyped]

from payment_relay.domain.models import TransactionWithEndpoints, WebhookEndpoint
from payment_relay.repositories.base import BaseRepository


class TransactionRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    async def get_with_active_endpoints(
        self, transaction_id: UUID
    ) -> TransactionWithEndpoints | None:
        async with self._pool.acquire() as conn:
            record = await conn.fetchrow(
                "SELECT * FROM transactions WHERE id = $1",
                transaction_id,
            )
            if record is None:
                return None
            endpoints = await conn.fetch(
                """
                SELECT *
                FROM webhook_endpoints
                WHERE owner_id = $1
                  AND is_active = true
                ORDER BY created_at ASC
                """,
                record["owner_id"],
            )
        return TransactionWithEndpoints.model_validate(
            {
                **dict(record),
                "active_endpoints": [WebhookEndpoint.model_validate(dict(e)) for e in endpoints],
            }
        )
