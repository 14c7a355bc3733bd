"""Webhook repositories (merchant endpoints + delivery records)."""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Tuple
from uuid import UUID

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from payment_relay.core.exceptions import NotFoundError
from payment_relay.domain.enums import WebhookDeliveryStatus
from payment_relay.domain.models import (
    DeliveryOutcome,
    DeliveryWithEndpoint,
    WebhookDelivery,
    WebhookEndpoint,
)
from payment_relay.repositories.base import BaseRepository

_ENDPOINT_PREFIX = "endpoint__"


class WebhookEndpointRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> WebhookEndpoint:
        return WebhookEndpoint.model_validate(dict(record))

    async def create(self, *, owner_id: UUID, url: str, secret: str) -> WebhookEndpoint:
        record = await self._fetchrow(
            """
            INSERT INTO webhook_endpoints (owner_id, url, secret, is_active)
            VALUES ($1, $2, $3, true)
            RETURNING *
            """,
            owner_id,
            url,
            secret,
        )
        assert record is not None
        return self._to_model(record)

    async def get_for_owner(self, owner_id: UUID, endpoint_id: UUID) -> WebhookEndpoint | None:
        record = await self._fetchrow(
            "SELECT * FROM webhook_endpoints WHERE owner_id = $1 AND id = $2",
            owner_id,
            endpoint_id,
        )
        return self._to_model(record) if record is not None else None

    async def list_by_owner(self, owner_id: UUID) -> List[WebhookEndpoint]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhook_endpoints
            WHERE owner_id = $1
            ORDER BY created_at DESC
            """,
            owner_id,
        )
        return [self._to_model(r) for r in records]

    async def list_active_for_owner(self, owner_id: UUID) -> List[WebhookEndpoint]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhook_endpoints
            WHERE owner_id = $1
              AND is_active = true
            ORDER BY created_at ASC
            """,
            owner_id,
        )
        return [self._to_model(r) for r in records]

    async def update(
        self,
        owner_id: UUID,
        endpoint_id: UUID,
        *,
        url: str | None = None,
        is_active: bool | None = None,
    ) -> WebhookEndpoint:
        # secret is immutable after creation
        record = await self._fetchrow(
            """
            UPDATE webhook_endpoints
            SET url = COALESCE($3, url),
                is_active = COALESCE($4, is_active),
                updated_at = now()
            WHERE owner_id = $1 AND id = $2
            RETURNING *
            """,
            owner_id,
            endpoint_id,
            url,
            is_active,
        )
        if record is None:
            raise NotFoundError("Webhook endpoint not found")
        return self._to_model(record)

    async def delete(self, owner_id: UUID, endpoint_id: UUID) -> None:
        deleted = await self._touched(
            """
            DELETE FROM webhook_endpoints
            WHERE owner_id = $1 AND id = $2
            RETURNING id
            """,
            owner_id,
            endpoint_id,
        )
        if not deleted:
            raise NotFoundError("Webhook endpoint not found")


class WebhookDeliveryRepository(BaseRepository):
    def __init__(self, pool: Pool):
        super().__init__(pool)

    @staticmethod
    def _to_model(record: Record) -> WebhookDelivery:
        return WebhookDelivery.model_validate(dict(record))

    @staticmethod
    def _to_joined_model(record: Record) -> DeliveryWithEndpoint:
        payload: dict[str, Any] = {}
        endpoint: dict[str, Any] = {}
        for key, value in dict(record).items():
            if key.startswith(_ENDPOINT_PREFIX):
                endpoint[key[len(_ENDPOINT_PREFIX):]] = value
            else:
                payload[key] = value
        payload["endpoint"] = (
            WebhookEndpoint.model_validate(endpoint) if endpoint.get("id") is not None else None
        )
        return DeliveryWithEndpoint.model_validate(payload)

    async def create(
        self,
        *,
        transaction_id: UUID,
        webhook_endpoint_id: UUID,
        event: str,
        payload: str,
        next_retry_at: datetime,
    ) -> WebhookDelivery:
        record = await self._fetchrow(
            """
            INSERT INTO webhook_deliveries (
                transaction_id,
                webhook_endpoint_id,
                event,
                payload,
                status,
                attempts,
                next_retry_at
            )
            VALUES ($1, $2, $3, $4, 'PENDING', 0, $5)
            RETURNING *
            """,
            transaction_id,
            webhook_endpoint_id,
            event,
            payload,
            next_retry_at,
        )
        assert record is not None
        return self._to_model(record)

    async def get_with_endpoint(self, delivery_id: UUID) -> DeliveryWithEndpoint | None:
        # Endpoint columns are read fresh on every call so a toggled
        # is_active flag takes effect for the next attempt.
        record = await self._fetchrow(
            f"""
            SELECT d.*,
                   e.id AS {_ENDPOINT_PREFIX}id,
                   e.owner_id AS {_ENDPOINT_PREFIX}owner_id,
                   e.url AS {_ENDPOINT_PREFIX}url,
                   e.secret AS {_ENDPOINT_PREFIX}secret,
                   e.is_active AS {_ENDPOINT_PREFIX}is_active,
                   e.created_at AS {_ENDPOINT_PREFIX}created_at,
                   e.updated_at AS {_ENDPOINT_PREFIX}updated_at
            FROM webhook_deliveries d
            LEFT JOIN webhook_endpoints e ON e.id = d.webhook_endpoint_id
            WHERE d.id = $1
            """,
            delivery_id,
        )
        return self._to_joined_model(record) if record is not None else None

    async def update_outcome(self, delivery_id: UUID, outcome: DeliveryOutcome) -> bool:
        # Single statement: the whole outcome lands or nothing does. SUCCESS
        # rows are terminal and attempts never move backwards.
        return await self._touched(
            """
            UPDATE webhook_deliveries
            SET status = $2,
                attempts = $3,
                last_attempt_at = $4,
                next_retry_at = $5,
                response_status = $6,
                response_body = $7,
                error_message = $8,
                updated_at = now()
            WHERE id = $1
              AND status <> 'SUCCESS'
              AND attempts < $3
            RETURNING id
            """,
            delivery_id,
            outcome.status.value,
            outcome.attempts,
            outcome.last_attempt_at,
            outcome.next_retry_at,
            outcome.response_status,
            outcome.response_body,
            outcome.error_message,
        )

    async def list_due_for_retry(
        self, now: datetime, *, max_attempts: int, limit: int
    ) -> List[WebhookDelivery]:
        # Deliveries of deleted or inactive endpoints are never due.
        records = await self._fetch(
            """
            SELECT d.*
            FROM webhook_deliveries d
            JOIN webhook_endpoints e ON e.id = d.webhook_endpoint_id
            WHERE d.status = 'FAILED'
              AND d.next_retry_at <= $1
              AND d.attempts < $2
              AND e.is_active = true
            ORDER BY d.next_retry_at ASC
            LIMIT $3
            """,
            now,
            max_attempts,
            limit,
        )
        return [self._to_model(r) for r in records]

    async def mark_retrying(self, delivery_id: UUID) -> bool:
        return await self._touched(
            """
            UPDATE webhook_deliveries
            SET status = 'RETRYING',
                updated_at = now()
            WHERE id = $1
              AND status = 'FAILED'
            RETURNING id
            """,
            delivery_id,
        )

    async def release_claim(self, delivery_id: UUID) -> bool:
        """Undo :meth:`mark_retrying` for a delivery that was not attempted."""
        return await self._touched(
            """
            UPDATE webhook_deliveries
            SET status = 'FAILED',
                updated_at = now()
            WHERE id = $1
              AND status = 'RETRYING'
            RETURNING id
            """,
            delivery_id,
        )

    async def reclaim_stuck(self, cutoff: datetime, now: datetime) -> int:
        """Return stuck RETRYING/PENDING deliveries to FAILED so the sweep retries them.

        Attempts are left untouched, so the attempt cap still applies. Rows
        of deleted or inactive endpoints stay where they are.
        """
        result = await self._execute(
            """
            UPDATE webhook_deliveries AS d
            SET status = 'FAILED',
                next_retry_at = $2,
                updated_at = now()
            FROM webhook_endpoints AS e
            WHERE e.id = d.webhook_endpoint_id
              AND e.is_active = true
              AND (
                (d.status = 'RETRYING' AND d.updated_at < $1)
                OR (d.status = 'PENDING' AND d.last_attempt_at IS NULL AND d.created_at < $1)
              )
            """,
            cutoff,
            now,
        )
        return self._affected(result)

    async def list_for_owner(
        self,
        owner_id: UUID,
        *,
        endpoint_id: UUID | None = None,
        status: WebhookDeliveryStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[WebhookDelivery], int]:
        # Ownership goes through the transaction so history survives endpoint deletion.
        where = ["t.owner_id = $1"]
        values: list[Any] = [owner_id]
        idx = 2
        if endpoint_id is not None:
            where.append(f"d.webhook_endpoint_id = ${idx}")
            values.append(endpoint_id)
            idx += 1
        if status is not None:
            where.append(f"d.status = ${idx}")
            values.append(WebhookDeliveryStatus(status).value)
            idx += 1
        where_sql = " AND ".join(where)
        query = f"""
            SELECT d.*,
                   COUNT(*) OVER() AS total_count
            FROM webhook_deliveries d
            JOIN transactions t ON t.id = d.transaction_id
            WHERE {where_sql}
            ORDER BY d.created_at DESC
            LIMIT ${idx} OFFSET ${idx + 1}
        """
        values.extend([limit, offset])
        records = await self._fetch(query, *values)
        items: List[WebhookDelivery] = []
        total: int | None = None
        for rec in records:
            rec_dict = dict(rec)
            total_value = rec_dict.pop("total_count", None)
            if total_value is not None:
                total = int(total_value)
            items.append(WebhookDelivery.model_validate(rec_dict))
        if total is None:
            total = await self._count_for_owner(where_sql, values[:-2])
        return items, total

    async def _count_for_owner(self, where_sql: str, values: list[Any]) -> int:
        total = await self._fetchval(
            f"""
            SELECT COUNT(*)
            FROM webhook_deliveries d
            JOIN transactions t ON t.id = d.transaction_id
            WHERE {where_sql}
            """,
            *values,
        )
        return int(total or 0)

    async def get_for_owner(self, owner_id: UUID, delivery_id: UUID) -> WebhookDelivery | None:
        record = await self._fetchrow(
            """
            SELECT d.*
            FROM webhook_deliveries d
            JOIN transactions t ON t.id = d.transaction_id
            WHERE t.owner_id = $1 AND d.id = $2
            """,
            owner_id,
            delivery_id,
        )
        return self._to_model(record) if record is not None else None
