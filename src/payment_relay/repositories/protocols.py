"""Persistence contract consumed by the delivery engine.

The asyncpg repositories in this package implement these protocols; tests
substitute in-memory stores.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Protocol, Tuple
from uuid import UUID

from payment_relay.domain.enums import WebhookDeliveryStatus
from payment_relay.domain.models import (
    DeliveryOutcome,
    DeliveryWithEndpoint,
    TransactionWithEndpoints,
    WebhookDelivery,
    WebhookEndpoint,
)


class TransactionStore(Protocol):
    async def get_with_active_endpoints(
        self, transaction_id: UUID
    ) -> TransactionWithEndpoints | None: ...


class DeliveryStore(Protocol):
    async def create(
        self,
        *,
        transaction_id: UUID,
        webhook_endpoint_id: UUID,
        event: str,
        payload: str,
        next_retry_at: datetime,
    ) -> WebhookDelivery: ...

    async def get_with_endpoint(self, delivery_id: UUID) -> DeliveryWithEndpoint | None: ...

    async def update_outcome(self, delivery_id: UUID, outcome: DeliveryOutcome) -> bool:
        """Write one attempt's outcome; False if missing, already SUCCESS or not newer."""
        ...

    async def list_due_for_retry(
        self, now: datetime, *, max_attempts: int, limit: int
    ) -> List[WebhookDelivery]: ...

    async def mark_retrying(self, delivery_id: UUID) -> bool:
        """Claim a FAILED record for re-dispatch; False if someone else got it."""
        ...

    async def release_claim(self, delivery_id: UUID) -> bool:
        """Put a claimed (RETRYING) record back to FAILED without an attempt."""
        ...

    async def reclaim_stuck(self, cutoff: datetime, now: datetime) -> int: ...


class DeliveryHistoryStore(Protocol):
    async def list_for_owner(
        self,
        owner_id: UUID,
        *,
        endpoint_id: UUID | None = None,
        status: WebhookDeliveryStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[WebhookDelivery], int]: ...

    async def get_for_owner(self, owner_id: UUID, delivery_id: UUID) -> WebhookDelivery | None: ...


class EndpointStore(Protocol):
    async def create(self, *, owner_id: UUID, url: str, secret: str) -> WebhookEndpoint: ...

    async def get_for_owner(self, owner_id: UUID, endpoint_id: UUID) -> WebhookEndpoint | None: ...

    async def list_by_owner(self, owner_id: UUID) -> List[WebhookEndpoint]: ...

    async def list_active_for_owner(self, owner_id: UUID) -> List[WebhookEndpoint]: ...

    async def update(
        self,
        owner_id: UUID,
        endpoint_id: UUID,
        *,
        url: str | None = None,
        is_active: bool | None = None,
    ) -> WebhookEndpoint: ...

    async def delete(self, owner_id: UUID, endpoint_id: UUID) -> None: ...
