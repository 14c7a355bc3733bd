"""Webhook endpoint management and delivery history for merchants."""
from __future__ import annotations

import secrets
from typing import List, Tuple
from uuid import UUID

import structlog

from payment_relay.core.exceptions import NotFoundError
from payment_relay.domain.enums import WebhookDeliveryStatus
from payment_relay.domain.models import WebhookDelivery, WebhookEndpoint
from payment_relay.repositories.protocols import DeliveryHistoryStore, EndpointStore

logger = structlog.get_logger(__name__)

MAX_HISTORY_PAGE = 100


class WebhookService:
    def __init__(
        self,
        endpoint_repository: EndpointStore,
        delivery_repository: DeliveryHistoryStore,
        *,
        secret_bytes: int = 32,
    ):
        self._endpoints = endpoint_repository
        self._deliveries = delivery_repository
        self._secret_bytes = secret_bytes

    async def register_endpoint(self, *, owner_id: UUID, url: str) -> WebhookEndpoint:
        """Register an endpoint with a freshly generated signing secret."""
        endpoint = await self._endpoints.create(
            owner_id=owner_id,
            url=url,
            secret=secrets.token_hex(self._secret_bytes),
        )
        logger.info("webhook endpoint registered", endpoint_id=str(endpoint.id), owner_id=str(owner_id))
        return endpoint

    async def list_endpoints(self, owner_id: UUID) -> List[WebhookEndpoint]:
        return await self._endpoints.list_by_owner(owner_id)

    async def update_endpoint(
        self,
        owner_id: UUID,
        endpoint_id: UUID,
        *,
        url: str | None = None,
        is_active: bool | None = None,
    ) -> WebhookEndpoint:
        return await self._endpoints.update(owner_id, endpoint_id, url=url, is_active=is_active)

    async def delete_endpoint(self, owner_id: UUID, endpoint_id: UUID) -> None:
        """Hard delete; past deliveries keep their history with a null endpoint."""
        await self._endpoints.delete(owner_id, endpoint_id)
        logger.info("webhook endpoint deleted", endpoint_id=str(endpoint_id), owner_id=str(owner_id))

    async def list_deliveries(
        self,
        owner_id: UUID,
        *,
        endpoint_id: UUID | None = None,
        status: WebhookDeliveryStatus | str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[WebhookDelivery], int]:
        if endpoint_id is not None:
            endpoint = await self._endpoints.get_for_owner(owner_id, endpoint_id)
            if endpoint is None:
                raise NotFoundError("Webhook endpoint not found")
        limit = min(max(limit, 1), MAX_HISTORY_PAGE)
        offset = max(offset, 0)
        return await self._deliveries.list_for_owner(
            owner_id,
            endpoint_id=endpoint_id,
            status=WebhookDeliveryStatus(status) if status is not None else None,
            limit=limit,
            offset=offset,
        )

    async def get_delivery(self, owner_id: UUID, delivery_id: UUID) -> WebhookDelivery:
        delivery = await self._deliveries.get_for_owner(owner_id, delivery_id)
        if delivery is None:
            raise NotFoundError("Webhook delivery not found")
        return delivery
