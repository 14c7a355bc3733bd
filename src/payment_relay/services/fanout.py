"""Fan-out of a transaction status change to the owner's active endpoints."""
from __future__ import annotations

import json
from typing import List
from uuid import UUID

import structlog

from payment_relay.clock import Clock, utc_now
from payment_relay.domain.enums import TransactionStatus
from payment_relay.domain.events import event_for_status
from payment_relay.domain.models import TransactionWithEndpoints, WebhookDelivery, WebhookPayload
from payment_relay.repositories.protocols import DeliveryStore, TransactionStore
from payment_relay.services.queue import DispatchQueue

logger = structlog.get_logger(__name__)


def serialize_payload(payload: WebhookPayload) -> str:
    """Compact JSON; this exact text is stored, signed and sent."""
    return json.dumps(
        payload.model_dump(mode="json", by_alias=True),
        separators=(",", ":"),
        ensure_ascii=False,
    )


class WebhookFanout:
    def __init__(
        self,
        transactions: TransactionStore,
        deliveries: DeliveryStore,
        queue: DispatchQueue,
        *,
        clock: Clock = utc_now,
    ):
        self._transactions = transactions
        self._deliveries = deliveries
        self._queue = queue
        self._clock = clock

    def build_payload(
        self, transaction: TransactionWithEndpoints, status: TransactionStatus
    ) -> WebhookPayload:
        """Payload for ``status``, the status being announced.

        ``status`` comes from the trigger and not from the stored row, so the
        payload always agrees with its event even when the row is read before
        the status change is committed.
        """
        return WebhookPayload(
            event=event_for_status(status),
            transaction_id=str(transaction.id),
            user_id=str(transaction.owner_id),
            status=status,
            amount=str(transaction.amount),
            type=transaction.type.value,
            timestamp=self._clock().isoformat(),
        )

    async def trigger_for_transaction(
        self, transaction_id: UUID, new_status: TransactionStatus | str
    ) -> List[WebhookDelivery]:
        """Create one delivery per active endpoint and queue each for dispatch.

        Returns once every delivery record is stored; the HTTP attempts run
        in the background.
        """
        status = TransactionStatus(new_status)
        transaction = await self._transactions.get_with_active_endpoints(transaction_id)
        if transaction is None:
            logger.info("webhook fan-out skipped, transaction not found", transaction_id=str(transaction_id))
            return []
        if not transaction.active_endpoints:
            return []

        payload = self.build_payload(transaction, status)
        body = serialize_payload(payload)

        created: List[WebhookDelivery] = []
        for endpoint in transaction.active_endpoints:
            try:
                delivery = await self._deliveries.create(
                    transaction_id=transaction.id,
                    webhook_endpoint_id=endpoint.id,
                    event=payload.event,
                    payload=body,
                    next_retry_at=self._clock(),
                )
            except Exception:
                logger.exception(
                    "webhook delivery could not be created",
                    transaction_id=str(transaction.id),
                    endpoint_id=str(endpoint.id),
                )
                continue
            created.append(delivery)
            self._queue.submit(delivery.id)

        logger.info(
            "webhook fan-out",
            transaction_id=str(transaction.id),
            webhook_event=payload.event,
            deliveries=len(created),
        )
        return created
