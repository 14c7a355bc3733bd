"""Composition of the webhook delivery engine."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import List
from uuid import UUID

from aiohttp import ClientSession
from asyncpg import Pool  # type: ignore[import-untyped]

from payment_relay.clock import Clock, utc_now
from payment_relay.domain.enums import TransactionStatus
from payment_relay.domain.models import WebhookDelivery
from payment_relay.repositories import TransactionRepository, WebhookDeliveryRepository
from payment_relay.repositories.protocols import DeliveryStore, TransactionStore
from payment_relay.services.dispatcher import WebhookDispatcher
from payment_relay.services.fanout import WebhookFanout
from payment_relay.services.queue import DispatchQueue
from payment_relay.services.sweeper import RetrySweeper, SweepResult
from payment_relay.settings import Settings


class WebhookEngine:
    """Entry points the rest of the system uses to drive webhook delivery.

    ``trigger_for_transaction`` is called by the transaction-processing side on
    every status change; ``sweep`` and ``reclaim_stuck`` are driven by the
    host's scheduler.
    """

    def __init__(
        self,
        transactions: TransactionStore,
        deliveries: DeliveryStore,
        session: ClientSession,
        settings: Settings,
        *,
        clock: Clock = utc_now,
    ):
        self._deliveries = deliveries
        self._clock = clock
        self._stuck_after = timedelta(minutes=settings.webhook_stuck_minutes)
        self.dispatcher = WebhookDispatcher(
            deliveries,
            session,
            timeout_seconds=settings.webhook_request_timeout_seconds,
            max_attempts=settings.webhook_max_attempts,
            response_body_limit=settings.webhook_response_body_limit,
            error_message_limit=settings.webhook_error_message_limit,
            delays=settings.webhook_retry_delays_seconds,
            clock=clock,
        )
        self.queue = DispatchQueue(
            self.dispatcher, max_concurrency=settings.webhook_dispatch_max_concurrency
        )
        self.fanout = WebhookFanout(transactions, deliveries, self.queue, clock=clock)
        self.sweeper = RetrySweeper(
            deliveries,
            self.dispatcher,
            max_attempts=settings.webhook_max_attempts,
            batch_size=settings.webhook_retry_batch_size,
            clock=clock,
        )

    async def trigger_for_transaction(
        self, transaction_id: UUID, status: TransactionStatus | str
    ) -> List[WebhookDelivery]:
        return await self.fanout.trigger_for_transaction(transaction_id, status)

    async def dispatch(self, delivery_id: UUID) -> bool:
        return await self.dispatcher.dispatch(delivery_id)

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        return await self.sweeper.sweep(now)

    async def reclaim_stuck(self, now: datetime | None = None) -> int:
        now = now or self._clock()
        return await self._deliveries.reclaim_stuck(now - self._stuck_after, now)

    async def drain(self) -> None:
        await self.queue.drain()


def build_engine(pool: Pool, session: ClientSession, settings: Settings) -> WebhookEngine:
    """Wire the engine to the asyncpg repositories."""
    return WebhookEngine(
        TransactionRepository(pool),
        WebhookDeliveryRepository(pool),
        session,
        settings,
    )
