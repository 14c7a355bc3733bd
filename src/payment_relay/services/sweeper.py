"""Retry sweep over failed deliveries that are due again."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog

from payment_relay.clock import Clock, utc_now
from payment_relay.repositories.protocols import DeliveryStore
from payment_relay.services.queue import Dispatcher

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SweepResult:
    selected: int = 0
    claimed: int = 0
    dispatched: int = 0
    skipped: int = 0
    errors: int = 0

    def summary(self) -> str | None:
        if not self.selected:
            return None
        return (
            f"selected={self.selected} claimed={self.claimed} "
            f"dispatched={self.dispatched} skipped={self.skipped} errors={self.errors}"
        )


class RetrySweeper:
    """One sweep = query due FAILED records, claim each, re-dispatch in order.

    The FAILED -> RETRYING claim keeps an overlapping sweep from picking the
    same record; dispatch then writes the new FAILED or SUCCESS outcome. A
    claimed record the dispatcher declines (endpoint deactivated or deleted
    since the query) goes back to FAILED with its schedule untouched.
    """

    def __init__(
        self,
        deliveries: DeliveryStore,
        dispatcher: Dispatcher,
        *,
        max_attempts: int = 5,
        batch_size: int = 100,
        clock: Clock = utc_now,
    ):
        self._deliveries = deliveries
        self._dispatcher = dispatcher
        self._max_attempts = max_attempts
        self._batch_size = batch_size
        self._clock = clock

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        now = now or self._clock()
        due = await self._deliveries.list_due_for_retry(
            now, max_attempts=self._max_attempts, limit=self._batch_size
        )
        claimed = dispatched = skipped = errors = 0
        for delivery in due:
            try:
                if not await self._deliveries.mark_retrying(delivery.id):
                    continue
                claimed += 1
                if await self._dispatcher.dispatch(delivery.id):
                    dispatched += 1
                else:
                    skipped += 1
                    await self._deliveries.release_claim(delivery.id)
            except Exception:
                errors += 1
                logger.exception("webhook retry failed", delivery_id=str(delivery.id))
        return SweepResult(
            selected=len(due),
            claimed=claimed,
            dispatched=dispatched,
            skipped=skipped,
            errors=errors,
        )
