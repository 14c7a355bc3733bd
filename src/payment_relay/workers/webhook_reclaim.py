"""Worker: reclaim webhook deliveries stuck in RETRYING or never attempted."""
from __future__ import annotations

from datetime import datetime

from payment_relay.services.engine import WebhookEngine
from payment_relay.worker import TaskFn


def webhook_reclaim_stuck(engine: WebhookEngine) -> TaskFn:
    async def run(now: datetime) -> str | None:
        reclaimed = await engine.reclaim_stuck(now)
        return f"reclaimed={reclaimed}" if reclaimed else None

    return run
