"""Worker: re-drive failed webhook deliveries that are due for retry."""
from __future__ import annotations

from datetime import datetime

from payment_relay.services.engine import WebhookEngine
from payment_relay.worker import TaskFn


def webhook_retry_sweep(engine: WebhookEngine) -> TaskFn:
    async def run(now: datetime) -> str | None:
        result = await engine.sweep(now)
        return result.summary()

    return run
