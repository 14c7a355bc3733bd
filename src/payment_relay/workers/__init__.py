"""Background workers for the payment relay.

Each worker module exports a factory returning a task function compatible
with :class:`payment_relay.worker.WorkerTask`, bound to a running engine.
"""
from __future__ import annotations

from payment_relay.services.engine import WebhookEngine
from payment_relay.settings import Settings
from payment_relay.worker import BackgroundWorker, WorkerTask
from payment_relay.workers.webhook_reclaim import webhook_reclaim_stuck
from payment_relay.workers.webhook_retry import webhook_retry_sweep


def create_worker(engine: WebhookEngine, settings: Settings) -> BackgroundWorker:
    return BackgroundWorker(
        interval_seconds=settings.webhook_sweep_interval_seconds,
        run_on_start=True,
        tasks=[
            # reclaim first so reclaimed records are swept in the same pass
            WorkerTask(name="webhook_reclaim_stuck", fn=webhook_reclaim_stuck(engine)),
            WorkerTask(name="webhook_retry_sweep", fn=webhook_retry_sweep(engine)),
        ],
    )


__all__ = [
    "create_worker",
    "webhook_reclaim_stuck",
    "webhook_retry_sweep",
]
