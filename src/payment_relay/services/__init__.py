"""Domain services exports."""

from payment_relay.services.dispatcher import WebhookDispatcher
from payment_relay.services.engine import WebhookEngine, build_engine
from payment_relay.services.fanout import WebhookFanout
from payment_relay.services.queue import DispatchQueue
from payment_relay.services.sweeper import RetrySweeper, SweepResult
from payment_relay.services.webhooks import WebhookService

__all__ = [
    "WebhookDispatcher",
    "WebhookEngine",
    "build_engine",
    "WebhookFanout",
    "DispatchQueue",
    "RetrySweeper",
    "SweepResult",
    "WebhookService",
]
