"""Pure helpers for webhook delivery: signing and retry backoff."""

from payment_relay.webhooks.backoff import RETRY_DELAYS, next_retry_at, retry_delay
from payment_relay.webhooks.signing import (
    DELIVERY_ID_HEADER,
    EVENT_HEADER,
    SIGNATURE_HEADER,
    sign,
    verify,
)

__all__ = [
    "RETRY_DELAYS",
    "next_retry_at",
    "retry_delay",
    "sign",
    "verify",
    "SIGNATURE_HEADER",
    "EVENT_HEADER",
    "DELIVERY_ID_HEADER",
]
