"""Mapping of transaction statuses to webhook event names."""
from __future__ import annotations

from types import MappingProxyType

from payment_relay.domain.enums import TransactionStatus

WEBHOOK_EVENTS = MappingProxyType(
    {
        TransactionStatus.PENDING: "payment.pending",
        TransactionStatus.PROCESSING: "payment.processing",
        TransactionStatus.COMPLETED: "payment.success",
        TransactionStatus.FAILED: "payment.failed",
    }
)

_missing = set(TransactionStatus) - set(WEBHOOK_EVENTS)
if _missing:
    raise RuntimeError(f"No webhook event defined for statuses: {sorted(s.value for s in _missing)}")


def event_for_status(status: TransactionStatus | str) -> str:
    """Return the webhook event name for a transaction status."""
    return WEBHOOK_EVENTS[TransactionStatus(status)]
