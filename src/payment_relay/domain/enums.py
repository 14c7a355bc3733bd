"""Domain enums for transactions and webhook deliveries."""
from __future__ import annotations

from enum import Enum


class TransactionStatus(str, Enum):
    """Transaction lifecycle states."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"
    PAYMENT = "PAYMENT"


class WebhookDeliveryStatus(str, Enum):
    """Webhook delivery states.

    FAILED with attempts below the maximum is eligible for retry; at the
    maximum it is terminal. SUCCESS is always terminal.
    """

    PENDING = "PENDING"
    RETRYING = "RETRYING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
