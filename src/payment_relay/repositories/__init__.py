"""Repository package exports."""

from payment_relay.repositories.transactions import TransactionRepository
from payment_relay.repositories.webhooks import (
    WebhookDeliveryRepository,
    WebhookEndpointRepository,
)

__all__ = [
    "TransactionRepository",
    "WebhookDeliveryRepository",
    "WebhookEndpointRepository",
]
