"""Pydantic models representing key domain entities."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from payment_relay.domain.enums import (
    TransactionStatus,
    TransactionType,
    WebhookDeliveryStatus,
)


class WebhookEndpoint(BaseModel):
    id: UUID
    owner_id: UUID
    url: str
    secret: str
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class Transaction(BaseModel):
    id: UUID
    owner_id: UUID
    amount: Decimal
    type: TransactionType
    status: TransactionStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TransactionWithEndpoints(Transaction):
    """Transaction plus the owner's currently active endpoints."""

    active_endpoints: list[WebhookEndpoint] = Field(default_factory=list)


class WebhookDelivery(BaseModel):
    id: UUID
    transaction_id: UUID
    webhook_endpoint_id: UUID | None = None
    event: str
    payload: str
    status: WebhookDeliveryStatus = WebhookDeliveryStatus.PENDING
    attempts: int = 0
    last_attempt_at: datetime | None = None
    next_retry_at: datetime | None = None
    response_status: int | None = None
    response_body: str | None = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class DeliveryWithEndpoint(WebhookDelivery):
    """Delivery joined with its endpoint; ``endpoint`` is None once deleted."""

    endpoint: WebhookEndpoint | None = None


class WebhookPayload(BaseModel):
    """Body sent to merchant endpoints. Frozen once serialized."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event: str
    transaction_id: str = Field(alias="transactionId")
    user_id: str = Field(alias="userId")
    status: TransactionStatus
    amount: str
    type: str
    timestamp: str


class DeliveryOutcome(BaseModel):
    """Fields written by a single delivery attempt, in one update."""

    model_config = ConfigDict(frozen=True)

    status: WebhookDeliveryStatus
    attempts: int
    last_attempt_at: datetime
    next_retry_at: datetime | None
    response_status: int | None
    response_body: str | None
    error_message: str | None
