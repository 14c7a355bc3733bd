"""Single-attempt webhook delivery: sign, POST, classify, persist."""
from __future__ import annotations

import asyncio
from typing import Sequence
from uuid import UUID

import structlog
from aiohttp import ClientError, ClientSession, ClientTimeout, StreamReader

from payment_relay.clock import Clock, utc_now
from payment_relay.domain.enums import WebhookDeliveryStatus
from payment_relay.domain.models import DeliveryOutcome, DeliveryWithEndpoint
from payment_relay.otel import get_tracer
from payment_relay.repositories.protocols import DeliveryStore
from payment_relay.webhooks.backoff import RETRY_DELAYS, next_retry_at
from payment_relay.webhooks.signing import (
    DELIVERY_ID_HEADER,
    EVENT_HEADER,
    SIGNATURE_HEADER,
    sign,
)

logger = structlog.get_logger(__name__)

TRANSPORT_ERRORS = (ClientError, asyncio.TimeoutError, OSError)


def _truncate(value: str, limit: int) -> str:
    return value[:limit]


async def read_prefix(stream: StreamReader, limit_bytes: int) -> bytes:
    """Read at most ``limit_bytes`` from a response body, never the whole of it."""
    chunks: list[bytes] = []
    size = 0
    while size < limit_bytes:
        chunk = await stream.read(limit_bytes - size)
        if not chunk:
            break
        chunks.append(chunk)
        size += len(chunk)
    return b"".join(chunks)


def _decode(raw: bytes, charset: str | None) -> str:
    try:
        return raw.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return raw.decode("utf-8", errors="replace")


class WebhookDispatcher:
    """Performs one delivery attempt per :meth:`dispatch` call.

    Outcomes are only ever visible through the persisted delivery record:
    HTTP and transport failures are recorded, never raised.
    """

    def __init__(
        self,
        deliveries: DeliveryStore,
        session: ClientSession,
        *,
        timeout_seconds: float = 10.0,
        max_attempts: int = 5,
        response_body_limit: int = 1000,
        error_message_limit: int = 500,
        delays: Sequence[int] = RETRY_DELAYS,
        clock: Clock = utc_now,
    ):
        self._deliveries = deliveries
        self._session = session
        self._timeout = ClientTimeout(total=timeout_seconds)
        self._max_attempts = max_attempts
        self._response_body_limit = response_body_limit
        self._error_message_limit = error_message_limit
        self._delays = delays
        self._clock = clock
        self._tracer = get_tracer(__name__)

    async def dispatch(self, delivery_id: UUID) -> bool:
        """Make one attempt; False when the delivery was not eligible and nothing was sent."""
        with structlog.contextvars.bound_contextvars(delivery_id=str(delivery_id)):
            delivery = await self._deliveries.get_with_endpoint(delivery_id)
            if not self._can_attempt(delivery):
                return False
            assert delivery is not None and delivery.endpoint is not None

            with self._tracer.start_as_current_span("webhook.deliver") as span:
                span.set_attribute("webhook.delivery_id", str(delivery.id))
                span.set_attribute("webhook.event", delivery.event)
                span.set_attribute("webhook.attempt", delivery.attempts + 1)
                outcome = await self._attempt(delivery)
                if outcome.response_status is not None:
                    span.set_attribute("http.response.status_code", outcome.response_status)

            written = await self._deliveries.update_outcome(delivery.id, outcome)
            if not written:
                # Another writer got there first (record finished or advanced).
                logger.info("webhook outcome discarded", status=outcome.status.value)
                return True
            self._log_outcome(delivery, outcome)
            return True

    def _can_attempt(self, delivery: DeliveryWithEndpoint | None) -> bool:
        if delivery is None:
            logger.info("webhook delivery not found, skipping")
            return False
        if delivery.endpoint is None:
            logger.info("webhook endpoint deleted, skipping")
            return False
        if not delivery.endpoint.is_active:
            logger.info("webhook endpoint inactive, skipping", endpoint_id=str(delivery.endpoint.id))
            return False
        if delivery.status == WebhookDeliveryStatus.SUCCESS:
            logger.info("webhook delivery already succeeded, skipping")
            return False
        if delivery.attempts >= self._max_attempts:
            logger.info("webhook delivery attempts exhausted, skipping", attempts=delivery.attempts)
            return False
        return True

    async def _attempt(self, delivery: DeliveryWithEndpoint) -> DeliveryOutcome:
        assert delivery.endpoint is not None
        body = delivery.payload.encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: sign(body, delivery.endpoint.secret),
            EVENT_HEADER: delivery.event,
            DELIVERY_ID_HEADER: str(delivery.id),
        }
        attempts = delivery.attempts + 1

        try:
            async with self._session.post(
                delivery.endpoint.url,
                data=body,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                # 4 bytes per character covers any UTF-8 text up to the limit
                raw = await read_prefix(resp.content, self._response_body_limit * 4)
                text = _decode(raw, resp.charset)
                status_code = resp.status
                reason = resp.reason or ""
        except TRANSPORT_ERRORS as exc:
            now = self._clock()
            return DeliveryOutcome(
                status=WebhookDeliveryStatus.FAILED,
                attempts=attempts,
                last_attempt_at=now,
                next_retry_at=next_retry_at(attempts, now=now, delays=self._delays),
                response_status=None,
                response_body=None,
                error_message=_truncate(str(exc) or type(exc).__name__, self._error_message_limit),
            )

        now = self._clock()
        response_body = _truncate(text, self._response_body_limit)
        if 200 <= status_code < 300:
            return DeliveryOutcome(
                status=WebhookDeliveryStatus.SUCCESS,
                attempts=attempts,
                last_attempt_at=now,
                next_retry_at=None,
                response_status=status_code,
                response_body=response_body,
                error_message=None,
            )
        return DeliveryOutcome(
            status=WebhookDeliveryStatus.FAILED,
            attempts=attempts,
            last_attempt_at=now,
            next_retry_at=next_retry_at(attempts, now=now, delays=self._delays),
            response_status=status_code,
            response_body=response_body,
            error_message=_truncate(f"HTTP {status_code}: {reason}".strip(), self._error_message_limit),
        )

    def _log_outcome(self, delivery: DeliveryWithEndpoint, outcome: DeliveryOutcome) -> None:
        if outcome.status == WebhookDeliveryStatus.SUCCESS:
            logger.info(
                "webhook delivered",
                webhook_event=delivery.event,
                attempts=outcome.attempts,
                response_status=outcome.response_status,
            )
        elif outcome.attempts >= self._max_attempts:
            logger.warning(
                "webhook delivery exhausted",
                webhook_event=delivery.event,
                attempts=outcome.attempts,
                response_status=outcome.response_status,
                error=outcome.error_message,
            )
        else:
            logger.warning(
                "webhook delivery failed",
                webhook_event=delivery.event,
                attempts=outcome.attempts,
                response_status=outcome.response_status,
                error=outcome.error_message,
                next_retry_at=outcome.next_retry_at.isoformat() if outcome.next_retry_at else None,
            )
