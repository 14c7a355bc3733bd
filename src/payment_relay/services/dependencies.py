"""Accessors for engine objects stored on the aiohttp application."""
from __future__ import annotations

from aiohttp import web
from asyncpg import Pool  # type: ignore[import-untyped]

from payment_relay.repositories import WebhookDeliveryRepository, WebhookEndpointRepository
from payment_relay.services.engine import WebhookEngine
from payment_relay.services.webhooks import WebhookService
from payment_relay.settings import Settings

WEBHOOK_HTTP_SESSION_KEY = "webhook_http_session"
WEBHOOK_ENGINE_KEY = "webhook_engine"
WEBHOOK_SERVICE_KEY = "webhook_service"
WEBHOOK_WORKER_KEY = "webhook_worker"


def build_webhook_service(pool: Pool, settings: Settings) -> WebhookService:
    return WebhookService(
        WebhookEndpointRepository(pool),
        WebhookDeliveryRepository(pool),
        secret_bytes=settings.webhook_secret_bytes,
    )


def get_webhook_engine(app: web.Application) -> WebhookEngine:
    engine = app.get(WEBHOOK_ENGINE_KEY)
    if engine is None:
        raise RuntimeError("Webhook engine not started")
    return engine


def get_webhook_service(app: web.Application) -> WebhookService:
    service = app.get(WEBHOOK_SERVICE_KEY)
    if service is None:
        raise RuntimeError("Webhook service not started")
    return service
