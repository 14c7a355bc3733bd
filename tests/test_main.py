from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import web
from aiohttp.test_utils import make_mocked_request

from payment_relay.main import create_app, healthcheck, start_webhook_engine, stop_webhook_engine
from payment_relay.services.dependencies import (
    WEBHOOK_ENGINE_KEY,
    WEBHOOK_HTTP_SESSION_KEY,
    WEBHOOK_WORKER_KEY,
    get_webhook_engine,
    get_webhook_service,
)
from payment_relay.services.webhooks import WebhookService
from payment_relay.worker import BackgroundWorker


@pytest.mark.asyncio
async def test_healthcheck_before_engine_start():
    app = web.Application()
    request = make_mocked_request("GET", "/health", app=app)

    response = await healthcheck(request)

    body = json.loads(response.body)
    assert body["status"] == "ok"
    assert body["service"] == "payment-relay"
    assert body["pending_dispatches"] == 0


@pytest.mark.asyncio
async def test_healthcheck_reports_pending_dispatches():
    app = web.Application()
    engine = MagicMock()
    engine.queue.pending = 3
    app[WEBHOOK_ENGINE_KEY] = engine
    request = make_mocked_request("GET", "/health", app=app)

    response = await healthcheck(request)

    assert json.loads(response.body)["pending_dispatches"] == 3


def test_engine_accessor_requires_startup():
    with pytest.raises(RuntimeError):
        get_webhook_engine(web.Application())


def test_create_app_registers_lifecycle_hooks():
    app = create_app()

    # aiohttp registers its own cleanup_ctx hooks as well
    startup = [h.__name__ for h in app.on_startup if not h.__name__.startswith("_")]
    cleanup = [h.__name__ for h in app.on_cleanup if not h.__name__.startswith("_")]
    assert startup == ["setup_otel", "init_pool", "apply_migrations_on_startup", "start_webhook_engine"]
    assert cleanup == ["stop_webhook_engine", "close_pool", "shutdown_otel"]


@pytest.mark.asyncio
async def test_healthcheck_reports_last_sweep(clock):
    app = web.Application()
    worker = BackgroundWorker(clock=clock)
    await worker.run_once()
    app[WEBHOOK_WORKER_KEY] = worker
    request = make_mocked_request("GET", "/health", app=app)

    response = await healthcheck(request)

    assert json.loads(response.body)["last_sweep_at"] == clock.now.isoformat()


def test_service_accessor_requires_startup():
    with pytest.raises(RuntimeError):
        get_webhook_service(web.Application())


@pytest.mark.asyncio
async def test_startup_publishes_engine_and_service(monkeypatch):
    worker = MagicMock()
    worker.start = AsyncMock()
    worker.stop = AsyncMock()
    monkeypatch.setattr("payment_relay.main.get_pool", AsyncMock(return_value=MagicMock()))
    monkeypatch.setattr("payment_relay.main.create_worker", lambda engine, settings: worker)
    app = web.Application()

    await start_webhook_engine(app)
    try:
        assert isinstance(get_webhook_service(app), WebhookService)
        assert get_webhook_engine(app).queue.pending == 0
        worker.start.assert_awaited_once_with(app)
    finally:
        await stop_webhook_engine(app)

    worker.stop.assert_awaited_once_with(app)
    assert app[WEBHOOK_HTTP_SESSION_KEY].closed
