"""aiohttp host process: owns the pool, the HTTP client and the retry worker."""
from __future__ import annotations

from pathlib import Path

import structlog
from aiohttp import ClientSession, ClientTimeout, web

from payment_relay.db.migrations import create_migration_runner
from payment_relay.db.pool import close_pool, get_pool, init_pool
from payment_relay.logging_config import configure_logging
from payment_relay.otel import setup_otel, shutdown_otel
from payment_relay.services.dependencies import (
    WEBHOOK_ENGINE_KEY,
    WEBHOOK_HTTP_SESSION_KEY,
    WEBHOOK_SERVICE_KEY,
    WEBHOOK_WORKER_KEY,
    build_webhook_service,
)
from payment_relay.services.engine import build_engine
from payment_relay.settings import settings
from payment_relay.workers import create_worker

logger = structlog.get_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
MIGRATION_PATHS = [
    PROJECT_ROOT / "migrations",  # local checkout
    Path("/app/migrations"),  # container image
]


async def healthcheck(request: web.Request) -> web.Response:
    engine = request.app.get(WEBHOOK_ENGINE_KEY)
    worker = request.app.get(WEBHOOK_WORKER_KEY)
    last_run_at = worker.last_run_at if worker is not None else None
    return web.json_response(
        {
            "status": "ok",
            "service": settings.app_name,
            "env": settings.env,
            "pending_dispatches": engine.queue.pending if engine is not None else 0,
            "last_sweep_at": last_run_at.isoformat() if last_run_at is not None else None,
        }
    )


async def start_webhook_engine(app: web.Application) -> None:
    """Open the shared HTTP client, build the engine and start the retry worker."""
    session = ClientSession(timeout=ClientTimeout(total=settings.webhook_request_timeout_seconds))
    app[WEBHOOK_HTTP_SESSION_KEY] = session
    pool = await get_pool()
    engine = build_engine(pool, session, settings)
    app[WEBHOOK_ENGINE_KEY] = engine
    app[WEBHOOK_SERVICE_KEY] = build_webhook_service(pool, settings)
    worker = create_worker(engine, settings)
    app[WEBHOOK_WORKER_KEY] = worker
    await worker.start(app)
    logger.info("webhook engine started")


async def stop_webhook_engine(app: web.Application) -> None:
    """Stop sweeping, let in-flight attempts finish, then close the client."""
    worker = app.get(WEBHOOK_WORKER_KEY)
    if worker is not None:
        await worker.stop(app)
    engine = app.get(WEBHOOK_ENGINE_KEY)
    if engine is not None:
        await engine.drain()
    session = app.get(WEBHOOK_HTTP_SESSION_KEY)
    if session is not None:
        await session.close()
    logger.info("webhook engine stopped")


def create_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/health", healthcheck)

    app.on_startup.append(setup_otel)
    app.on_startup.append(init_pool)
    app.on_startup.append(create_migration_runner(settings, MIGRATION_PATHS))
    app.on_startup.append(start_webhook_engine)

    # cleanup runs in registration order
    app.on_cleanup.append(stop_webhook_engine)
    app.on_cleanup.append(close_pool)
    app.on_cleanup.append(shutdown_otel)
    return app


def main() -> None:
    configure_logging(settings.log_level)
    web.run_app(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
