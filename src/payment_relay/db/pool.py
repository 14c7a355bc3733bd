"""Process-wide asyncpg pool shared by the delivery engine and endpoint service."""
from __future__ import annotations

from typing import Any

import asyncpg  # type: ignore[import-untyped]
import structlog

from payment_relay.settings import settings

logger = structlog.get_logger(__name__)

_pool: asyncpg.Pool | None = None


async def init_pool(_app: Any = None) -> asyncpg.Pool:
    """Create the pool once; usable directly as an ``app.on_startup`` hook."""
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(
            dsn=str(settings.database_url),
            max_size=settings.db_pool_size,
            command_timeout=settings.db_command_timeout_seconds,
            server_settings={"application_name": settings.app_name},
        )
        logger.info("database pool ready", max_size=settings.db_pool_size)
    return _pool


async def close_pool(_app: Any = None) -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("database pool closed")


async def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")
    return _pool
