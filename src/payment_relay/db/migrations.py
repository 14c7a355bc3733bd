"""Apply SQL migrations from the ``migrations/`` directory on startup."""
from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable

import asyncpg  # type: ignore[import-untyped]
import structlog
from aiohttp import web

logger = structlog.get_logger(__name__)


def load_migrations(migrations_dir: Path) -> dict[str, Path]:
    """Return ``{version: path}`` for every ``*.sql`` file, sorted by name."""
    migrations: dict[str, Path] = {}
    for path in sorted(migrations_dir.glob("*.sql")):
        version = path.stem
        if version in migrations:
            raise ValueError(f"Duplicate migration version detected: {version}")
        migrations[version] = path
    return migrations


def _find_migrations_dir(possible_paths: list[Path]) -> Path | None:
    for path in possible_paths:
        if path.exists():
            return path
    return None


async def _connect(database_url: str, *, max_retries: int, retry_delay: float) -> asyncpg.Connection | None:
    for attempt in range(max_retries):
        try:
            return await asyncpg.connect(database_url)
        except (OSError, asyncpg.PostgresError) as exc:
            logger.warning(
                "database connection failed",
                attempt=attempt + 1,
                max_retries=max_retries,
                error=str(exc),
            )
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay)
    return None


async def apply_migrations(conn: asyncpg.Connection, migrations: dict[str, Path]) -> int:
    """Apply pending migrations in order; returns how many were applied."""
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version text PRIMARY KEY,
            checksum text NOT NULL,
            applied_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    rows = await conn.fetch("SELECT version, checksum FROM schema_migrations")
    applied = {row["version"]: row["checksum"] for row in rows}

    pending = []
    for version, path in migrations.items():
        sql = path.read_text(encoding="utf-8")
        checksum = hashlib.sha256(sql.encode("utf-8")).hexdigest()
        if version in applied:
            if applied[version] != checksum:
                raise RuntimeError(
                    f"Checksum mismatch for {version}: "
                    f"{applied[version]} (db) != {checksum} (file)"
                )
            continue
        pending.append((version, path, sql, checksum))

    for version, path, sql, checksum in pending:
        logger.info("applying migration", migration=path.name)
        async with conn.transaction():
            await conn.execute(sql)
            await conn.execute(
                "INSERT INTO schema_migrations (version, checksum) VALUES ($1, $2)",
                version,
                checksum,
            )
    return len(pending)


def create_migration_runner(
    settings: Any,
    possible_paths: Iterable[Path],
    *,
    max_retries: int = 5,
    retry_delay: float = 2.0,
) -> Callable[[web.Application], Awaitable[None]]:
    """Create an aiohttp startup hook that applies pending SQL migrations."""
    possible_paths_list = list(possible_paths)

    async def apply_migrations_on_startup(_app: web.Application) -> None:
        migrations_dir = _find_migrations_dir(possible_paths_list)
        if migrations_dir is None:
            logger.warning(
                "migrations directory not found, skipping",
                tried=[str(p) for p in possible_paths_list],
            )
            return

        migrations = load_migrations(migrations_dir)
        if not migrations:
            logger.warning("no migrations found, skipping", path=str(migrations_dir))
            return

        conn = await _connect(
            str(settings.database_url), max_retries=max_retries, retry_delay=retry_delay
        )
        if conn is None:
            raise RuntimeError("Failed to connect to database to apply migrations")

        try:
            count = await apply_migrations(conn, migrations)
        finally:
            await conn.close()
        logger.info("migrations applied", count=count)

    return apply_migrations_on_startup
