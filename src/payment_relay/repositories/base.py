"""asyncpg access shared by the relay's repositories."""
from __future__ import annotations

from typing import Any, Iterable

import asyncpg  # type: ignore[import-untyped]


class BaseRepository:
    """Pool-backed query helpers; each call runs on its own pooled connection."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def _fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self._pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def _fetch(self, query: str, *args: Any) -> Iterable[asyncpg.Record]:
        async with self._pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def _fetchval(self, query: str, *args: Any) -> Any:
        async with self._pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def _execute(self, query: str, *args: Any) -> str:
        async with self._pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def _touched(self, query: str, *args: Any) -> bool:
        """Run a guarded ``... RETURNING id`` statement.

        False means the WHERE clause matched nothing: the row is gone or
        another writer already moved it past the guard.
        """
        return await self._fetchval(query, *args) is not None

    @staticmethod
    def _affected(status: str) -> int:
        """Row count from an asyncpg command tag such as ``UPDATE 3``."""
        return int(status.split()[-1])
