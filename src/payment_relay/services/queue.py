"""Hand-off of delivery attempts to background asyncio tasks."""
from __future__ import annotations

import asyncio
from typing import Protocol
from uuid import UUID

import structlog

logger = structlog.get_logger(__name__)


class Dispatcher(Protocol):
    async def dispatch(self, delivery_id: UUID) -> bool: ...


class DispatchQueue:
    """Runs dispatches in the background so callers never wait on delivery.

    At most ``max_concurrency`` attempts are in flight at once; the rest wait
    on the semaphore. Exceptions from a dispatch are logged and dropped.
    """

    def __init__(self, dispatcher: Dispatcher, *, max_concurrency: int = 10):
        self._dispatcher = dispatcher
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, delivery_id: UUID) -> None:
        task = asyncio.create_task(self._run(delivery_id), name=f"webhook-dispatch-{delivery_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, delivery_id: UUID) -> None:
        async with self._semaphore:
            try:
                await self._dispatcher.dispatch(delivery_id)
            except Exception:
                logger.exception("webhook dispatch crashed", delivery_id=str(delivery_id))

    async def drain(self) -> None:
        """Wait until every submitted dispatch has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
