"""Scheduler driving the periodic webhook maintenance passes.

The delivery engine itself never schedules anything; this worker calls it
on a fixed cadence inside the aiohttp process::

    worker = BackgroundWorker(
        interval_seconds=60.0,
        tasks=[WorkerTask(name="webhook_retry_sweep", fn=webhook_retry_sweep(engine))],
    )
    app.on_startup.append(worker.start)
    app.on_cleanup.append(worker.stop)

A host with an external scheduler calls :meth:`BackgroundWorker.run_once`
instead.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Sequence

import structlog

from payment_relay.clock import Clock, utc_now

logger = structlog.get_logger(__name__)

# Receives the pass time (UTC); an optional summary is logged when non-empty.
TaskFn = Callable[[datetime], Awaitable[str | None]]


@dataclass
class WorkerTask:
    name: str
    fn: TaskFn


@dataclass
class BackgroundWorker:
    """Runs ``tasks`` in order every ``interval_seconds``.

    A failing task is logged and the remaining tasks of the pass still run.
    With ``run_on_start`` the first pass happens immediately, which picks up
    deliveries that became due while the process was down.
    """

    interval_seconds: float = 60.0
    tasks: Sequence[WorkerTask] = field(default_factory=list)
    clock: Clock = utc_now
    run_on_start: bool = False
    last_run_at: datetime | None = field(default=None, init=False)
    last_summaries: dict[str, str | None] = field(default_factory=dict, init=False)
    _task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, _app: Any = None) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="webhook-background-worker")

    async def stop(self, _app: Any = None) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def run_once(self, now: datetime | None = None) -> dict[str, str | None]:
        """One pass over every task; returns ``{task name: summary}`` (None on failure)."""
        now = now or self.clock()
        summaries: dict[str, str | None] = {}
        for task in self.tasks:
            try:
                summaries[task.name] = await task.fn(now)
            except Exception:
                logger.exception("background_task failed", task=task.name)
                summaries[task.name] = None
                continue
            if summaries[task.name]:
                logger.info("background_task completed", task=task.name, summary=summaries[task.name])
        self.last_run_at = now
        self.last_summaries = summaries
        return summaries

    async def _loop(self) -> None:
        logger.info(
            "background_worker started",
            interval_seconds=self.interval_seconds,
            tasks=[t.name for t in self.tasks],
        )
        delay = 0.0 if self.run_on_start else self.interval_seconds
        while True:
            try:
                await asyncio.sleep(delay)
                delay = self.interval_seconds
                await self.run_once()
            except asyncio.CancelledError:
                logger.info("background_worker stopped")
                raise
            except Exception:
                logger.exception("background_worker pass failed")
