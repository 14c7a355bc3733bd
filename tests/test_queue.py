from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from payment_relay.services.queue import DispatchQueue


class RecordingDispatcher:
    def __init__(self, *, delay: float = 0.0, fail_for: set | None = None):
        self.delay = delay
        self.fail_for = fail_for or set()
        self.dispatched: list = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def dispatch(self, delivery_id) -> bool:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if delivery_id in self.fail_for:
                raise RuntimeError("store unavailable")
            self.dispatched.append(delivery_id)
            return True
        finally:
            self.in_flight -= 1


@pytest.mark.asyncio
async def test_submit_does_not_wait_for_dispatch():
    dispatcher = RecordingDispatcher(delay=0.05)
    queue = DispatchQueue(dispatcher)
    delivery_id = uuid4()

    queue.submit(delivery_id)

    assert dispatcher.dispatched == []
    assert queue.pending == 1
    await queue.drain()
    assert dispatcher.dispatched == [delivery_id]
    assert queue.pending == 0


@pytest.mark.asyncio
async def test_failing_dispatch_does_not_affect_others():
    bad = uuid4()
    good = [uuid4(), uuid4()]
    dispatcher = RecordingDispatcher(fail_for={bad})
    queue = DispatchQueue(dispatcher)

    queue.submit(good[0])
    queue.submit(bad)
    queue.submit(good[1])
    await queue.drain()

    assert sorted(dispatcher.dispatched) == sorted(good)


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    dispatcher = RecordingDispatcher(delay=0.02)
    queue = DispatchQueue(dispatcher, max_concurrency=2)

    for _ in range(6):
        queue.submit(uuid4())
    await queue.drain()

    assert len(dispatcher.dispatched) == 6
    assert dispatcher.max_in_flight == 2


@pytest.mark.asyncio
async def test_drain_with_nothing_pending():
    queue = DispatchQueue(RecordingDispatcher())
    await queue.drain()
    assert queue.pending == 0
