from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable
from uuid import uuid4

import pytest
from aiohttp import ClientSession, web

from payment_relay.services.engine import WebhookEngine
from payment_relay.settings import Settings
from tests.fakes import (
    FakeDatabase,
    FakeDeliveryStore,
    FakeEndpointStore,
    FakeTransactionStore,
    FrozenClock,
)


@dataclass
class ReceivedRequest:
    headers: dict[str, str]
    body: bytes


@dataclass
class MockMerchant:
    """Local merchant endpoint with a scripted sequence of response statuses.

    The last status in ``statuses`` repeats once the others are used up.
    """

    url: str = ""
    statuses: list[int] = field(default_factory=lambda: [200])
    response_text: str = '{"received":true}'
    response_bytes: bytes | None = None
    delay: float = 0.0
    observer: Callable[[ReceivedRequest], None] | None = None
    requests: list[ReceivedRequest] = field(default_factory=list)

    async def handle(self, request: web.Request) -> web.Response:
        received = ReceivedRequest(headers=dict(request.headers), body=await request.read())
        self.requests.append(received)
        if self.observer is not None:
            self.observer(received)
        if self.delay:
            await asyncio.sleep(self.delay)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if self.response_bytes is not None:
            return web.Response(status=status, body=self.response_bytes)
        return web.Response(status=status, text=self.response_text)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def db(clock) -> FakeDatabase:
    return FakeDatabase(clock)


@pytest.fixture
def transactions(db) -> FakeTransactionStore:
    return FakeTransactionStore(db)


@pytest.fixture
def deliveries(db) -> FakeDeliveryStore:
    return FakeDeliveryStore(db)


@pytest.fixture
def endpoints(db) -> FakeEndpointStore:
    return FakeEndpointStore(db)


@pytest.fixture
def owner_id():
    return uuid4()


@pytest.fixture
def relay_settings() -> Settings:
    return Settings(
        webhook_request_timeout_seconds=2.0,
        webhook_dispatch_max_concurrency=4,
    )


@pytest.fixture
async def http_session():
    async with ClientSession() as session:
        yield session


@pytest.fixture
async def merchant(aiohttp_server) -> MockMerchant:
    mock = MockMerchant()
    app = web.Application()
    app.router.add_post("/hook", mock.handle)
    server = await aiohttp_server(app)
    mock.url = str(server.make_url("/hook"))
    return mock


@pytest.fixture
def unreachable_url(unused_tcp_port) -> str:
    # nothing listens on a freshly reserved port
    return f"http://127.0.0.1:{unused_tcp_port}/hook"


@pytest.fixture
def engine(transactions, deliveries, http_session, relay_settings, clock) -> WebhookEngine:
    return WebhookEngine(transactions, deliveries, http_session, relay_settings, clock=clock)
