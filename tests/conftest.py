"""Global pytest configuration and fixtures.

Provides an in-memory Redis (fakeredis) shared by the primary and subscriber
connections, so coordination primitives run against real command semantics
(SET NX PX, MULTI, EVAL, PUBLISH/SUBSCRIBE) without a server.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import fakeredis
import pytest
import pytest_asyncio

from awid.cache.connection import RedisConnection


@pytest.fixture
def fake_server() -> fakeredis.FakeServer:
    """Fresh in-memory Redis server per test."""
    return fakeredis.FakeServer()


@pytest.fixture
def client_factory(fake_server: fakeredis.FakeServer) -> Callable[[], fakeredis.FakeAsyncRedis]:
    """Client factory producing connections to the same fake server."""

    def factory() -> fakeredis.FakeAsyncRedis:
        return fakeredis.FakeAsyncRedis(server=fake_server, decode_responses=True)

    return factory


@pytest_asyncio.fixture
async def connection(
    client_factory: Callable[[], fakeredis.FakeAsyncRedis],
) -> AsyncIterator[RedisConnection]:
    """Connected RedisConnection backed by the fake server."""
    conn = RedisConnection("redis://fake:6379/0", client_factory=client_factory)
    await conn.connect()
    yield conn
    await conn.disconnect()
