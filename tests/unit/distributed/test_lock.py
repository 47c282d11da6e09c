"""Tests for distributed locking."""

from __future__ import annotations

import asyncio

import fakeredis
import pytest

from awid.cache.connection import RedisConnection
from awid.distributed.lock import DistributedLock
from awid.errors import BackingStoreUnavailable, LockContention


@pytest.fixture
def locks(connection: RedisConnection) -> DistributedLock:
    """Lock manager over the fake Redis connection."""
    return DistributedLock(connection, default_ttl_ms=30000)


class TestAcquireRelease:
    """Tests for acquire/release."""

    async def test_acquire_returns_token(
        self, locks: DistributedLock, connection: RedisConnection
    ) -> None:
        """Acquiring a free resource stores and returns a token."""
        token = await locks.acquire("stock:p1")

        assert token is not None
        assert await connection.client.get("lock:stock:p1") == token
        assert await locks.owner("stock:p1") == token

    async def test_acquire_sets_lease(
        self, locks: DistributedLock, connection: RedisConnection
    ) -> None:
        """The lock key carries the lease in milliseconds."""
        await locks.acquire("stock:p1", ttl_ms=5000)
        pttl = await connection.client.pttl("lock:stock:p1")
        assert 0 < pttl <= 5000

    @pytest.mark.parametrize("ttl_ms", [0, -1])
    async def test_non_positive_lease_rejected(
        self, locks: DistributedLock, ttl_ms: int
    ) -> None:
        """An explicit zero or negative lease is an error, not the default."""
        with pytest.raises(ValueError):
            await locks.acquire("stock:p1", ttl_ms=ttl_ms)

        assert await locks.owner("stock:p1") is None

    async def test_tokens_are_unique(self, locks: DistributedLock) -> None:
        """Each acquire attempt gets its own token."""
        first = await locks.acquire("r1")
        second = await locks.acquire("r2")
        assert first != second

    async def test_concurrent_acquire_exactly_one_wins(self, locks: DistributedLock) -> None:
        """Two concurrent acquires: one token, one None."""
        results = await asyncio.gather(locks.acquire("R"), locks.acquire("R"))

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        assert results.count(None) == 1

    async def test_non_owner_cannot_release(self, locks: DistributedLock) -> None:
        """Releasing with a foreign token fails and keeps the lock."""
        token = await locks.acquire("R")
        assert token is not None

        assert await locks.release("R", "someone-else") is False
        assert await locks.owner("R") == token
        assert await locks.acquire("R") is None

    async def test_owner_release_frees_resource(self, locks: DistributedLock) -> None:
        """The owner's release succeeds and the resource can be re-acquired."""
        token = await locks.acquire("R")
        assert token is not None

        assert await locks.release("R", token) is True
        assert await locks.owner("R") is None
        assert await locks.acquire("R") is not None

    async def test_release_twice_returns_false(self, locks: DistributedLock) -> None:
        """A second release is a no-op."""
        token = await locks.acquire("R")
        assert token is not None
        assert await locks.release("R", token) is True
        assert await locks.release("R", token) is False

    async def test_expired_holder_cannot_release_new_lock(self, locks: DistributedLock) -> None:
        """A slow holder whose lease expired cannot delete the next holder's lock."""
        stale = await locks.acquire("R", ttl_ms=100)
        assert stale is not None

        await asyncio.sleep(0.25)

        fresh = await locks.acquire("R", ttl_ms=30000)
        assert fresh is not None

        assert await locks.release("R", stale) is False
        assert await locks.owner("R") == fresh

    async def test_custom_prefix(self, connection: RedisConnection) -> None:
        """Lock keys use the configured prefix."""
        locks = DistributedLock(connection, prefix="mutex")
        await locks.acquire("R")
        assert locks.lock_key("R") == "mutex:R"
        assert await connection.client.exists("mutex:R") == 1


class TestWithLock:
    """Tests for the execute-with-lock wrapper."""

    async def test_returns_function_result(self, locks: DistributedLock) -> None:
        """with_lock returns what fn returns and frees the lock."""

        async def critical() -> int:
            return 41 + 1

        assert await locks.with_lock("seq:invoice", critical) == 42
        assert await locks.owner("seq:invoice") is None

    async def test_lock_held_during_function(self, locks: DistributedLock) -> None:
        """The resource is locked while fn runs."""
        seen: list[str | None] = []

        async def critical() -> None:
            seen.append(await locks.owner("R"))
            seen.append(await locks.acquire("R"))

        await locks.with_lock("R", critical)

        assert seen[0] is not None
        assert seen[1] is None

    async def test_contention_raises_immediately(self, locks: DistributedLock) -> None:
        """A held resource raises LockContention without calling fn."""
        await locks.acquire("R")
        called = False

        async def critical() -> None:
            nonlocal called
            called = True

        with pytest.raises(LockContention) as exc_info:
            await locks.with_lock("R", critical)

        assert exc_info.value.resource == "R"
        assert called is False

    async def test_releases_when_function_raises(self, locks: DistributedLock) -> None:
        """The lock is released even when fn throws."""

        async def critical() -> None:
            raise ValueError("insufficient stock")

        with pytest.raises(ValueError):
            await locks.with_lock("stock:p1", critical)

        assert await locks.acquire("stock:p1") is not None

    async def test_serializes_read_modify_write(self, locks: DistributedLock) -> None:
        """Concurrent handlers either run alone or get contention."""
        stock = {"qty": 10}

        async def decrement() -> int:
            current = stock["qty"]
            await asyncio.sleep(0.01)
            stock["qty"] = current - 1
            return stock["qty"]

        results = await asyncio.gather(
            *(locks.with_lock("stock:p1", decrement) for _ in range(5)),
            return_exceptions=True,
        )

        succeeded = [r for r in results if isinstance(r, int)]
        contended = [r for r in results if isinstance(r, LockContention)]
        assert len(succeeded) + len(contended) == 5
        assert stock["qty"] == 10 - len(succeeded)

    async def test_hold_context_manager(self, locks: DistributedLock) -> None:
        """hold() yields the token and releases on exit."""
        async with locks.hold("R", ttl_ms=5000) as token:
            assert await locks.owner("R") == token

        assert await locks.owner("R") is None

    async def test_store_outage_propagates(
        self, locks: DistributedLock, fake_server: fakeredis.FakeServer
    ) -> None:
        """Store errors surface as BackingStoreUnavailable, not contention."""
        fake_server.connected = False

        with pytest.raises(BackingStoreUnavailable):
            await locks.acquire("R")

        fake_server.connected = True
