"""Tests for the Redis cache-aside implementation."""

from __future__ import annotations

import asyncio

import pytest

from awid.cache.connection import RedisConnection
from awid.cache.invalidation import CacheInvalidator
from awid.cache.keys import CacheKeys
from awid.cache.redis import RedisCache


@pytest.fixture
def cache(connection: RedisConnection) -> RedisCache:
    """Cache over the fake Redis connection."""
    return RedisCache(connection, ttl=300)


class TestGetSet:
    """Tests for get/set/delete."""

    async def test_unwritten_key_is_absent(self, cache: RedisCache) -> None:
        """A key never written reads as None."""
        assert await cache.get("org:missing:products") is None

    async def test_structured_roundtrip(self, cache: RedisCache) -> None:
        """A structured value reads back deep-equal."""
        value = {"id": "p1", "price": 12.5, "tags": ["a", "b"], "stock": {"qty": 3}}
        await cache.set("org:o1:products", value)
        assert await cache.get("org:o1:products") == value

    async def test_list_roundtrip(self, cache: RedisCache) -> None:
        """Lists of objects read back deep-equal."""
        value = [{"id": 1}, {"id": 2}]
        await cache.set("org:o1:categories", value)
        assert await cache.get("org:o1:categories") == value

    async def test_string_stored_as_is(self, cache: RedisCache, connection: RedisConnection) -> None:
        """Strings are not JSON-encoded before storage."""
        await cache.set("user:u1:session", "session-token")
        assert await connection.client.get("cache:user:u1:session") == "session-token"
        assert await cache.get("user:u1:session") == "session-token"

    async def test_non_json_value_returned_raw(
        self, cache: RedisCache, connection: RedisConnection
    ) -> None:
        """A stored value that is not JSON comes back as the raw string."""
        await connection.client.set("cache:org:o1:settings", "{broken")
        assert await cache.get("org:o1:settings") == "{broken"

    async def test_default_ttl_applied(self, cache: RedisCache) -> None:
        """Entries get the default TTL when none is given."""
        await cache.set("org:o1:dashboard", {"orders": 3})
        ttl = await cache.ttl_of("org:o1:dashboard")
        assert 0 < ttl <= 300

    async def test_entry_expires_after_ttl(self, cache: RedisCache) -> None:
        """An entry reads as absent once its TTL elapses."""
        await cache.set("org:o1:dashboard", {"orders": 3}, ttl=1)
        assert await cache.get("org:o1:dashboard") == {"orders": 3}

        await asyncio.sleep(1.2)

        assert await cache.get("org:o1:dashboard") is None

    @pytest.mark.parametrize("ttl", [0, -5])
    async def test_non_positive_ttl_rejected(self, cache: RedisCache, ttl: int) -> None:
        """An explicit zero or negative TTL is an error, not the default."""
        with pytest.raises(ValueError):
            await cache.set("org:o1:dashboard", {"orders": 3}, ttl=ttl)

        assert await cache.get("org:o1:dashboard") is None

    async def test_delete(self, cache: RedisCache) -> None:
        """Deleting removes the entry and reports whether it existed."""
        await cache.set("org:o1:categories", ["c1"])
        assert await cache.delete("org:o1:categories") is True
        assert await cache.get("org:o1:categories") is None
        assert await cache.delete("org:o1:categories") is False


class TestDeletePattern:
    """Tests for pattern invalidation."""

    async def test_removes_matching_keys_only(self, cache: RedisCache) -> None:
        """Pattern deletion removes every match and nothing else."""
        await cache.set(CacheKeys.products("o1"), [1])
        await cache.set(CacheKeys.products_by_category("o1", "c1"), [2])
        await cache.set(CacheKeys.products_by_category("o1", "c2"), [3])
        await cache.set(CacheKeys.categories("o1"), ["c1"])
        await cache.set(CacheKeys.products("o2"), [4])

        deleted = await cache.delete_pattern(CacheKeys.products_pattern("o1"))

        assert deleted == 3
        assert await cache.get(CacheKeys.products("o1")) is None
        assert await cache.get(CacheKeys.products_by_category("o1", "c1")) is None
        assert await cache.get(CacheKeys.products_by_category("o1", "c2")) is None
        assert await cache.get(CacheKeys.categories("o1")) == ["c1"]
        assert await cache.get(CacheKeys.products("o2")) == [4]

    async def test_no_match_returns_zero(self, cache: RedisCache) -> None:
        """Nothing to delete is not an error."""
        assert await cache.delete_pattern("org:nobody:*") == 0

    async def test_does_not_touch_other_prefixes(
        self, cache: RedisCache, connection: RedisConnection
    ) -> None:
        """Lock and rate limit records are outside the cache namespace."""
        await connection.client.set("lock:org:o1:stock", "token")
        await cache.set(CacheKeys.dashboard_stats("o1"), {"x": 1})

        await cache.delete_pattern("*")

        assert await connection.client.get("lock:org:o1:stock") == "token"


class TestGetOrCompute:
    """Tests for the cache-aside algorithm."""

    async def test_miss_invokes_factory_and_stores(self, cache: RedisCache) -> None:
        """On a miss the factory runs once and its result is cached."""
        calls = 0

        async def factory() -> dict[str, int]:
            nonlocal calls
            calls += 1
            return {"total": 42}

        result = await cache.get_or_compute("org:o1:dashboard", factory)

        assert result == {"total": 42}
        assert calls == 1
        assert await cache.get("org:o1:dashboard") == {"total": 42}

    async def test_hit_skips_factory(self, cache: RedisCache) -> None:
        """On a hit the factory is never called."""
        await cache.set("org:o1:dashboard", {"total": 1})
        calls = 0

        async def factory() -> dict[str, int]:
            nonlocal calls
            calls += 1
            return {"total": 2}

        result = await cache.get_or_compute("org:o1:dashboard", factory)

        assert result == {"total": 1}
        assert calls == 0

    async def test_second_call_served_from_cache(self, cache: RedisCache) -> None:
        """Two sequential calls compute only once."""
        calls = 0

        async def factory() -> list[str]:
            nonlocal calls
            calls += 1
            return ["p1", "p2"]

        await cache.get_or_compute("org:o1:products", factory)
        await cache.get_or_compute("org:o1:products", factory)

        assert calls == 1

    async def test_custom_ttl(self, cache: RedisCache) -> None:
        """The TTL passed to get_or_compute is applied."""

        async def factory() -> int:
            return 7

        await cache.get_or_compute("org:o1:stats:2026-01-10", factory, ttl=30)
        assert 0 < await cache.ttl_of("org:o1:stats:2026-01-10") <= 30

    async def test_string_null_recomputed_every_call(self, cache: RedisCache) -> None:
        """A factory returning the string "null" is never served from cache."""
        calls = 0

        async def factory() -> str:
            nonlocal calls
            calls += 1
            return "null"

        assert await cache.get_or_compute("org:o1:settings", factory) == "null"
        assert await cache.get_or_compute("org:o1:settings", factory) == "null"

        assert calls == 2

    async def test_concurrent_misses_tolerated(self, cache: RedisCache) -> None:
        """Concurrent misses may both compute; every caller gets a value."""
        calls = 0
        started = asyncio.Event()

        async def factory() -> dict[str, str]:
            nonlocal calls
            calls += 1
            started.set()
            await asyncio.sleep(0.05)
            return {"warm": "yes"}

        results = await asyncio.gather(
            cache.get_or_compute("org:o1:products", factory),
            cache.get_or_compute("org:o1:products", factory),
        )

        assert results == [{"warm": "yes"}, {"warm": "yes"}]
        assert 1 <= calls <= 2
        assert await cache.get("org:o1:products") == {"warm": "yes"}

    async def test_factory_error_propagates_and_caches_nothing(self, cache: RedisCache) -> None:
        """A failing factory leaves the key absent."""

        async def factory() -> int:
            raise RuntimeError("database down")

        with pytest.raises(RuntimeError):
            await cache.get_or_compute("org:o1:dashboard", factory)

        assert await cache.get("org:o1:dashboard") is None


class TestCacheInvalidator:
    """Tests for the write-invalidate policy."""

    async def test_products_flushes_all_product_lists(self, cache: RedisCache) -> None:
        """Product invalidation clears per-category lists too."""
        invalidator = CacheInvalidator(cache)
        await cache.set(CacheKeys.products("o1"), [1])
        await cache.set(CacheKeys.products_by_category("o1", "c1"), [1])
        await cache.set(CacheKeys.dashboard_stats("o1"), {"a": 1})

        assert await invalidator.products("o1") == 2
        assert await cache.get(CacheKeys.dashboard_stats("o1")) == {"a": 1}

    async def test_single_namespace_invalidations(self, cache: RedisCache) -> None:
        """Categories, dashboard and settings are targeted deletes."""
        invalidator = CacheInvalidator(cache)
        await cache.set(CacheKeys.categories("o1"), ["c"])
        await cache.set(CacheKeys.dashboard_stats("o1"), {"a": 1})
        await cache.set(CacheKeys.organization_settings("o1"), {"currency": "DZD"})

        assert await invalidator.categories("o1") is True
        assert await invalidator.dashboard("o1") is True
        assert await invalidator.settings("o1") is True

        assert await cache.get(CacheKeys.categories("o1")) is None
        assert await cache.get(CacheKeys.dashboard_stats("o1")) is None
        assert await cache.get(CacheKeys.organization_settings("o1")) is None

    async def test_organization_flushes_tenant_only(self, cache: RedisCache) -> None:
        """Organization invalidation never touches another tenant."""
        invalidator = CacheInvalidator(cache)
        await cache.set(CacheKeys.products("o1"), [1])
        await cache.set(CacheKeys.categories("o1"), [1])
        await cache.set(CacheKeys.products("o2"), [2])

        assert await invalidator.organization("o1") == 2
        assert await cache.get(CacheKeys.products("o2")) == [2]
