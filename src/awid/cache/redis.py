"""Redis cache-aside implementation for AWID.

Callers check the cache, and on a miss compute the value themselves and
populate the entry. Entries are derived copies of database state: losing one
costs a recomputation, never information.

Consistency comes from explicit invalidation after every write (see
``awid.cache.invalidation``); the TTL is only a safety net for a missed
invalidation.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar, cast

from awid.cache.connection import store_errors
from awid.cache.serialization import Raw, decode, encode

if TYPE_CHECKING:
    from awid.cache.connection import RedisConnection

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default TTL (5 minutes)
DEFAULT_TTL = 300
CACHE_PREFIX = "cache"


class RedisCache:
    """Cache-aside operations over namespaced keys.

    Keys passed in are scopes from ``CacheKeys``; the cache prefix is added
    here so invalidation patterns never touch lock or rate-limit records.
    """

    def __init__(
        self,
        connection: RedisConnection,
        ttl: int = DEFAULT_TTL,
        prefix: str = CACHE_PREFIX,
    ):
        self.connection = connection
        self.ttl = ttl
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Any | None:
        """Get a cached value, or None when absent.

        Values that are not valid JSON are returned as the raw string.
        """
        with store_errors("cache get"):
            data = await self.connection.client.get(self._key(key))

        if data is None:
            return None

        decoded = decode(data)
        if isinstance(decoded, Raw):
            logger.debug(f"Cache entry {key} is not JSON, returning raw value")
        return decoded.value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a value with expiry (strings as-is, anything else as JSON).

        Raises:
            ValueError: if ``ttl`` is not positive
        """
        expiry = ttl if ttl is not None else self.ttl
        if expiry <= 0:
            raise ValueError(f"Cache TTL must be positive, got {expiry}")
        with store_errors("cache set"):
            await self.connection.client.set(self._key(key), encode(value), ex=expiry)

    async def delete(self, key: str) -> bool:
        """Delete a cached entry. Returns True if it existed."""
        with store_errors("cache delete"):
            deleted = cast(int, await self.connection.client.delete(self._key(key)))
        return deleted > 0

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every entry whose scope matches a glob pattern.

        Keys are enumerated with SCAN, then removed in one DEL. This is not
        atomic: an entry written between the two steps survives.
        Returns the number of keys deleted.
        """
        client = self.connection.client
        with store_errors("cache pattern delete"):
            keys = [key async for key in client.scan_iter(match=self._key(pattern))]
            if not keys:
                return 0
            deleted = cast(int, await client.delete(*keys))

        logger.debug(f"Invalidated {deleted} cache entries matching {pattern}")
        return deleted

    async def get_or_compute(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        ttl: int | None = None,
    ) -> T:
        """Return the cached value, or compute, store and return it.

        Concurrent misses on the same key each run ``factory``; the last
        write wins. A cached JSON null reads as a miss, and so does the string
        ``"null"`` since strings are stored as-is: a factory returning either
        runs on every call.
        """
        cached = await self.get(key)
        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return cast(T, cached)

        logger.debug(f"Cache miss: {key}")
        value = await factory()
        await self.set(key, value, ttl)
        return value

    async def ttl_of(self, key: str) -> int:
        """Remaining TTL in seconds (-2 missing, -1 no expiry)."""
        with store_errors("cache ttl"):
            return cast(int, await self.connection.client.ttl(self._key(key)))
