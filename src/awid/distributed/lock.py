"""Distributed locking for cross-instance critical sections.

Protects shared state that several request handlers, possibly on different
instances, read and then write: stock quantities, customer balances, sequence
numbers. An in-process mutex would only serialize one instance.

The lock is a lease:
1. Acquire creates the lock key with SET NX PX and a unique token
2. Only the holder of that token can delete it (atomic Lua compare-and-delete)
3. If the holder dies, the key expires and another caller can acquire it

There is no renewal. A critical section that outlives its lease may overlap
with the next holder, so pick a TTL well above the expected duration.

Example:
    locks = DistributedLock(connection)

    async def adjust() -> int:
        product = await repo.get(product_id)
        product.stock -= quantity
        await repo.save(product)
        return product.stock

    new_stock = await locks.with_lock(f"stock:{product_id}", adjust, ttl_ms=5000)

    # Or as context manager
    async with locks.hold(f"sequence:{org_id}:invoice"):
        number = await next_invoice_number(org_id)
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, TypeVar, cast
from uuid import uuid4

from awid.cache.connection import store_errors
from awid.errors import LockContention

if TYPE_CHECKING:
    from awid.cache.connection import RedisConnection

logger = logging.getLogger(__name__)

# Lock configuration
LOCK_PREFIX = "lock"
DEFAULT_LOCK_TTL_MS = 30000

# Only delete if we own it
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

R = TypeVar("R")


def _generate_token() -> str:
    """Generate an ownership token unique to one acquire attempt."""
    return f"{int(time.time() * 1000)}-{uuid4().hex[:12]}"


class DistributedLock:
    """Redis-based mutual exclusion for named resources.

    Contention is reported, never queued: ``acquire`` returns None and
    ``with_lock`` raises LockContention. Callers that want to wait compose
    their own backoff around these calls.

    Args:
        connection: Shared Redis connection
        prefix: Key prefix for lock records
        default_ttl_ms: Lease used when a call does not pass one
    """

    def __init__(
        self,
        connection: RedisConnection,
        prefix: str = LOCK_PREFIX,
        default_ttl_ms: int = DEFAULT_LOCK_TTL_MS,
    ):
        self.connection = connection
        self.prefix = prefix
        self.default_ttl_ms = default_ttl_ms

    def lock_key(self, resource: str) -> str:
        """The Redis key used for a resource's lock."""
        return f"{self.prefix}:{resource}"

    async def acquire(self, resource: str, ttl_ms: int | None = None) -> str | None:
        """Try once to acquire the lock.

        Returns:
            The ownership token, or None if another holder owns the resource.

        Raises:
            ValueError: if ``ttl_ms`` is not positive
        """
        lease_ms = ttl_ms if ttl_ms is not None else self.default_ttl_ms
        if lease_ms <= 0:
            raise ValueError(f"Lock lease must be positive, got {lease_ms}")

        token = _generate_token()
        with store_errors("lock acquire"):
            acquired = await self.connection.client.set(
                self.lock_key(resource),
                token,
                nx=True,  # Only set if not exists
                px=lease_ms,  # Lease in milliseconds
            )

        if acquired:
            logger.debug(f"Acquired lock '{resource}'")
            return token
        return None

    async def release(self, resource: str, token: str) -> bool:
        """Release the lock if ``token`` still owns it.

        Returns False when the lease already expired or someone else holds
        the lock; in that case nothing is deleted.
        """
        with store_errors("lock release"):
            result = await cast(
                Awaitable[int],
                self.connection.client.eval(RELEASE_SCRIPT, 1, self.lock_key(resource), token),
            )

        if result:
            logger.debug(f"Released lock '{resource}'")
            return True
        return False

    async def owner(self, resource: str) -> str | None:
        """Token of the current holder, or None if the resource is free."""
        with store_errors("lock owner"):
            value = await self.connection.client.get(self.lock_key(resource))
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else value

    @asynccontextmanager
    async def hold(self, resource: str, ttl_ms: int | None = None) -> AsyncIterator[str]:
        """Hold the lock for the duration of the block.

        Raises:
            LockContention: if the resource is already held
        """
        token = await self.acquire(resource, ttl_ms)
        if token is None:
            logger.warning(f"Lock contention on '{resource}'")
            raise LockContention(resource)

        try:
            yield token
        finally:
            if not await self.release(resource, token):
                logger.warning(f"Lock '{resource}' lease expired before release")

    async def with_lock(
        self,
        resource: str,
        fn: Callable[[], Awaitable[R]],
        ttl_ms: int | None = None,
    ) -> R:
        """Run ``fn`` while holding the lock, releasing it on every exit path.

        Raises:
            LockContention: immediately, if the resource is already held
        """
        async with self.hold(resource, ttl_ms):
            return await fn()
