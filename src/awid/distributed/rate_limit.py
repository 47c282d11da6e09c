"""Fixed-window request counter backed by Redis.

Each caller key gets a counter that lives for exactly one window: the TTL is
applied when the counter is created and never touched again until it expires.
Re-applying it on every hit would turn this into a sliding window.

Known tradeoff: a caller can spend its full quota at the end of one window
and again at the start of the next. Callers needing smoother limiting must
layer a stricter algorithm on top.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from awid.cache.connection import store_errors

if TYPE_CHECKING:
    from awid.cache.connection import RedisConnection

logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "ratelimit"

# Redis TTL reply for a key that exists without an expiry
TTL_NO_EXPIRY = -1


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check."""

    allowed: bool
    remaining: int
    reset_in_seconds: int
    limit: int

    def headers(self) -> dict[str, str]:
        """Standard rate limit response headers."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(time.time()) + self.reset_in_seconds),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_in_seconds)
        return headers


class FixedWindowRateLimiter:
    """Redis-backed fixed window rate limiter.

    Uses INCR + TTL in one MULTI round-trip. Store outages propagate as
    BackingStoreUnavailable: the limiter fails closed.
    """

    def __init__(self, connection: RedisConnection, prefix: str = RATE_LIMIT_PREFIX):
        self.connection = connection
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def check(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        """Count a request for ``key`` and report whether it is allowed."""
        full_key = self._key(key)
        client = self.connection.client

        with store_errors("rate limit check"):
            async with client.pipeline(transaction=True) as pipe:
                pipe.incr(full_key)
                pipe.ttl(full_key)
                count, ttl = await pipe.execute()

            # First hit of the window, or a counter left without expiry by a
            # race between INCR and EXPIRE: start the window now.
            if count == 1 or ttl == TTL_NO_EXPIRY:
                await client.expire(full_key, window_seconds)
                ttl = window_seconds

        allowed = count <= max_requests
        if not allowed:
            logger.debug(f"Rate limit exceeded for {key}: {count}/{max_requests}")

        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, max_requests - count),
            reset_in_seconds=ttl,
            limit=max_requests,
        )
