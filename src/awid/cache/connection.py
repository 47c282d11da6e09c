"""Redis connection ownership for the coordination layer.

One primary client carries every normal command (GET/SET/INCR/EVAL/PUBLISH).
A second client is created lazily for SUBSCRIBE traffic, since a connection in
subscribe mode cannot issue other commands.

The connection is an owned resource: the runtime connects it on startup,
disconnects it on shutdown and injects it into each component. Tests pass a
``client_factory`` that returns an in-memory client.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, cast

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from awid.errors import BackingStoreUnavailable

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], "Redis"]

# Initial connect only
DEFAULT_CONNECT_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_MS = 200
DEFAULT_RETRY_DELAY_MAX_MS = 2000


@contextmanager
def store_errors(operation: str = "command") -> Iterator[None]:
    """Translate redis-py connection failures into BackingStoreUnavailable.

    Nothing is retried here; the caller decides whether the outage is fatal.
    """
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.warning(f"Redis connection lost during {operation}: {e}")
        raise BackingStoreUnavailable(f"Redis unavailable during {operation}: {e}") from e


class RedisConnection:
    """Owns the primary and subscriber Redis clients.

    Args:
        url: Redis connection URL
        max_attempts: Connection attempts before giving up on startup
        retry_delay_ms: Base delay, multiplied by the attempt number
        retry_delay_max_ms: Upper bound for the delay between attempts
        client_factory: Builds a client; defaults to ``redis.from_url(url)``
    """

    def __init__(
        self,
        url: str,
        *,
        max_attempts: int = DEFAULT_CONNECT_ATTEMPTS,
        retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
        retry_delay_max_ms: int = DEFAULT_RETRY_DELAY_MAX_MS,
        client_factory: ClientFactory | None = None,
    ):
        self.url = url
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_ms = retry_delay_ms
        self.retry_delay_max_ms = retry_delay_max_ms
        self._client_factory = client_factory or self._default_factory
        self._client: Redis | None = None
        self._subscriber: Redis | None = None

    def _default_factory(self) -> Redis:
        return redis.from_url(  # type: ignore[no-untyped-call]
            self.url,
            encoding="utf-8",
            decode_responses=True,
        )

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> Redis:
        """The primary client. Raises if ``connect()`` has not succeeded."""
        if self._client is None:
            raise BackingStoreUnavailable("Redis connection not established")
        return self._client

    def retry_delay(self, attempt: int) -> float:
        """Delay in seconds after a failed attempt (linear, then capped)."""
        return min(attempt * self.retry_delay_ms, self.retry_delay_max_ms) / 1000

    async def connect(self) -> None:
        """Connect and verify liveness with PING, with bounded retry."""
        if self._client is not None:
            return

        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            client = self._client_factory()
            try:
                await cast(Awaitable[bool], client.ping())
            except (RedisConnectionError, RedisTimeoutError, OSError) as e:
                last_error = e
                logger.warning(
                    f"Redis connection attempt {attempt}/{self.max_attempts} failed: {e}"
                )
                await client.aclose()
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay(attempt))
                continue

            self._client = client
            logger.info("Redis connected")
            return

        logger.error(f"Redis connection failed after {self.max_attempts} attempts")
        raise BackingStoreUnavailable(
            f"Could not connect to Redis after {self.max_attempts} attempts"
        ) from last_error

    async def subscriber(self) -> Redis:
        """Get or create the dedicated subscriber client."""
        if self._client is None:
            raise BackingStoreUnavailable("Redis connection not established")
        if self._subscriber is None:
            self._subscriber = self._client_factory()
            logger.debug("Created dedicated Redis subscriber connection")
        return self._subscriber

    async def disconnect(self) -> None:
        """Close both clients, letting in-flight commands finish."""
        if self._subscriber is not None:
            await self._subscriber.aclose()
            self._subscriber = None

        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        if self._client is None:
            return False
        try:
            await cast(Awaitable[bool], self._client.ping())
            return True
        except Exception:
            return False
