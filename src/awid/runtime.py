"""Runtime wiring for the AWID coordination layer.

The runtime owns the Redis connection and builds every component on top of
it. The application creates one instance, starts it on startup and stops it
on shutdown; handlers receive the components they need from it.

Example:
    runtime = CoordinationRuntime.from_settings()
    async with runtime:
        products = await runtime.cache.get_or_compute(
            CacheKeys.products(org_id), load_products
        )
"""

from __future__ import annotations

import logging
from types import TracebackType

from awid.cache.connection import ClientFactory, RedisConnection
from awid.cache.invalidation import CacheInvalidator
from awid.cache.redis import RedisCache
from awid.config import Settings, settings as default_settings
from awid.distributed.lock import DistributedLock
from awid.distributed.rate_limit import FixedWindowRateLimiter
from awid.events.notifications import LiveNotifier
from awid.events.pubsub import PubSubChannel

logger = logging.getLogger(__name__)


class CoordinationRuntime:
    """Lifecycle owner for the connection and the components built on it."""

    def __init__(self, connection: RedisConnection, config: Settings):
        self.config = config
        self.connection = connection
        self.cache = RedisCache(
            connection,
            ttl=config.cache_default_ttl,
            prefix=config.cache_prefix,
        )
        self.invalidator = CacheInvalidator(self.cache)
        self.locks = DistributedLock(
            connection,
            prefix=config.lock_prefix,
            default_ttl_ms=config.lock_default_ttl_ms,
        )
        self.rate_limiter = FixedWindowRateLimiter(connection, prefix=config.rate_limit_prefix)
        self.pubsub = PubSubChannel(connection)
        self.notifier = LiveNotifier(self.pubsub, name=config.broadcast_channel)

    @classmethod
    def from_settings(
        cls,
        config: Settings | None = None,
        client_factory: ClientFactory | None = None,
    ) -> "CoordinationRuntime":
        """Create a runtime from configuration."""
        config = config or default_settings
        connection = RedisConnection(
            config.redis_url,
            max_attempts=config.redis_connect_attempts,
            retry_delay_ms=config.redis_retry_delay_ms,
            retry_delay_max_ms=config.redis_retry_delay_max_ms,
            client_factory=client_factory,
        )
        return cls(connection, config)

    async def start(self) -> None:
        """Connect to Redis. Raises BackingStoreUnavailable after retries."""
        await self.connection.connect()
        logger.info("Coordination runtime started (%s)", self.config.instance_id)

    async def stop(self) -> None:
        """Stop listeners and close connections."""
        await self.pubsub.close()
        await self.connection.disconnect()
        logger.info("Coordination runtime stopped (%s)", self.config.instance_id)

    async def __aenter__(self) -> "CoordinationRuntime":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()
