"""Cache layer for AWID.

Provides Redis caching with the cache-aside pattern:
- RedisConnection owns the primary and subscriber clients
- RedisCache stores derived copies of tenant data with a TTL safety net
- CacheKeys namespaces every entry by organization for prefix invalidation
- CacheInvalidator flushes the namespaces touched by each write
"""

from awid.cache.connection import RedisConnection, store_errors
from awid.cache.invalidation import CacheInvalidator
from awid.cache.keys import CacheKeys
from awid.cache.redis import RedisCache
from awid.cache.serialization import Raw, Structured, decode, encode

__all__ = [
    # Connection
    "RedisConnection",
    "store_errors",
    # Core cache
    "CacheKeys",
    "RedisCache",
    "CacheInvalidator",
    # Encoding
    "Structured",
    "Raw",
    "encode",
    "decode",
]
