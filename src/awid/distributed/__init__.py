"""Distributed coordination primitives for AWID.

Provides infrastructure for horizontally scaled handlers:
- Distributed locking with ownership-verified release
- Fixed-window rate limiting

Example:
    from awid.distributed import DistributedLock, FixedWindowRateLimiter

    locks = DistributedLock(connection)
    await locks.with_lock("stock:42", adjust_stock)

    limiter = FixedWindowRateLimiter(connection)
    result = await limiter.check("ip:10.0.0.1", max_requests=100, window_seconds=60)
"""

from awid.distributed.lock import DistributedLock
from awid.distributed.rate_limit import FixedWindowRateLimiter, RateLimitResult

__all__ = [
    "DistributedLock",
    "FixedWindowRateLimiter",
    "RateLimitResult",
]
