"""HTTP middleware for AWID."""

from awid.api.middleware.correlation import CorrelationMiddleware
from awid.api.middleware.rate_limit import RateLimitConfig, RateLimitMiddleware

__all__ = [
    "CorrelationMiddleware",
    "RateLimitConfig",
    "RateLimitMiddleware",
]
