"""Rate limiting middleware for AWID.

Admits requests through the Redis fixed-window limiter.
Supports both IP-based and token-based limiting.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from awid.errors import BackingStoreUnavailable

if TYPE_CHECKING:
    from awid.distributed.rate_limit import FixedWindowRateLimiter

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Rate limiting configuration."""

    # Maximum requests per window
    requests_per_window: int = 100
    # Window duration in seconds
    window_seconds: int = 60
    # Path prefixes to bypass (health checks, metrics)
    bypass_prefixes: list[str] = field(
        default_factory=lambda: ["/health", "/metrics"]
    )
    # IPs to bypass (internal services)
    bypass_ips: list[str] = field(default_factory=list)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware with IP and token support.

    Features:
    - Fixed window counting shared by every instance
    - IP-based rate limiting for unauthenticated requests
    - Token-based rate limiting for authenticated requests
    - Bypass paths for health checks and metrics
    - Standard rate limit headers
    - Fails closed: 503 when Redis is unavailable
    """

    def __init__(
        self,
        app,
        limiter: FixedWindowRateLimiter,
        config: RateLimitConfig | None = None,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.config = config or RateLimitConfig()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Apply rate limiting to request."""
        path = request.url.path
        if any(path.startswith(prefix) for prefix in self.config.bypass_prefixes):
            return await call_next(request)

        client_ip = self._get_client_ip(request)
        if client_ip in self.config.bypass_ips:
            return await call_next(request)

        key = self._get_rate_limit_key(request)

        try:
            result = await self.limiter.check(
                key,
                self.config.requests_per_window,
                self.config.window_seconds,
            )
        except BackingStoreUnavailable:
            logger.error(f"Rejecting request to {path}: rate limiter unavailable")
            return JSONResponse(
                status_code=503,
                content={
                    "code": "SERVICE_UNAVAILABLE",
                    "message": "Service temporarily unavailable. Please retry later.",
                },
            )

        headers = result.headers()

        if not result.allowed:
            return JSONResponse(
                status_code=429,
                content={
                    "code": "RATE_LIMIT_EXCEEDED",
                    "message": "Rate limit exceeded. Please retry later.",
                },
                headers=headers,
            )

        response = await call_next(request)

        for name, value in headers.items():
            response.headers[name] = value

        return response

    def _get_rate_limit_key(self, request: Request) -> str:
        """Determine rate limit key from request.

        Uses token hash for authenticated requests,
        IP address for unauthenticated requests.
        """
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
            # Hash token for privacy
            token_hash = hashlib.sha256(token.encode()).hexdigest()[:16]
            return f"token:{token_hash}"

        return f"ip:{self._get_client_ip(request)}"

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP, handling proxies.

        Checks standard proxy headers in order of preference.
        """
        # Check X-Forwarded-For (common for load balancers)
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # Take the first IP (original client)
            return forwarded.split(",")[0].strip()

        # Check X-Real-IP (nginx)
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"
