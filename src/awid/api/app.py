"""ASGI application factory for AWID.

Wires the coordination runtime into a FastAPI service: the lifespan connects
Redis on startup and closes it on shutdown, and the rate limiter admits every
request that is not a health probe.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from awid.api.middleware.correlation import CorrelationMiddleware
from awid.api.middleware.rate_limit import RateLimitConfig, RateLimitMiddleware
from awid.api.routers import health
from awid.observability.logging import configure_logging
from awid.runtime import CoordinationRuntime

logger = logging.getLogger(__name__)


def create_app(runtime: CoordinationRuntime | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        runtime: Coordination runtime to serve; built from settings if None
    """
    runtime = runtime or CoordinationRuntime.from_settings()
    config = runtime.config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Connect Redis on startup, close it on shutdown."""
        configure_logging(json_format=config.log_json, level=config.log_level)

        logger.info(f"Starting {config.app_name} ({config.env})")
        await runtime.start()

        yield

        logger.info(f"Shutting down {config.app_name}")
        await runtime.stop()

    app = FastAPI(title=config.app_name, lifespan=lifespan)
    app.state.runtime = runtime

    if config.enable_rate_limiting:
        app.add_middleware(
            RateLimitMiddleware,
            limiter=runtime.rate_limiter,
            config=RateLimitConfig(
                requests_per_window=config.rate_limit_requests,
                window_seconds=config.rate_limit_window,
            ),
        )

    # Added last so it wraps every other middleware
    app.add_middleware(CorrelationMiddleware)

    app.include_router(health.router)

    return app
