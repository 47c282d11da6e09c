"""Health check endpoints for AWID.

Provides Kubernetes-compatible liveness and readiness probes:
- /health/live  - Liveness probe (always returns OK if process is running)
- /health/ready - Readiness probe (checks Redis connectivity)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from awid.cache.connection import RedisConnection

router = APIRouter(tags=["health"])


class HealthStatus(str, Enum):
    """Health check status."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    latency_ms: float
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        result: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            result["message"] = self.message
        return result


async def check_redis(connection: RedisConnection) -> ComponentHealth:
    """Check Redis connectivity."""
    start = time.monotonic()
    try:
        healthy = await asyncio.wait_for(connection.health_check(), timeout=5.0)
    except asyncio.TimeoutError:
        return ComponentHealth(
            name="redis",
            status=HealthStatus.UNHEALTHY,
            latency_ms=(time.monotonic() - start) * 1000,
            message="Redis check timed out",
        )

    return ComponentHealth(
        name="redis",
        status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
        latency_ms=(time.monotonic() - start) * 1000,
        message=None if healthy else "Redis check failed",
    )


@router.get("/health/live")
async def live() -> dict[str, str]:
    """Liveness probe.

    Returns OK if the process is running.
    """
    return {"status": "ok"}


@router.get("/health/ready")
async def ready(request: Request) -> JSONResponse:
    """Readiness probe.

    Returns 200 if Redis answers, 503 otherwise.
    """
    redis_result = await check_redis(request.app.state.runtime.connection)
    healthy = redis_result.status == HealthStatus.HEALTHY

    result = {
        "status": redis_result.status.value,
        "components": [redis_result.to_dict()],
    }
    return JSONResponse(content=result, status_code=200 if healthy else 503)
