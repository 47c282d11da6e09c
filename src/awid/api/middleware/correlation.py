"""Correlation context middleware for request tracing.

Binds a request ID to the logging context so every log line written while
handling a request (cache misses, lock contention, store outages) carries it.
"""

from __future__ import annotations

import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from awid.observability.logging import request_id_var


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware for propagating the request ID.

    The ID is taken from ``x-request-id`` (or the AWS ALB header) when a
    proxy already assigned one, otherwise generated. It is exposed on
    ``request.state.request_id`` and echoed in the response headers.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Extract and propagate correlation context."""
        request_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-amzn-requestid")  # AWS ALB
            or str(uuid.uuid4())
        )

        token = request_id_var.set(request_id)
        try:
            request.state.request_id = request_id
            response = await call_next(request)
            response.headers["x-request-id"] = request_id
            return response
        finally:
            request_id_var.reset(token)
