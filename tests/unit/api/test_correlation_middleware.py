"""Tests for request ID propagation."""

from __future__ import annotations

import httpx
import pytest
from fastapi import FastAPI

from awid.api.middleware.correlation import CorrelationMiddleware
from awid.observability.logging import request_id_var


@pytest.fixture
def app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(CorrelationMiddleware)

    @app.get("/context")
    async def context() -> dict[str, str]:
        return {"request_id": request_id_var.get()}

    return app


def _client(app: FastAPI) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


class TestCorrelationMiddleware:
    """Tests for binding the request ID to the logging context."""

    async def test_incoming_request_id_bound_and_echoed(self, app: FastAPI) -> None:
        async with _client(app) as client:
            response = await client.get("/context", headers={"x-request-id": "req-42"})

        assert response.json() == {"request_id": "req-42"}
        assert response.headers["x-request-id"] == "req-42"

    async def test_request_id_generated_when_missing(self, app: FastAPI) -> None:
        async with _client(app) as client:
            response = await client.get("/context")

        request_id = response.json()["request_id"]
        assert request_id
        assert response.headers["x-request-id"] == request_id

    async def test_context_reset_after_request(self, app: FastAPI) -> None:
        async with _client(app) as client:
            await client.get("/context", headers={"x-request-id": "req-1"})

        assert request_id_var.get() == ""
