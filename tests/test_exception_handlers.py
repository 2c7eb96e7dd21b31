"""Tests for global exception handlers.

Validates that every error type maps to the right HTTP status with the
shared error envelope and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from playex.core.errors import (
    AppError,
    ConfigurationAppError,
    RateLimitAppError,
)
from playex.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestAppErrorHandler:
    """Handler for AppError and subclasses."""

    def test_plain_app_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise AppError(code="bad_input", message="Bad input")

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "bad_input"
        assert data["error"]["message"] == "Bad input"
        assert "request_id" in data["error"]
        assert "details" not in data["error"]

    def test_rate_limit_error_returns_429_with_headers(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-rate-limit")
        async def test_endpoint():
            raise RateLimitAppError(
                code="rate_limited",
                message="Too many requests",
                details={"retry_after": 8, "limit": 5},
                headers={"Retry-After": "8"},
            )

        response = client.get("/test-rate-limit")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "8"
        assert response.json()["error"]["details"] == {"retry_after": 8, "limit": 5}

    def test_configuration_error_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-config")
        async def test_endpoint():
            raise ConfigurationAppError(code="bad_config", message="Misconfigured")

        response = client.get("/test-config")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "bad_config"

    def test_str_of_app_error_is_its_message(self):
        assert str(AppError(code="x", message="readable")) == "readable"


class TestHttpExceptionHandler:
    def test_not_found_includes_path(self, client: TestClient):
        response = client.get("/missing")

        assert response.status_code == 404
        assert response.json() == {"message": "Route not found", "path": "/missing"}

    def test_method_not_allowed_keeps_detail(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/only-get")
        async def test_endpoint():
            return {}

        response = client.post("/only-get")

        assert response.status_code == 405
        assert response.json() == {"message": "Method Not Allowed"}


class TestGeneralExceptionHandler:
    """Fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        assert Exception in app_with_handlers.exception_handlers

    def test_general_exception_handler_hides_details(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("counter store corrupted at shard 3")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "shard" not in data["error"]["message"]
        assert "RuntimeError" not in bytes(response.body).decode()


def test_setup_exception_handlers_is_repeatable():
    app = FastAPI()

    setup_exception_handlers(app)
    setup_exception_handlers(app)

    assert AppError in app.exception_handlers
