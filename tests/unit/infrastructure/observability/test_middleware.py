"""Unit tests for RequestLoggingMiddleware."""

from unittest.mock import patch

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from riffsync.infrastructure.observability.logging import get_correlation_id
from riffsync.infrastructure.observability.middleware import RequestLoggingMiddleware


class TestRequestLoggingMiddleware:
    """Test suite for RequestLoggingMiddleware."""

    @pytest.fixture
    def app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware)

        @app.get("/test")
        async def test_endpoint() -> dict:
            return {"correlation_id": get_correlation_id()}

        @app.get("/missing")
        async def missing_endpoint() -> None:
            raise HTTPException(status_code=404, detail="nope")

        @app.get("/error")
        async def error_endpoint() -> None:
            raise ValueError("Test error")

        return app

    @pytest.fixture
    def client(self, app: FastAPI) -> TestClient:
        return TestClient(app)

    def test_successful_request_logs_completion(self, client: TestClient) -> None:
        with patch("riffsync.infrastructure.observability.middleware.logger") as mock_logger:
            response = client.get("/test")

        assert response.status_code == 200
        assert mock_logger.info.call_count == 1
        message = mock_logger.info.call_args.args[0]
        assert message.startswith("✓ GET /test → 200")
        assert mock_logger.info.call_args.kwargs["extra"]["status_code"] == 200

    def test_client_error_uses_cross(self, client: TestClient) -> None:
        with patch("riffsync.infrastructure.observability.middleware.logger") as mock_logger:
            response = client.get("/missing")

        assert response.status_code == 404
        assert mock_logger.info.call_args.args[0].startswith("✗ GET /missing → 404")

    def test_correlation_id_reaches_handler_and_response(self, client: TestClient) -> None:
        response = client.get("/test", headers={"X-Correlation-ID": "abc-123"})

        assert response.json() == {"correlation_id": "abc-123"}
        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_correlation_id_generated_when_absent(self, client: TestClient) -> None:
        response = client.get("/test")

        generated = response.headers["X-Correlation-ID"]
        assert generated
        assert response.json() == {"correlation_id": generated}

    def test_unhandled_error_is_logged_and_reraised(self, client: TestClient) -> None:
        with patch("riffsync.infrastructure.observability.middleware.logger") as mock_logger:
            with pytest.raises(ValueError, match="Test error"):
                client.get("/error")

        mock_logger.exception.assert_called_once()
        assert mock_logger.exception.call_args.kwargs["extra"]["error_type"] == "ValueError"
