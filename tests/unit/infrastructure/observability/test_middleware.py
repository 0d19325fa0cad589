"""Unit tests for RequestLoggingMiddleware."""

from unittest.mock import patch

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from labelcatalog.infrastructure.observability.middleware import (
    CORRELATION_HEADER,
    RequestLoggingMiddleware,
)


class TestRequestLoggingMiddleware:
    """Test suite for RequestLoggingMiddleware."""

    @pytest.fixture
    def app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware)

        @app.get("/test")
        async def test_endpoint() -> dict[str, str]:
            return {"message": "test"}

        @app.get("/missing")
        async def missing_endpoint() -> None:
            raise HTTPException(status_code=404)

        @app.get("/error")
        async def error_endpoint() -> None:
            raise ValueError("Test error")

        return app

    @pytest.fixture
    def client(self, app: FastAPI) -> TestClient:
        return TestClient(app, raise_server_exceptions=False)

    def test_successful_request_logs_start_and_completion(self, client: TestClient) -> None:
        """Test that a request logs once on entry and once on completion."""
        with patch("labelcatalog.infrastructure.observability.middleware.logger") as mock_logger:
            response = client.get("/test")

        assert response.status_code == 200
        assert mock_logger.info.call_count == 2
        completion = mock_logger.info.call_args_list[1][0][0]
        assert completion.startswith("✓ GET /test")
        assert "200" in completion

    def test_error_status_marked(self, client: TestClient) -> None:
        with patch("labelcatalog.infrastructure.observability.middleware.logger") as mock_logger:
            response = client.get("/missing")

        assert response.status_code == 404
        assert mock_logger.info.call_args_list[1][0][0].startswith("✗ GET /missing")

    def test_correlation_id_echoed(self, client: TestClient) -> None:
        response = client.get("/test", headers={CORRELATION_HEADER: "abc-123"})

        assert response.headers[CORRELATION_HEADER] == "abc-123"

    def test_correlation_id_generated_when_missing(self, client: TestClient) -> None:
        response = client.get("/test")

        assert len(response.headers[CORRELATION_HEADER]) == 36

    def test_unhandled_exception_logged(self, client: TestClient) -> None:
        with patch("labelcatalog.infrastructure.observability.middleware.logger") as mock_logger:
            response = client.get("/error")

        assert response.status_code == 500
        mock_logger.exception.assert_called_once()
        assert mock_logger.exception.call_args.kwargs["extra"]["error_type"] == "ValueError"
