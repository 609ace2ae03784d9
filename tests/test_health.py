"""Tests for health check endpoints."""

from __future__ import annotations

from fastapi.testclient import TestClient

from main import app


class TestHealthCheck:
    """Tests for basic health check endpoint."""

    def test_health_check_returns_success(self) -> None:
        """Test basic health check returns healthy status."""
        client = TestClient(app)
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"]["status"] == "healthy"
        assert "IEEE Paper Formatter" in data["data"]["message"]
        assert data["message"] == "Health check successful"

    def test_health_check_response_structure(self) -> None:
        """Test health check response matches ApiResponse schema."""
        client = TestClient(app)
        response = client.get("/api/v1/health")

        data = response.json()
        assert "success" in data
        assert "data" in data
        assert "message" in data
        assert isinstance(data["data"], dict)
        assert "status" in data["data"]

    def test_correlation_id_is_echoed(self) -> None:
        client = TestClient(app)
        response = client.get("/api/v1/health", headers={"X-Correlation-ID": "abc-123"})
        assert response.headers["X-Correlation-ID"] == "abc-123"
