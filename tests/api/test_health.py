"""Tests for health check and root endpoints."""

from __future__ import annotations

from fastapi.testclient import TestClient

from main import app


class TestHealthCheck:
    """Tests for basic health check endpoint."""

    def test_health_check_returns_success(self) -> None:
        client = TestClient(app)
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"]["status"] == "healthy"
        assert "IconStream" in data["data"]["message"]
        assert data["data"]["upstream_configured"] is True
        assert data["message"] == "Health check successful"

    def test_health_reports_missing_credential(self) -> None:
        from core.config import Settings, get_settings

        app.dependency_overrides[get_settings] = lambda: Settings(
            _env_file=None, FAL_KEY=""  # type: ignore[call-arg]
        )
        try:
            response = TestClient(app).get("/api/health")
        finally:
            app.dependency_overrides.pop(get_settings, None)

        assert response.json()["data"]["upstream_configured"] is False


def test_root_greeting() -> None:
    response = TestClient(app).get("/")

    assert response.status_code == 200
    assert "IconStream" in response.text


def test_unknown_route_uses_error_shape() -> None:
    response = TestClient(app).get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json()["error"] == "Not Found"
