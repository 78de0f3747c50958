"""
Integration Tests for service-level endpoints

Tests:
- Root endpoint
- Health check with and without a reachable database
"""

from unittest.mock import AsyncMock, patch

from sqlalchemy.exc import OperationalError


class TestRootEndpoint:

    def test_root_returns_api_info(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Trade Card Builder API"
        assert data["docs"] == "/docs"


class TestHealthEndpoint:

    def test_without_database_url(self, client):
        from app.main import settings

        with patch.object(settings, "database_url", None):
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "trade-card-builder"
        assert data["database"] == "not-configured"
        assert data["services"]["billing"] == "polar"

    def test_database_connected(self, client):
        from app.main import settings

        with patch.object(settings, "database_url", "postgresql://u:p@db/app"), \
             patch("app.main.ping", AsyncMock()) as ping:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] == "connected"
        ping.assert_awaited_once()

    def test_database_unreachable(self, client):
        from app.main import settings

        failure = OperationalError("SELECT 1", {}, Exception("connection refused"))
        with patch.object(settings, "database_url", "postgresql://u:p@db/app"), \
             patch("app.main.ping", AsyncMock(side_effect=failure)):
            response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"
        assert response.json()["database"] == "unreachable"
