"""
Unit Tests for Health Endpoints
===============================
Basic health check, dependency health check and the service root.

Test Coverage:
- Basic health check endpoint
- Dependency health check endpoint (database, Redis enabled/disabled)
- Root endpoint
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from app.models.response_models import DependencyHealth, HealthStatus


# ============================================================================
# BASIC HEALTH CHECK TESTS
# ============================================================================


class TestBasicHealthCheck:
    """Test cases for basic health check endpoint."""

    def test_health_check_success(self, client):
        """Test successful health check returns correct response."""
        # Act
        response = client.get("/api/health")

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        timestamp = datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))
        assert (datetime.now(timezone.utc) - timestamp).total_seconds() < 60

    @patch("app.api.health_endpoints.settings")
    def test_health_check_reports_configured_version(self, mock_settings, client):
        """Test health check response matches HealthStatus schema."""
        # Arrange
        mock_settings.app_version = "2.1.0"

        # Act
        response = client.get("/api/health")

        # Assert
        health_status = HealthStatus(**response.json())
        assert health_status.version == "2.1.0"


# ============================================================================
# DEPENDENCY HEALTH CHECK TESTS
# ============================================================================


class TestDependencyHealthCheck:
    """Test cases for dependency health check endpoint."""

    def test_database_healthy_redis_disabled(self, client):
        response = client.get("/api/health/dependencies")

        assert response.status_code == 200
        data = DependencyHealth(**response.json())
        assert data.status == "healthy"
        assert data.database == "healthy"
        assert data.redis == "disabled"

    @patch("app.api.health_endpoints.db_manager")
    def test_database_unhealthy(self, mock_db_manager, client):
        """Test database failure flips the overall status but still returns 200."""
        # Arrange
        mock_db_manager.ping = AsyncMock(return_value=False)

        # Act
        response = client.get("/api/health/dependencies")

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["database"] == "unhealthy"
        assert data["status"] == "unhealthy"

    @patch("app.api.health_endpoints.redis_manager")
    @patch("app.api.health_endpoints.settings")
    def test_redis_enabled_and_unhealthy(self, mock_settings, mock_redis_manager, client):
        # Arrange
        mock_settings.redis_enabled = True
        mock_redis_manager.ping = AsyncMock(return_value=False)

        # Act
        response = client.get("/api/health/dependencies")

        # Assert
        data = response.json()
        assert data["redis"] == "unhealthy"
        assert data["database"] == "healthy"
        assert data["status"] == "unhealthy"

    @patch("app.api.health_endpoints.redis_manager")
    @patch("app.api.health_endpoints.settings")
    def test_redis_enabled_and_healthy(self, mock_settings, mock_redis_manager, client):
        mock_settings.redis_enabled = True
        mock_redis_manager.ping = AsyncMock(return_value=True)

        data = client.get("/api/health/dependencies").json()

        assert data["redis"] == "healthy"
        assert data["status"] == "healthy"


# ============================================================================
# ROOT ENDPOINT
# ============================================================================


class TestRoot:
    def test_root_lists_documentation(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "ProVeloce Connect"
        assert data["status"] == "running"
        assert data["docs"] == "/api/docs"

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get("/api/nope")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": "NOT_FOUND",
            "message": "Not Found",
        }
