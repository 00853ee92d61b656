"""
Unit Tests for Config Manager
=============================
Unit tests for the ApplicationSettings configuration management system.

Test Coverage:
- Default configuration values
- Field validators
- Computed properties
- Environment variable loading
"""

import pytest
from pydantic import ValidationError

from app.core.config_manager import ApplicationSettings

TEST_ENVIRONMENT = [
    "DEBUG",
    "LOG_LEVEL",
    "REDIS_ENABLED",
    "JWT_SECRET_KEY",
    "DATABASE_URL",
    "FRONTEND_URL",
    "CORS_ALLOWED_ORIGIN",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove the test-suite environment so defaults are visible."""
    for name in TEST_ENVIRONMENT:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def load_settings(**overrides) -> ApplicationSettings:
    return ApplicationSettings(_env_file=None, **overrides)


class TestApplicationSettingsDefaults:
    """Test default configuration values."""

    def test_default_settings(self, clean_env):
        """Test that all default values are set correctly."""
        # Act
        settings = load_settings()

        # Assert - Application metadata
        assert settings.app_name == "ProVeloce Connect"
        assert settings.app_version == "1.0.0"
        assert settings.debug is False
        assert settings.log_level == "INFO"

        # Assert - Database configuration
        assert settings.database_url_override is None
        assert settings.database_pool_size == 20
        assert settings.default_org_id == "ORG-DEFAULT"

        # Assert - Redis configuration
        assert settings.redis_enabled is True
        assert settings.redis_password is None
        assert settings.config_cache_ttl_seconds == 30

        # Assert - Credentials
        assert settings.jwt_algorithm == "HS256"
        assert settings.access_token_expire_minutes == 7 * 24 * 60
        assert settings.refresh_token_expire_hours == 24

        # Assert - Documents
        assert settings.max_upload_bytes == 10 * 1024 * 1024
        assert settings.document_url_ttl_seconds == 600


class TestFieldValidators:
    """Test field validators."""

    @pytest.mark.parametrize("valid_level", ["debug", "INFO", "Warning", "TRACE"])
    def test_validate_log_level_valid(self, valid_level):
        settings = load_settings(log_level=valid_level)

        assert settings.log_level == valid_level.upper()

    def test_validate_log_level_invalid(self):
        with pytest.raises(ValidationError, match="Log level must be one of"):
            load_settings(log_level="VERBOSE")

    def test_frontend_urls_lose_trailing_slash(self):
        settings = load_settings(
            frontend_url="https://app.proveloce.io/",
            cors_allowed_origin="https://app.proveloce.io/",
        )

        assert settings.frontend_url == "https://app.proveloce.io"
        assert settings.cors_allowed_origin == "https://app.proveloce.io"


class TestComputedProperties:
    """Test computed properties."""

    def test_database_url_from_parts(self, clean_env):
        settings = load_settings(
            database_host="db",
            database_port=5433,
            database_user="svc",
            database_password="pw",
            database_name="marketplace",
        )

        assert settings.database_url == "postgresql+asyncpg://svc:pw@db:5433/marketplace"

    def test_database_url_override(self, clean_env):
        settings = load_settings(database_url="sqlite+aiosqlite:///./local.db")

        assert settings.database_url == "sqlite+aiosqlite:///./local.db"

    def test_redis_url_without_password(self):
        settings = load_settings(redis_host="cache", redis_port=6380, redis_db=2)

        assert settings.redis_url == "redis://cache:6380/2"

    def test_redis_url_with_password(self):
        settings = load_settings(redis_host="cache", redis_password="secret")

        assert settings.redis_url == "redis://:secret@cache:6379/0"

    def test_access_token_expire_seconds(self):
        settings = load_settings(access_token_expire_minutes=15)

        assert settings.access_token_expire_seconds == 900

    def test_google_oauth_configured(self):
        assert load_settings().google_oauth_configured is False
        assert (
            load_settings(google_client_id="id", google_client_secret="secret")
            .google_oauth_configured
            is True
        )


class TestEnvironmentLoading:
    """Test environment variable loading."""

    def test_load_from_environment_variables(self, clean_env):
        """Test loading configuration from environment variables."""
        clean_env.setenv("APP_NAME", "Test App")
        clean_env.setenv("DEBUG", "true")
        clean_env.setenv("LOG_LEVEL", "DEBUG")
        clean_env.setenv("FASTAPI_PORT", "9000")
        clean_env.setenv("REDIS_ENABLED", "false")
        clean_env.setenv("DATABASE_URL", "sqlite+aiosqlite:///./env.db")

        settings = load_settings()

        assert settings.app_name == "Test App"
        assert settings.debug is True
        assert settings.log_level == "DEBUG"
        assert settings.fastapi_port == 9000
        assert settings.redis_enabled is False
        assert settings.database_url == "sqlite+aiosqlite:///./env.db"

    def test_case_insensitive_env_vars(self, clean_env):
        """Test case-insensitive environment variable loading."""
        clean_env.setenv("app_name", "Test App Case")
        clean_env.setenv("max_upload_bytes", "2048")

        settings = load_settings()

        assert settings.app_name == "Test App Case"
        assert settings.max_upload_bytes == 2048
