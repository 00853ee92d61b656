"""
Configuration Manager
--------------------
Centralized configuration management using Pydantic Settings.
All application settings are loaded from environment variables with validation.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class ApplicationSettings(BaseSettings):
    """Main application configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Application metadata
    app_name: str = Field(default="ProVeloce Connect", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # FastAPI server configuration
    fastapi_host: str = Field(default="0.0.0.0", description="FastAPI host")
    fastapi_port: int = Field(default=8000, description="FastAPI port")

    # Database configuration (PostgreSQL in production, SQLite for local runs)
    database_url_override: Optional[str] = Field(
        default=None,
        alias="database_url",
        description="Full async SQLAlchemy URL; overrides the PostgreSQL fields",
    )
    database_host: str = Field(default="localhost", description="PostgreSQL host")
    database_port: int = Field(default=5432, description="PostgreSQL port")
    database_user: str = Field(default="proveloce", description="PostgreSQL user")
    database_password: str = Field(
        default="proveloce", description="PostgreSQL password"
    )
    database_name: str = Field(
        default="proveloce_connect", description="PostgreSQL database name"
    )
    database_pool_size: int = Field(default=20, description="Connection pool size")
    database_max_overflow: int = Field(
        default=10, description="Max overflow connections"
    )
    default_org_id: str = Field(
        default="ORG-DEFAULT", description="Tenant assigned to accounts without one"
    )

    # Redis configuration
    redis_enabled: bool = Field(default=True, description="Use Redis for caching")
    redis_host: str = Field(default="localhost", description="Redis host")
    redis_port: int = Field(default=6379, description="Redis port")
    redis_db: int = Field(default=0, description="Redis database number")
    redis_password: Optional[str] = Field(default=None, description="Redis password")
    redis_max_connections: int = Field(default=50, description="Redis max connections")
    config_cache_ttl_seconds: int = Field(
        default=30, description="TTL of the cached live configuration map"
    )

    # JWT configuration
    jwt_secret_key: str = Field(
        default="change-me-in-production", description="JWT signing secret"
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(
        default=7 * 24 * 60, description="Access credential lifetime in minutes"
    )
    refresh_token_expire_hours: int = Field(
        default=24, description="Refresh credential lifetime in hours"
    )

    # Google OAuth configuration
    google_client_id: Optional[str] = Field(
        default=None, description="Google OAuth client id"
    )
    google_client_secret: Optional[str] = Field(
        default=None, description="Google OAuth client secret"
    )
    google_redirect_uri: str = Field(
        default="http://localhost:8000/api/auth/google/callback",
        description="Google OAuth redirect URI",
    )

    # Frontend integration
    frontend_url: str = Field(
        default="http://localhost:5173", description="Frontend base URL"
    )
    cors_allowed_origin: str = Field(
        default="http://localhost:5173", description="Single allowed CORS origin"
    )

    # Document storage
    storage_root: str = Field(
        default="storage", description="Root directory of the object storage"
    )
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024, description="Maximum document size in bytes"
    )
    document_url_ttl_seconds: int = Field(
        default=600, description="Lifetime of signed document stream URLs"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is acceptable."""
        valid_levels = ["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper

    @field_validator("frontend_url", "cors_allowed_origin")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def database_url(self) -> str:
        """Construct the async database URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def redis_url(self) -> str:
        """Construct Redis URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @property
    def access_token_expire_seconds(self) -> int:
        return self.access_token_expire_minutes * 60

    @property
    def google_oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


# Global settings instance
settings = ApplicationSettings()
