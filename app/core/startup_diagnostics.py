"""
Startup Diagnostics Module
-------------------------
Handles service connectivity verification and error reporting during application startup.
Provides clear, actionable error messages when infrastructure services are unavailable.
"""

from dataclasses import dataclass
from typing import Optional, Dict, List
from loguru import logger

from app.core.config_manager import settings
from app.core.database_connection import db_manager
from app.core.redis_connection import redis_manager


@dataclass
class ServiceStatus:
    """Track service connection status with detailed error information."""

    name: str
    status: str  # "connected", "failed", "skipped"
    error_message: Optional[str] = None
    suggestion: Optional[str] = None
    connection_details: Optional[Dict[str, str]] = None


class StartupFailure(RuntimeError):
    """Raised when a required backing service cannot be reached."""

    def __init__(self, failed_services: List[ServiceStatus]):
        self.failed_services = failed_services
        names = ", ".join(service.name for service in failed_services)
        super().__init__(f"Required services unavailable: {names}")


def report_startup_failure(failed_services: List[ServiceStatus]) -> None:
    """Log a formatted startup failure report."""
    for service in failed_services:
        details = ""
        if service.connection_details:
            details = ", ".join(
                f"{key}={value}" for key, value in service.connection_details.items()
            )
        logger.error(
            f"[FATAL] {service.name}: {service.status.upper()} - {service.error_message}"
            + (f" ({details})" if details else "")
        )
        if service.suggestion:
            logger.error(f"   >> Suggestion: {service.suggestion}")


def report_service_info() -> None:
    """Log service endpoints once every dependency is reachable."""
    local_api_base = f"http://localhost:{settings.fastapi_port}"
    logger.info(f"API documentation: {local_api_base}/api/docs")
    logger.info(f"Health check:      {local_api_base}/api/health")
    logger.info(f"Database backend:  {settings.database_url.split('://')[0]}")
    if redis_manager.is_available:
        logger.info(f"Redis cache:       {settings.redis_host}:{settings.redis_port}")
    else:
        logger.info("Redis cache:       disabled")


def _database_details() -> Dict[str, str]:
    if settings.database_url_override:
        return {"url": settings.database_url.split("@")[-1]}
    return {
        "host": settings.database_host,
        "port": str(settings.database_port),
        "database": settings.database_name,
    }


async def verify_database_connectivity() -> ServiceStatus:
    """Verify database connectivity with detailed error reporting."""
    if await db_manager.ping():
        return ServiceStatus(
            name="Database", status="connected", connection_details=_database_details()
        )
    return ServiceStatus(
        name="Database",
        status="failed",
        error_message="Connection test query failed",
        suggestion="Check DATABASE_URL or the DATABASE_* settings and credentials",
        connection_details=_database_details(),
    )


async def verify_redis_connectivity() -> ServiceStatus:
    """Verify Redis connectivity with detailed error reporting."""
    if not settings.redis_enabled:
        return ServiceStatus(name="Redis", status="skipped")

    details = {
        "host": settings.redis_host,
        "port": str(settings.redis_port),
        "database": str(settings.redis_db),
    }
    if await redis_manager.ping():
        return ServiceStatus(name="Redis", status="connected", connection_details=details)
    return ServiceStatus(
        name="Redis",
        status="failed",
        error_message="Redis server did not respond to ping",
        suggestion="Start Redis or set REDIS_ENABLED=false to run without the cache",
        connection_details=details,
    )
