"""
Health Check Endpoints
---------------------
Health monitoring endpoints for the service and its backing stores.
Provides status checks for the database and the Redis cache.
"""

from datetime import datetime, timezone
from fastapi import APIRouter
from loguru import logger

from app.models.response_models import HealthStatus, DependencyHealth
from app.core.config_manager import settings
from app.core.database_connection import db_manager
from app.core.redis_connection import redis_manager


router = APIRouter(prefix="/api/health", tags=["Health"])


@router.get("", response_model=HealthStatus)
async def health_check():
    """
    Basic health check endpoint.
    Returns service status and version information.
    """
    logger.debug("Health check requested")

    return HealthStatus(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=settings.app_version,
    )


@router.get("/dependencies", response_model=DependencyHealth, status_code=200)
async def check_dependencies():
    """
    Check health of all service dependencies.

    Always returns 200 with per-component detail; the overall status is
    'unhealthy' if any enabled component fails. Redis reports 'disabled'
    when caching is switched off and does not affect the overall status.
    """
    logger.debug("Dependency health check requested")

    database_healthy = await db_manager.ping()

    if settings.redis_enabled:
        redis_healthy = await redis_manager.ping()
        redis_status = "healthy" if redis_healthy else "unhealthy"
    else:
        redis_healthy = True
        redis_status = "disabled"

    all_healthy = database_healthy and redis_healthy
    if not all_healthy:
        logger.warning(
            f"Infrastructure health check detected issues: "
            f"database={database_healthy}, redis={redis_status}"
        )

    return DependencyHealth(
        status="healthy" if all_healthy else "unhealthy",
        database="healthy" if database_healthy else "unhealthy",
        redis=redis_status,
        timestamp=datetime.now(timezone.utc),
    )
