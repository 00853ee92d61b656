"""
FastAPI Application Entry Point
-------------------------------
Main application initialization and configuration.
Registers routers, middleware, exception handlers and lifecycle handlers.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from app.core import logger_setup  # noqa: F401  configures sinks on import
from app.core.config_manager import settings
from app.core.database_connection import db_manager
from app.core.exceptions import register_exception_handlers
from app.core.redis_connection import redis_manager
from app.core.startup_diagnostics import (
    StartupFailure,
    report_service_info,
    report_startup_failure,
    verify_database_connectivity,
    verify_redis_connectivity,
)
from app.api import (
    activity_endpoints,
    admin_user_endpoints,
    config_endpoints,
    document_endpoints,
    expert_application_endpoints,
    health_endpoints,
    helpdesk_endpoints,
    notification_endpoints,
    task_endpoints,
)
from app.auth.endpoints import router as auth_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager with startup diagnostics."""

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Debug mode: {settings.debug}")

    # Database is required
    logger.info("Checking database connectivity...")
    await db_manager.initialize()
    database_status = await verify_database_connectivity()
    if database_status.status != "connected":
        report_startup_failure([database_status])
        await db_manager.close()
        raise StartupFailure([database_status])

    await db_manager.create_schema()
    await db_manager.seed_reference_data()
    logger.info("[SUCCESS] Database connected and ready")

    # Redis is optional; without it config reads go straight to the database
    redis_manager.initialize()
    redis_status = await verify_redis_connectivity()
    if redis_status.status == "connected":
        logger.info("[SUCCESS] Redis connected and ready")
    elif redis_status.status == "failed":
        report_startup_failure([redis_status])
        logger.warning("Continuing without Redis; live config is served from the database")
        await redis_manager.close()

    report_service_info()
    logger.info("[SUCCESS] Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application")
    try:
        await db_manager.close()
        await redis_manager.close()
        logger.info("Application shutdown complete")
    except Exception as e:
        logger.error(f"Shutdown error: {e}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Multi-tenant expert marketplace: applications, tasks, help-desk and live configuration",
    lifespan=lifespan,
    debug=settings.debug,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    swagger_ui_parameters={"displayRequestDuration": True},
)

# CORS: one allowed origin, credentials enabled
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.cors_allowed_origin],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

register_exception_handlers(app)

# Register routers
app.include_router(health_endpoints.router)
app.include_router(auth_router)
app.include_router(expert_application_endpoints.applicant_router)
app.include_router(expert_application_endpoints.review_router)
app.include_router(document_endpoints.router)
app.include_router(task_endpoints.router)
app.include_router(task_endpoints.expert_router)
app.include_router(helpdesk_endpoints.router)
app.include_router(admin_user_endpoints.router)
app.include_router(notification_endpoints.router)
app.include_router(activity_endpoints.router)
app.include_router(config_endpoints.router)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with basic information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "docs": "/api/docs",
        "redoc": "/api/redoc",
        "openapi": "/api/openapi.json",
    }
