"""
System Configuration Endpoints
------------------------------
Public configuration reads for every client and SUPERADMIN writes.

``/api/configuration`` is the fast live-poll endpoint: served from the Redis
cache when enabled and never cached by browsers or proxies.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.encoders import jsonable_encoder
from loguru import logger

from app.auth.dependencies import require_superadmin
from app.auth.models import AuthTokenPayload
from app.core.exceptions import PlatformError, ValidationFailed
from app.models.request_models import ConfigUpdateRequest
from app.models.response_models import success_response
from app.psql_db_services.system_config_service import SystemConfigService

router = APIRouter(tags=["Configuration"])


@router.get("/api/config/public", summary="Full public configuration map")
async def public_config():
    try:
        return success_response(await SystemConfigService().get_public_config())
    except Exception as e:
        logger.exception(f"Error loading public config: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load configuration",
        )


@router.get("/api/configuration", summary="Live configuration (polled)")
async def live_config(response: Response):
    response.headers["Cache-Control"] = "no-store"
    try:
        return success_response(await SystemConfigService().get_live_config())
    except Exception as e:
        logger.exception(f"Error loading live config: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load configuration",
        )


@router.get("/api/config", summary="All configuration rows")
async def list_config(current_user: AuthTokenPayload = Depends(require_superadmin)):
    try:
        return success_response(jsonable_encoder(await SystemConfigService().list_rows()))
    except Exception as e:
        logger.exception(f"Error listing config rows: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load configuration",
        )


@router.put("/api/config/{key}", summary="Set a configuration value")
async def update_config(
    key: str,
    request: ConfigUpdateRequest,
    current_user: AuthTokenPayload = Depends(require_superadmin),
):
    logger.info(f"Config {key} updated by {current_user.user_id}")
    try:
        row = await SystemConfigService().set_value(current_user, key, request)
        return success_response(jsonable_encoder(row), "Configuration updated")
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e))
    except Exception as e:
        logger.exception(f"Error updating config {key}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update configuration",
        )
