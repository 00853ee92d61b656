"""
Activity Log Endpoints
----------------------
Read access to the audit trail: ADMIN for its organization, SUPERADMIN for all.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from loguru import logger

from app.auth.dependencies import require_activity_viewer
from app.auth.models import AuthTokenPayload
from app.auth.permissions import tenant_scope
from app.core.exceptions import ValidationFailed
from app.models.response_models import pagination_block, success_response
from app.psql_db_services.activity_log_service import ActivityLogService

router = APIRouter(prefix="/api/activity", tags=["Activity"])


@router.get("", summary="Newest activity entries")
async def list_activity(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    action: Optional[str] = None,
    user_id: Optional[str] = Query(default=None, alias="userId"),
    current_user: AuthTokenPayload = Depends(require_activity_viewer),
):
    try:
        result = await ActivityLogService().list_entries(
            tenant_scope(current_user.role, current_user.org_id),
            page,
            limit,
            action=action,
            user_id=user_id,
        )
        return success_response(
            {
                "entries": jsonable_encoder(result["entries"]),
                "pagination": pagination_block(page, limit, result["total"]),
            }
        )
    except ValueError as e:
        raise ValidationFailed(str(e))
    except Exception as e:
        logger.exception(f"Error listing activity: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load activity",
        )
