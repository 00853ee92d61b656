"""
Expert Application Endpoints
----------------------------
Applicant endpoints (``/api/expert-application``) and reviewer endpoints
(``/api/applications``) for the expert onboarding workflow.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from app.auth.dependencies import get_current_user, require_reviewer
from app.auth.models import AuthTokenPayload
from app.core.exceptions import Forbidden, PlatformError, ValidationFailed
from app.models.request_models import (
    ApplicationRejectRequest,
    ApplicationRemoveRequest,
    ExpertApplicationUpdateRequest,
)
from app.models.response_models import (
    ExpertApplicationResponse,
    pagination_block,
    success_response,
)
from app.psql_db_services.expert_applications_service import ExpertApplicationsService
from app.psql_db_services.system_config_service import SystemConfigService

# ============================================================================
# ROUTER INITIALIZATION
# ============================================================================

applicant_router = APIRouter(prefix="/api/expert-application", tags=["Expert Application"])
review_router = APIRouter(prefix="/api/applications", tags=["Application Review"])


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.exception(f"Error during {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


# ============================================================================
# APPLICANT ENDPOINTS
# ============================================================================


@applicant_router.get("", summary="Get (or start) my expert application")
async def get_my_application(current_user: AuthTokenPayload = Depends(get_current_user)):
    try:
        application = await ExpertApplicationsService().get_or_create_draft(current_user)
        return success_response(ExpertApplicationResponse.from_row(application).dump())
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("load application", e)


@applicant_router.post("", summary="Save draft application fields")
async def save_my_application(
    request: ExpertApplicationUpdateRequest,
    current_user: AuthTokenPayload = Depends(get_current_user),
):
    """
    Raises:
        InvalidTransition 400: Application is PENDING, APPROVED or REVOKED
    """
    try:
        application = await ExpertApplicationsService().save_draft(current_user, request)
        return success_response(
            ExpertApplicationResponse.from_row(application).dump(), "Application saved"
        )
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e))
    except Exception as e:
        raise _internal_error("save application", e)


@applicant_router.post("/submit", summary="Submit my application for review")
async def submit_my_application(current_user: AuthTokenPayload = Depends(get_current_user)):
    try:
        if not await SystemConfigService().is_enabled("expert_applications_open"):
            raise Forbidden(
                "Expert applications are currently closed",
                error_code="APPLICATIONS_CLOSED",
            )
        application = await ExpertApplicationsService().submit(current_user)
        return success_response(
            ExpertApplicationResponse.from_row(application).dump(),
            "Application submitted successfully",
        )
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("submit application", e)


# ============================================================================
# REVIEWER ENDPOINTS
# ============================================================================


@review_router.get("", summary="List applications in scope")
async def list_applications(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: AuthTokenPayload = Depends(require_reviewer),
):
    """ADMIN sees its own organization; SUPERADMIN sees every organization."""
    try:
        result = await ExpertApplicationsService().list_applications(
            current_user, status_filter, page, limit
        )
        return success_response(
            {
                "applications": [
                    ExpertApplicationResponse.from_row(row).dump()
                    for row in result["applications"]
                ],
                "pagination": pagination_block(page, limit, result["total"]),
            }
        )
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e), fields=["status"])
    except Exception as e:
        raise _internal_error("list applications", e)


@review_router.get("/{application_id}", summary="Get one application")
async def get_application(
    application_id: str, current_user: AuthTokenPayload = Depends(get_current_user)
):
    try:
        application = await ExpertApplicationsService().get_application(
            current_user, application_id
        )
        return success_response(ExpertApplicationResponse.from_row(application).dump())
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("load application", e)


@review_router.post("/{application_id}/approve", summary="Approve a pending application")
async def approve_application(
    application_id: str, current_user: AuthTokenPayload = Depends(require_reviewer)
):
    try:
        application = await ExpertApplicationsService().approve(current_user, application_id)
        return success_response(
            ExpertApplicationResponse.from_row(application).dump(), "Application approved"
        )
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("approve application", e)


@review_router.post("/{application_id}/reject", summary="Reject a pending application")
async def reject_application(
    application_id: str,
    request: ApplicationRejectRequest,
    current_user: AuthTokenPayload = Depends(require_reviewer),
):
    try:
        application = await ExpertApplicationsService().reject(
            current_user, application_id, request.reason
        )
        return success_response(
            ExpertApplicationResponse.from_row(application).dump(), "Application rejected"
        )
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e), fields=["reason"])
    except Exception as e:
        raise _internal_error("reject application", e)


@review_router.post("/{application_id}/remove", summary="Revoke an approved expert")
async def remove_application(
    application_id: str,
    request: ApplicationRemoveRequest,
    current_user: AuthTokenPayload = Depends(require_reviewer),
):
    try:
        application = await ExpertApplicationsService().remove(
            current_user, application_id, request.reason, request.permanent_ban
        )
        return success_response(
            ExpertApplicationResponse.from_row(application).dump(), "Expert status revoked"
        )
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e), fields=["reason"])
    except Exception as e:
        raise _internal_error("remove expert", e)
