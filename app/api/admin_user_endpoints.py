"""
Admin User Management Endpoints
-------------------------------
User listing, creation, editing and soft deactivation for ADMIN (own
organization) and SUPERADMIN (global).

Edits require an explicit confirmation gate in the body:
``save_cta_state="enabled"`` and ``save_cta_action="commit_changes_to_db"``.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from loguru import logger

from app.auth.dependencies import require_user_admin
from app.auth.models import AuthTokenPayload
from app.core.exceptions import PlatformError, ValidationFailed
from app.models.request_models import AdminUserCreateRequest, AdminUserUpdateRequest
from app.models.response_models import UserProfile, pagination_block, success_response
from app.psql_db_services.users_service import UsersService

# ============================================================================
# ROUTER INITIALIZATION
# ============================================================================

router = APIRouter(prefix="/api/admin/users", tags=["Admin Users"])


@router.get("", summary="List users in scope")
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    role: Optional[str] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    search: Optional[str] = None,
    current_user: AuthTokenPayload = Depends(require_user_admin),
):
    """
    SUPERADMIN sees every account except SUPERADMINs; ADMIN sees customers,
    experts and analysts of its organization.
    """
    try:
        result = await UsersService().list_users(
            current_user, page, limit, role=role, status=status_filter, search=search
        )
        return success_response(
            {
                "users": [UserProfile.from_row(row).dump() for row in result["users"]],
                "pagination": pagination_block(page, limit, result["total"]),
            }
        )
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e))
    except Exception as e:
        logger.exception(f"Error listing users: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list users",
        )


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a user")
async def create_user(
    request: AdminUserCreateRequest,
    current_user: AuthTokenPayload = Depends(require_user_admin),
):
    """
    Raises:
        Forbidden 403: ADMIN creating ADMIN or SUPERADMIN
        Conflict 409: Email already registered
    """
    logger.info(f"Admin {current_user.user_id} creating user {request.email} ({request.role.value})")
    try:
        user = await UsersService().admin_create_user(current_user, request)
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=success_response(UserProfile.from_row(user).dump(), "User created"),
        )
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e))
    except Exception as e:
        logger.exception(f"Error creating user: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user. Please try again later.",
        )


@router.patch("/{user_id}", summary="Update a user")
async def update_user(
    user_id: str,
    request: AdminUserUpdateRequest,
    current_user: AuthTokenPayload = Depends(require_user_admin),
):
    try:
        user = await UsersService().admin_update_user(current_user, user_id, request)
        return success_response(UserProfile.from_row(user).dump(), "User updated")
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e))
    except Exception as e:
        logger.exception(f"Error updating user {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update user",
        )


@router.delete("/{user_id}", summary="Deactivate a user")
async def deactivate_user(
    user_id: str, current_user: AuthTokenPayload = Depends(require_user_admin)
):
    """Soft delete: the account becomes INACTIVE and its refresh tokens are revoked."""
    try:
        await UsersService().deactivate_user(current_user, user_id)
        return success_response(message="User deactivated")
    except PlatformError:
        raise
    except Exception as e:
        logger.exception(f"Error deactivating user {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to deactivate user",
        )
