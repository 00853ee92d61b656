"""
FastAPI Authentication Dependencies
-----------------------------------
FastAPI dependencies for bearer-credential authentication and capability-based
access control.

Every protected endpoint re-derives ``{subject, role, tenant}`` from the
credential through ``get_current_user``; missing or invalid credentials are
rejected before any handler code runs.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from loguru import logger

from app.auth.jwt_utils import decode_token
from app.auth.models import AuthTokenPayload
from app.auth.permissions import CAPABILITIES, Capability, has_capability
from app.core.exceptions import Forbidden, Unauthenticated

# OAuth2 scheme for extracting Bearer tokens from Authorization header
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/login",
    auto_error=False,  # Don't auto-raise 401, let us handle it
)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
) -> AuthTokenPayload:
    """
    Extract and validate the bearer credential from the Authorization header.

    Returns:
        AuthTokenPayload: Decoded claims

    Raises:
        Unauthenticated: If the credential is missing, invalid or expired
    """
    if not token:
        logger.debug("Missing authorization token")
        raise Unauthenticated("Authorization token required")
    return decode_token(token)


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
) -> Optional[AuthTokenPayload]:
    """Like get_current_user, but anonymous or invalid callers yield None."""
    if not token:
        return None
    try:
        return decode_token(token)
    except Unauthenticated:
        return None


class RoleChecker:
    """
    Dependency class for capability-based authorization.

    Usage:
        require_reviewer = RoleChecker(Capability.REVIEW_APPLICATIONS)
        @router.post("/{id}/approve")
        async def approve(user: AuthTokenPayload = Depends(require_reviewer)): ...
    """

    def __init__(self, capability: Capability):
        if capability not in CAPABILITIES:
            raise ValueError(f"Capability '{capability}' has no declared roles")
        self.capability = capability

    def __call__(
        self, payload: AuthTokenPayload = Depends(get_current_user)
    ) -> AuthTokenPayload:
        if not has_capability(payload.role, self.capability):
            allowed = ", ".join(sorted(r.value for r in CAPABILITIES[self.capability]))
            logger.warning(
                f"Access denied for user {payload.user_id} with role {payload.role.value} "
                f"on {self.capability.value}"
            )
            raise Forbidden(f"Insufficient permissions. Required roles: {allowed}")
        return payload


# Convenience checkers for the common permission levels
require_reviewer = RoleChecker(Capability.REVIEW_APPLICATIONS)
require_user_admin = RoleChecker(Capability.MANAGE_USERS)
require_task_admin = RoleChecker(Capability.CREATE_TASKS)
require_expert = RoleChecker(Capability.WORK_ON_TASKS)
require_ticket_admin = RoleChecker(Capability.ASSIGN_TICKETS)
require_activity_viewer = RoleChecker(Capability.VIEW_ACTIVITY)
require_superadmin = RoleChecker(Capability.MANAGE_SYSTEM_CONFIG)
