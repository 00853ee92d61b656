"""
Authentication Module
---------------------
Bearer-credential authentication and capability-based access control.

Core Components:
- models: credential claim set and auth request bodies
- jwt_utils: mint and validate bearer credentials and document tokens
- permissions: role enum capabilities and tenant scoping
- dependencies: FastAPI dependencies for endpoint protection
- google_oauth: Google consent, code exchange and profile lookup
- endpoints: /api/auth router

Usage:
    from app.auth import get_current_user, require_reviewer

    @router.post("/{application_id}/approve")
    async def approve(user: AuthTokenPayload = Depends(require_reviewer)): ...
"""

from app.auth.models import AuthTokenPayload
from app.auth.jwt_utils import create_access_token, decode_token
from app.auth.permissions import Capability, has_capability, tenant_scope
from app.auth.dependencies import (
    RoleChecker,
    get_current_user,
    get_optional_user,
    require_activity_viewer,
    require_expert,
    require_reviewer,
    require_superadmin,
    require_task_admin,
    require_ticket_admin,
    require_user_admin,
)

__all__ = [
    "AuthTokenPayload",
    "create_access_token",
    "decode_token",
    "Capability",
    "has_capability",
    "tenant_scope",
    "RoleChecker",
    "get_current_user",
    "get_optional_user",
    "require_activity_viewer",
    "require_expert",
    "require_reviewer",
    "require_superadmin",
    "require_task_admin",
    "require_ticket_admin",
    "require_user_admin",
]
