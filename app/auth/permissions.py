"""
Role Capabilities
-----------------
Central allow-list of which roles may perform each protected operation, plus
the tenant-scoping rules shared by every service.

Roles, lowest to highest privilege:
CUSTOMER < EXPERT < ANALYST < ADMIN < SUPERADMIN

ADMIN is scoped to exactly one organization; SUPERADMIN spans all of them.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional

from app.core.exceptions import Forbidden
from app.models.request_models import UserRole


class Capability(str, Enum):
    """Protected operations, each declared once with its allowed roles."""

    REVIEW_APPLICATIONS = "review_applications"
    LIST_USERS = "list_users"
    MANAGE_USERS = "manage_users"
    MANAGE_PRIVILEGED_USERS = "manage_privileged_users"
    CREATE_TASKS = "create_tasks"
    WORK_ON_TASKS = "work_on_tasks"
    ASSIGN_TICKETS = "assign_tickets"
    ANSWER_ANY_TICKET = "answer_any_ticket"
    ACCESS_ALL_DOCUMENTS = "access_all_documents"
    VIEW_ACTIVITY = "view_activity"
    MANAGE_SYSTEM_CONFIG = "manage_system_config"
    BYPASS_MAINTENANCE = "bypass_maintenance"


_STAFF = frozenset({UserRole.ADMIN, UserRole.SUPERADMIN})
_TOP = frozenset({UserRole.SUPERADMIN})

CAPABILITIES: Dict[Capability, FrozenSet[UserRole]] = {
    Capability.REVIEW_APPLICATIONS: _STAFF,
    Capability.LIST_USERS: _STAFF,
    Capability.MANAGE_USERS: _STAFF,
    Capability.MANAGE_PRIVILEGED_USERS: _TOP,
    Capability.CREATE_TASKS: _STAFF,
    Capability.WORK_ON_TASKS: frozenset({UserRole.EXPERT}),
    Capability.ASSIGN_TICKETS: _STAFF,
    Capability.ANSWER_ANY_TICKET: _TOP,
    Capability.ACCESS_ALL_DOCUMENTS: _STAFF,
    Capability.VIEW_ACTIVITY: _STAFF,
    Capability.MANAGE_SYSTEM_CONFIG: _TOP,
    Capability.BYPASS_MAINTENANCE: _TOP,
}

# Roles a help-desk ticket may be assigned to
TICKET_ASSIGNEE_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPERADMIN, UserRole.EXPERT})


def normalize_role(role) -> UserRole:
    """Accept enum members or any-case strings ("admin", "ADMIN")."""
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(str(role).upper())
    except ValueError:
        raise ValueError(f"Unknown role '{role}'")


def has_capability(role, capability: Capability) -> bool:
    try:
        return normalize_role(role) in CAPABILITIES[capability]
    except ValueError:
        return False


def require_capability(role, capability: Capability) -> None:
    if not has_capability(role, capability):
        allowed = ", ".join(sorted(r.value for r in CAPABILITIES[capability]))
        raise Forbidden(f"Requires one of: {allowed}")


def tenant_scope(role, org_id: str) -> Optional[str]:
    """
    Organization filter for queries issued on behalf of a caller.

    Returns:
        None for SUPERADMIN (no filter), otherwise the caller's org id
    """
    if normalize_role(role) == UserRole.SUPERADMIN:
        return None
    return org_id


def ensure_same_tenant(role, caller_org_id: str, resource_org_id: Optional[str]) -> None:
    scope = tenant_scope(role, caller_org_id)
    if scope is not None and resource_org_id != scope:
        raise Forbidden(
            "Resource belongs to a different organization", error_code="TENANT_MISMATCH"
        )
