"""
Role Capability Tests
---------------------
Test the capability table and tenant scoping rules.
"""

import pytest

from app.auth.permissions import (
    CAPABILITIES,
    TICKET_ASSIGNEE_ROLES,
    Capability,
    ensure_same_tenant,
    has_capability,
    normalize_role,
    require_capability,
    tenant_scope,
)
from app.core.exceptions import Forbidden
from app.models.request_models import UserRole


class TestNormalizeRole:
    @pytest.mark.parametrize("value", ["admin", "ADMIN", "Admin", UserRole.ADMIN])
    def test_any_case(self, value):
        assert normalize_role(value) == UserRole.ADMIN

    def test_unknown_role(self):
        with pytest.raises(ValueError, match="Unknown role"):
            normalize_role("janitor")


class TestCapabilities:
    def test_every_capability_declared(self):
        assert set(CAPABILITIES) == set(Capability)

    @pytest.mark.parametrize(
        "role,capability,expected",
        [
            ("ADMIN", Capability.REVIEW_APPLICATIONS, True),
            ("SUPERADMIN", Capability.REVIEW_APPLICATIONS, True),
            ("ANALYST", Capability.REVIEW_APPLICATIONS, False),
            ("EXPERT", Capability.WORK_ON_TASKS, True),
            ("ADMIN", Capability.WORK_ON_TASKS, False),
            ("ADMIN", Capability.MANAGE_PRIVILEGED_USERS, False),
            ("SUPERADMIN", Capability.MANAGE_SYSTEM_CONFIG, True),
            ("customer", Capability.VIEW_ACTIVITY, False),
        ],
    )
    def test_has_capability(self, role, capability, expected):
        assert has_capability(role, capability) is expected

    def test_unknown_role_has_nothing(self):
        assert has_capability("janitor", Capability.REVIEW_APPLICATIONS) is False

    def test_require_capability_lists_allowed_roles(self):
        with pytest.raises(Forbidden, match="Requires one of: SUPERADMIN"):
            require_capability("ADMIN", Capability.BYPASS_MAINTENANCE)

    def test_ticket_assignees(self):
        assert UserRole.CUSTOMER not in TICKET_ASSIGNEE_ROLES
        assert UserRole.ANALYST not in TICKET_ASSIGNEE_ROLES
        assert UserRole.EXPERT in TICKET_ASSIGNEE_ROLES


class TestTenantScope:
    def test_superadmin_unscoped(self):
        assert tenant_scope("SUPERADMIN", "ORG-A") is None

    def test_admin_scoped_to_own_org(self):
        assert tenant_scope("ADMIN", "ORG-A") == "ORG-A"

    def test_same_tenant_passes(self):
        ensure_same_tenant("ADMIN", "ORG-A", "ORG-A")

    def test_superadmin_crosses_tenants(self):
        ensure_same_tenant("SUPERADMIN", "ORG-A", "ORG-B")

    def test_mismatch(self):
        with pytest.raises(Forbidden) as exc_info:
            ensure_same_tenant("ADMIN", "ORG-A", "ORG-B")

        assert exc_info.value.error_code == "TENANT_MISMATCH"
