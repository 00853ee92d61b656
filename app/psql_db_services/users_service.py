"""
Users Service
-------------
Database service for account management:
- Local signup and credential verification
- Google account upsert
- Admin listing, creation, update and soft deactivation with role/tenant guards
"""

from typing import Any, Dict, List, Optional

from email_validator import EmailNotValidError, validate_email
from loguru import logger
from sqlalchemy import insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import AuthTokenPayload
from app.auth.permissions import (
    Capability,
    ensure_same_tenant,
    has_capability,
    tenant_scope,
)
from app.core.config_manager import settings
from app.core.database_connection import DatabaseManager
from app.core.database_schema import new_id, refresh_tokens, users, utc_now
from app.core.exceptions import (
    Conflict,
    Forbidden,
    NotFound,
    Unauthenticated,
    ValidationFailed,
)
from app.models.request_models import (
    AdminUserCreateRequest,
    AdminUserUpdateRequest,
    UserRole,
    UserStatus,
)
from app.psql_db_services.activity_log_service import ActivityAction, ActivityLogService
from app.psql_db_services.base_service import BaseDatabaseService
from app.utils.password_hashing import PasswordHasher

SAVE_CTA_STATE = "enabled"
SAVE_CTA_ACTION = "commit_changes_to_db"

# Statuses an administrator may set explicitly
ADMIN_SETTABLE_STATUSES = [
    UserStatus.ACTIVE.value,
    UserStatus.INACTIVE.value,
    UserStatus.SUSPENDED.value,
]

# Roles an ADMIN may see and manage inside its organization
ADMIN_MANAGED_ROLES = [
    UserRole.CUSTOMER.value,
    UserRole.EXPERT.value,
    UserRole.ANALYST.value,
]

_PUBLIC_COLUMNS = [
    users.c.id,
    users.c.email,
    users.c.name,
    users.c.phone,
    users.c.role,
    users.c.status,
    users.c.org_id,
    users.c.email_verified,
    users.c.auth_provider,
    users.c.last_login_at,
    users.c.created_at,
    users.c.updated_at,
]


class UsersService(BaseDatabaseService):
    """
    Service for user database operations.

    Supports:
    - Account creation with unique, normalized emails
    - Uniform-failure credential checks
    - Role- and tenant-guarded administration
    """

    def __init__(self, database_manager: Optional[DatabaseManager] = None):
        super().__init__(database_manager)
        self.activity = ActivityLogService(database_manager)

    # ========================================================================
    # VALIDATION HELPERS
    # ========================================================================

    @staticmethod
    def normalize_email(email_address: str) -> str:
        """
        Validate and normalize an email address.

        Raises:
            ValueError: If email format is invalid
        """
        if not email_address:
            raise ValueError("Email address cannot be empty")
        try:
            validated = validate_email(email_address.strip(), check_deliverability=False)
        except EmailNotValidError as e:
            raise ValueError(f"Invalid email: {str(e)}")
        return validated.normalized.lower()

    # ========================================================================
    # READ OPERATIONS
    # ========================================================================

    @staticmethod
    async def _get_by_id(session: AsyncSession, user_id: str) -> Optional[Dict[str, Any]]:
        result = await session.execute(select(users).where(users.c.id == user_id))
        row = result.mappings().first()
        return dict(row) if row else None

    @staticmethod
    async def _get_by_email(session: AsyncSession, email: str) -> Optional[Dict[str, Any]]:
        result = await session.execute(select(users).where(users.c.email == email))
        row = result.mappings().first()
        return dict(row) if row else None

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        async with self.get_session() as session:
            return await self._get_by_id(session, user_id)

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        async with self.get_session() as session:
            return await self._get_by_email(session, email.lower().strip())

    # ========================================================================
    # CREATE OPERATIONS
    # ========================================================================

    async def _insert_user(
        self,
        session: AsyncSession,
        *,
        email: str,
        name: str,
        password_hash: Optional[str],
        role: str = UserRole.CUSTOMER.value,
        status: str = UserStatus.ACTIVE.value,
        org_id: Optional[str] = None,
        phone: Optional[str] = None,
        auth_provider: str = "local",
        google_id: Optional[str] = None,
        email_verified: bool = False,
    ) -> Dict[str, Any]:
        if await self._get_by_email(session, email):
            raise Conflict("User already exists with this email", error_code="EMAIL_EXISTS")

        now = utc_now()
        row = {
            "id": new_id(),
            "email": email,
            "name": self.validate_string_not_empty(name, "name"),
            "password_hash": password_hash,
            "phone": phone,
            "role": role,
            "status": status,
            "org_id": org_id or settings.default_org_id,
            "email_verified": email_verified,
            "auth_provider": auth_provider,
            "google_id": google_id,
            "created_at": now,
            "updated_at": now,
        }
        await session.execute(insert(users).values(**row))
        return row

    async def register_user(
        self, email: str, password: str, name: str, phone: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Self-service signup. New accounts are ACTIVE customers in the default
        organization.

        Raises:
            Conflict: If the email is already registered
        """
        email = self.normalize_email(email)
        async with self.get_session() as session:
            user = await self._insert_user(
                session,
                email=email,
                name=name,
                password_hash=PasswordHasher.hash_password(password),
                phone=phone,
            )
            await self.activity.record(
                session,
                user_id=user["id"],
                org_id=user["org_id"],
                action=ActivityAction.USER_REGISTRATION,
                entity_type="User",
                entity_id=user["id"],
                details={"email": email},
            )
        self.log_operation("REGISTER", user["id"])
        return user

    # ========================================================================
    # AUTHENTICATION
    # ========================================================================

    async def authenticate(self, email: str, password: str) -> Dict[str, Any]:
        """
        Verify credentials.

        A PENDING_VERIFICATION account is activated on its first successful
        login. Unknown emails and wrong passwords fail identically.

        Raises:
            Unauthenticated: On any credential mismatch
            Forbidden: If the account is INACTIVE or SUSPENDED
        """
        invalid = Unauthenticated("Invalid email or password", error_code="INVALID_CREDENTIALS")
        async with self.get_session() as session:
            user = await self._get_by_email(session, email.lower().strip())
            if not user or not PasswordHasher.verify_password(password, user["password_hash"]):
                raise invalid

            status = (user["status"] or UserStatus.PENDING_VERIFICATION.value).upper()
            if status in (UserStatus.INACTIVE.value, UserStatus.SUSPENDED.value):
                raise Forbidden(
                    f"Account is {status.lower()}", error_code="ACCOUNT_DISABLED"
                )

            now = utc_now()
            changes: Dict[str, Any] = {"last_login_at": now}
            if status == UserStatus.PENDING_VERIFICATION.value:
                changes.update(status=UserStatus.ACTIVE.value, updated_at=now)
                await self.activity.record(
                    session,
                    user_id=user["id"],
                    org_id=user["org_id"],
                    action=ActivityAction.USER_ACTIVATION,
                    entity_type="User",
                    entity_id=user["id"],
                    details={"previousStatus": status, "via": "login"},
                )
                logger.info(f"Activated account {user['id']} on first login")
            await session.execute(
                update(users).where(users.c.id == user["id"]).values(**changes)
            )
            user.update(changes)
        return user

    async def upsert_google_user(
        self, google_id: str, email: str, name: str, email_verified: bool
    ) -> Dict[str, Any]:
        """
        Find or create the local account for a Google identity.

        New accounts are ACTIVE customers; PENDING_VERIFICATION accounts are
        activated.

        Raises:
            Forbidden: If the account is INACTIVE or SUSPENDED
        """
        email = self.normalize_email(email)
        async with self.get_session() as session:
            user = await self._get_by_email(session, email)
            if user is None:
                user = await self._insert_user(
                    session,
                    email=email,
                    name=name or email.split("@")[0],
                    password_hash=PasswordHasher.unusable_password_hash(),
                    auth_provider="google",
                    google_id=google_id,
                    email_verified=email_verified,
                )
                await self.activity.record(
                    session,
                    user_id=user["id"],
                    org_id=user["org_id"],
                    action=ActivityAction.USER_REGISTRATION,
                    entity_type="User",
                    entity_id=user["id"],
                    details={"provider": "google"},
                )
                return user

            status = (user["status"] or "").upper()
            if status in (UserStatus.INACTIVE.value, UserStatus.SUSPENDED.value):
                raise Forbidden(f"Account is {status.lower()}", error_code="ACCOUNT_DISABLED")

            now = utc_now()
            changes: Dict[str, Any] = {"last_login_at": now, "google_id": google_id}
            if email_verified:
                changes["email_verified"] = True
            if status != UserStatus.ACTIVE.value:
                changes.update(status=UserStatus.ACTIVE.value, updated_at=now)
                await self.activity.record(
                    session,
                    user_id=user["id"],
                    org_id=user["org_id"],
                    action=ActivityAction.USER_ACTIVATION,
                    entity_type="User",
                    entity_id=user["id"],
                    details={"previousStatus": status, "via": "google"},
                )
            await session.execute(
                update(users).where(users.c.id == user["id"]).values(**changes)
            )
            user.update(changes)
        return user

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    async def list_users(
        self,
        caller: AuthTokenPayload,
        page: int = 1,
        limit: int = 20,
        role: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Paginated user listing.

        SUPERADMIN sees every non-SUPERADMIN account; ADMIN sees customers,
        experts and analysts of its own organization.
        """
        offset = self.validate_pagination_parameters(page, limit)
        statement = select(*_PUBLIC_COLUMNS)

        org_scope = tenant_scope(caller.role, caller.org_id)
        if org_scope is None:
            statement = statement.where(users.c.role != UserRole.SUPERADMIN.value)
        else:
            statement = statement.where(
                users.c.org_id == org_scope, users.c.role.in_(ADMIN_MANAGED_ROLES)
            )

        if role:
            statement = statement.where(users.c.role == role.upper())
        if status:
            statement = statement.where(users.c.status == status.upper())
        if search:
            pattern = f"%{search.strip().lower()}%"
            statement = statement.where(
                or_(users.c.email.ilike(pattern), users.c.name.ilike(pattern))
            )

        async with self.get_session() as session:
            total = await self.count_rows(session, statement)
            rows: List[Dict[str, Any]] = await self.fetch_all(
                session,
                statement.order_by(users.c.created_at.desc()).limit(limit).offset(offset),
            )
        return {"users": rows, "total": total}

    async def admin_create_user(
        self, caller: AuthTokenPayload, request: AdminUserCreateRequest
    ) -> Dict[str, Any]:
        """
        Raises:
            Forbidden: If a non-SUPERADMIN tries to create ADMIN or SUPERADMIN
            Conflict: If the email is already registered
        """
        if request.role in (UserRole.ADMIN, UserRole.SUPERADMIN) and not has_capability(
            caller.role, Capability.MANAGE_PRIVILEGED_USERS
        ):
            raise Forbidden("Only SUPERADMIN can create ADMIN or SUPERADMIN accounts")

        email = self.normalize_email(request.email)
        async with self.get_session() as session:
            user = await self._insert_user(
                session,
                email=email,
                name=request.name,
                password_hash=PasswordHasher.hash_password(request.password),
                role=request.role.value,
                org_id=caller.org_id,
                phone=request.phone,
            )
            await self.activity.record(
                session,
                user_id=caller.user_id,
                org_id=caller.org_id,
                action=ActivityAction.CREATE_USER,
                entity_type="User",
                entity_id=user["id"],
                details={"email": email, "role": request.role.value},
            )
        return {key: user[key] for key in user if key != "password_hash"}

    def _guard_target(self, caller: AuthTokenPayload, target: Dict[str, Any]) -> None:
        """Rules shared by update and deactivate."""
        if target["role"] == UserRole.SUPERADMIN.value:
            raise Forbidden("SUPERADMIN accounts cannot be modified")
        if not caller.is_superadmin:
            if target["role"] not in ADMIN_MANAGED_ROLES:
                raise Forbidden("Admins cannot modify other administrators")
            ensure_same_tenant(caller.role, caller.org_id, target["org_id"])

    async def admin_update_user(
        self, caller: AuthTokenPayload, user_id: str, request: AdminUserUpdateRequest
    ) -> Dict[str, Any]:
        """
        Apply an admin edit.

        Raises:
            ValidationFailed: Missing save confirmation or disallowed status
            NotFound: Unknown user
            Forbidden: Role or tenant rules violated
        """
        if request.save_cta_state != SAVE_CTA_STATE or request.save_cta_action != SAVE_CTA_ACTION:
            raise ValidationFailed(
                "Changes must be confirmed with the save action",
                fields=["save_cta_state", "save_cta_action"],
                error_code="SAVE_NOT_CONFIRMED",
            )

        changes: Dict[str, Any] = {}
        if request.name is not None:
            changes["name"] = self.validate_string_not_empty(request.name, "name")
        if request.phone is not None:
            changes["phone"] = request.phone
        if request.status is not None:
            if request.status.value not in ADMIN_SETTABLE_STATUSES:
                raise ValidationFailed(
                    f"Status must be one of: {', '.join(ADMIN_SETTABLE_STATUSES)}",
                    fields=["status"],
                )
            changes["status"] = request.status.value

        async with self.get_session() as session:
            target = await self._get_by_id(session, user_id)
            if not target:
                raise NotFound("User not found")
            self._guard_target(caller, target)

            if request.role is not None and request.role.value != target["role"]:
                if not has_capability(caller.role, Capability.MANAGE_PRIVILEGED_USERS):
                    raise Forbidden("Only SUPERADMIN can change roles")
                if target["id"] == caller.user_id:
                    raise Forbidden("You cannot change your own role")
                changes["role"] = request.role.value

            if not changes:
                return {key: target[key] for key in target if key != "password_hash"}

            changes["updated_at"] = utc_now()
            await session.execute(update(users).where(users.c.id == user_id).values(**changes))
            if changes.get("status") in (UserStatus.INACTIVE.value, UserStatus.SUSPENDED.value):
                await self._revoke_tokens(session, user_id)
            await self.activity.record(
                session,
                user_id=caller.user_id,
                org_id=caller.org_id,
                action=ActivityAction.UPDATE_USER,
                entity_type="User",
                entity_id=user_id,
                details={k: v for k, v in changes.items() if k != "updated_at"},
            )
            target.update(changes)
        return {key: target[key] for key in target if key != "password_hash"}

    async def deactivate_user(self, caller: AuthTokenPayload, user_id: str) -> None:
        """Soft delete: status INACTIVE and every refresh credential revoked."""
        if user_id == caller.user_id:
            raise ValidationFailed("You cannot deactivate your own account")
        async with self.get_session() as session:
            target = await self._get_by_id(session, user_id)
            if not target:
                raise NotFound("User not found")
            self._guard_target(caller, target)
            await session.execute(
                update(users)
                .where(users.c.id == user_id)
                .values(status=UserStatus.INACTIVE.value, updated_at=utc_now())
            )
            await self._revoke_tokens(session, user_id)
            await self.activity.record(
                session,
                user_id=caller.user_id,
                org_id=caller.org_id,
                action=ActivityAction.DEACTIVATE_USER,
                entity_type="User",
                entity_id=user_id,
                details={"email": target["email"]},
            )
        self.log_operation("DEACTIVATE", user_id)

    @staticmethod
    async def _revoke_tokens(session: AsyncSession, user_id: str) -> None:
        await session.execute(
            update(refresh_tokens)
            .where(refresh_tokens.c.user_id == user_id, refresh_tokens.c.revoked_at.is_(None))
            .values(revoked_at=utc_now())
        )

    async def set_role(self, session: AsyncSession, user_id: str, role: str, **extra: Any) -> None:
        """Role change issued as part of another workflow's unit of work."""
        await session.execute(
            update(users)
            .where(users.c.id == user_id)
            .values(role=role, updated_at=utc_now(), **extra)
        )
