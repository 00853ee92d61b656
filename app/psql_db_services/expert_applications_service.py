"""
Expert Applications Service
---------------------------
One application per user, moved through its review workflow:

    DRAFT --submit--> PENDING --approve--> APPROVED --remove--> REVOKED
                      PENDING --reject---> REJECTED --submit--> PENDING

Every transition is a compare-and-swap on the current status, executed in
one session together with its activity entry, role change and notification.
"""

from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import AuthTokenPayload
from app.auth.permissions import (
    Capability,
    ensure_same_tenant,
    has_capability,
    tenant_scope,
)
from app.core.database_connection import DatabaseManager
from app.core.database_schema import (
    expert_applications,
    expert_documents,
    new_id,
    users,
    utc_now,
)
from app.core.exceptions import Forbidden, InvalidTransition, NotFound
from app.models.request_models import (
    ApplicationStatus,
    ExpertApplicationUpdateRequest,
    UserRole,
    UserStatus,
)
from app.psql_db_services.activity_log_service import ActivityAction, ActivityLogService
from app.psql_db_services.base_service import BaseDatabaseService
from app.psql_db_services.notifications_service import NotificationsService, NotificationType
from app.psql_db_services.users_service import UsersService

APPLICATION_LINK = "/customer/expert-application"

# States from which the owner may edit and submit
EDITABLE_STATUSES = [ApplicationStatus.DRAFT.value, ApplicationStatus.REJECTED.value]

_APPLICATION_WITH_APPLICANT = select(
    expert_applications,
    users.c.name.label("applicant_name"),
    users.c.email.label("applicant_email"),
).select_from(expert_applications.join(users, users.c.id == expert_applications.c.user_id))


class ExpertApplicationsService(BaseDatabaseService):
    """Repository and state machine for expert applications."""

    def __init__(self, database_manager: Optional[DatabaseManager] = None):
        super().__init__(database_manager)
        self.activity = ActivityLogService(database_manager)
        self.notifications = NotificationsService(database_manager)
        self.users = UsersService(database_manager)

    # ========================================================================
    # READ OPERATIONS
    # ========================================================================

    async def _get_for_user(
        self, session: AsyncSession, user_id: str
    ) -> Optional[Dict[str, Any]]:
        return await self.fetch_one(
            session,
            _APPLICATION_WITH_APPLICANT.where(expert_applications.c.user_id == user_id),
        )

    async def _get_by_id(
        self, session: AsyncSession, application_id: str
    ) -> Optional[Dict[str, Any]]:
        return await self.fetch_one(
            session,
            _APPLICATION_WITH_APPLICANT.where(expert_applications.c.id == application_id),
        )

    async def get_or_create_draft(self, user: AuthTokenPayload) -> Dict[str, Any]:
        """Return the caller's application, creating an empty DRAFT on first access."""
        async with self.get_session() as session:
            application = await self._get_for_user(session, user.user_id)
            if application:
                return application

            now = utc_now()
            await session.execute(
                insert(expert_applications).values(
                    id=new_id(),
                    user_id=user.user_id,
                    org_id=user.org_id,
                    status=ApplicationStatus.DRAFT.value,
                    created_at=now,
                    updated_at=now,
                )
            )
            application = await self._get_for_user(session, user.user_id)
        self.log_operation("CREATE_DRAFT", application["id"])
        return application

    async def summary_for_user(self, user_id: str) -> Dict[str, Any]:
        """Status block for /me. Users without an application report NONE."""
        async with self.get_session() as session:
            application = await self._get_for_user(session, user_id)
        if not application:
            return {"status": "NONE"}
        return {
            "status": application["status"],
            "application_id": application["id"],
            "submitted_at": application["submitted_at"],
            "rejection_reason": application["rejection_reason"],
        }

    async def list_applications(
        self,
        caller: AuthTokenPayload,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        """
        Reviewer listing, newest submission first.

        Args:
            status: Optional filter. Values such as ``pending:1`` are accepted
                    and the suffix ignored.
        """
        offset = self.validate_pagination_parameters(page, limit)
        statement = _APPLICATION_WITH_APPLICANT
        org_scope = tenant_scope(caller.role, caller.org_id)
        if org_scope is not None:
            statement = statement.where(expert_applications.c.org_id == org_scope)
        if status:
            normalized = status.split(":", 1)[0].strip().upper()
            self.validate_enum_value(
                normalized, [s.value for s in ApplicationStatus], "status"
            )
            statement = statement.where(expert_applications.c.status == normalized)

        async with self.get_session() as session:
            total = await self.count_rows(session, statement)
            rows: List[Dict[str, Any]] = await self.fetch_all(
                session,
                statement.order_by(
                    expert_applications.c.submitted_at.desc(),
                    expert_applications.c.created_at.desc(),
                )
                .limit(limit)
                .offset(offset),
            )
        return {"applications": rows, "total": total}

    async def get_application(
        self, caller: AuthTokenPayload, application_id: str
    ) -> Dict[str, Any]:
        """
        Raises:
            NotFound: Unknown id, or not visible to the caller
            Forbidden: Reviewer outside the application's tenant
        """
        async with self.get_session() as session:
            application = await self._get_by_id(session, application_id)
        if not application:
            raise NotFound("Application not found")
        if application["user_id"] == caller.user_id:
            return application
        if not has_capability(caller.role, Capability.REVIEW_APPLICATIONS):
            raise NotFound("Application not found")
        ensure_same_tenant(caller.role, caller.org_id, application["org_id"])
        return application

    # ========================================================================
    # OWNER OPERATIONS
    # ========================================================================

    async def save_draft(
        self, user: AuthTokenPayload, request: ExpertApplicationUpdateRequest
    ) -> Dict[str, Any]:
        """
        Save profile fields on a DRAFT or REJECTED application.

        Raises:
            InvalidTransition: If the application is under review or decided
        """
        application = await self.get_or_create_draft(user)
        changes = request.model_dump(exclude_unset=True)
        if not changes:
            return application

        async with self.get_session() as session:
            result = await session.execute(
                update(expert_applications)
                .where(
                    expert_applications.c.id == application["id"],
                    expert_applications.c.status.in_(EDITABLE_STATUSES),
                )
                .values(updated_at=utc_now(), **changes)
            )
            if result.rowcount != 1:
                current = await self._get_by_id(session, application["id"])
                raise InvalidTransition(
                    "application",
                    current["status"],
                    ApplicationStatus.DRAFT.value,
                    message=f"Application cannot be edited while {current['status']}",
                )
            application = await self._get_by_id(session, application["id"])
        self.log_operation("SAVE_DRAFT", application["id"])
        return application

    async def submit(self, user: AuthTokenPayload) -> Dict[str, Any]:
        """
        DRAFT/REJECTED -> PENDING.

        Raises:
            InvalidTransition: If the application is not DRAFT or REJECTED
        """
        application = await self.get_or_create_draft(user)
        async with self.get_session() as session:
            now = utc_now()
            swapped = await self.update_if_status(
                session,
                expert_applications,
                application["id"],
                EDITABLE_STATUSES,
                ApplicationStatus.PENDING.value,
                submitted_at=now,
                rejection_reason=None,
            )
            if not swapped:
                current = await self._get_by_id(session, application["id"])
                raise InvalidTransition(
                    "application", current["status"], ApplicationStatus.PENDING.value
                )

            await session.execute(
                update(expert_documents)
                .where(
                    expert_documents.c.user_id == user.user_id,
                    expert_documents.c.application_status == "draft",
                )
                .values(
                    application_status="submitted",
                    application_id=application["id"],
                    updated_at=now,
                )
            )
            await self.activity.record(
                session,
                user_id=user.user_id,
                org_id=application["org_id"],
                action=ActivityAction.APPLICATION_SUBMITTED,
                entity_type="ExpertApplication",
                entity_id=application["id"],
            )
            await self.notifications.create(
                session,
                user_id=user.user_id,
                type=NotificationType.APPLICATION,
                title="Application Submitted",
                message=(
                    "Your expert application has been submitted for review. "
                    "We will notify you once a decision is made."
                ),
                link=APPLICATION_LINK,
            )
            application = await self._get_by_id(session, application["id"])
        logger.info(f"Application {application['id']} submitted by {user.user_id}")
        return application

    # ========================================================================
    # REVIEW OPERATIONS
    # ========================================================================

    async def _load_for_review(
        self, session: AsyncSession, reviewer: AuthTokenPayload, application_id: str
    ) -> Dict[str, Any]:
        if not has_capability(reviewer.role, Capability.REVIEW_APPLICATIONS):
            raise Forbidden("Reviewer role required")
        application = await self._get_by_id(session, application_id)
        if not application:
            raise NotFound("Application not found")
        ensure_same_tenant(reviewer.role, reviewer.org_id, application["org_id"])
        return application

    async def _review(
        self,
        reviewer: AuthTokenPayload,
        application_id: str,
        expected: str,
        target: str,
        action: str,
        details: Dict[str, Any],
        new_role: Optional[str],
        notification: Dict[str, str],
        account_status: Optional[str] = None,
        **values: Any,
    ) -> Dict[str, Any]:
        """
        Shared review transition. Audit entry first, then the guarded status
        swap, then the role change, then the notification, all in one unit.
        """
        async with self.get_session() as session:
            application = await self._load_for_review(session, reviewer, application_id)
            if application["status"] != expected:
                raise InvalidTransition("application", application["status"], target)

            await self.activity.record(
                session,
                user_id=reviewer.user_id,
                org_id=application["org_id"],
                action=action,
                entity_type="ExpertApplication",
                entity_id=application_id,
                details={"applicantId": application["user_id"], **details},
            )
            now = utc_now()
            swapped = await self.update_if_status(
                session,
                expert_applications,
                application_id,
                expected,
                target,
                reviewed_at=now,
                reviewed_by=reviewer.user_id,
                **values,
            )
            if not swapped:
                current = await self._get_by_id(session, application_id)
                raise InvalidTransition("application", current["status"], target)

            if new_role is not None:
                extra = {"status": account_status} if account_status else {}
                await self.users.set_role(session, application["user_id"], new_role, **extra)

            await self.notifications.create(
                session,
                user_id=application["user_id"],
                type=NotificationType.APPLICATION,
                link=APPLICATION_LINK,
                **notification,
            )
            application = await self._get_by_id(session, application_id)
        self.log_operation(action, application_id, additional_context=f"by {reviewer.user_id}")
        return application

    async def approve(self, reviewer: AuthTokenPayload, application_id: str) -> Dict[str, Any]:
        """PENDING -> APPROVED and promote the applicant to EXPERT."""
        return await self._review(
            reviewer,
            application_id,
            expected=ApplicationStatus.PENDING.value,
            target=ApplicationStatus.APPROVED.value,
            action=ActivityAction.APPLICATION_APPROVED,
            details={},
            new_role=UserRole.EXPERT.value,
            notification={
                "title": "Application Approved",
                "message": (
                    "Congratulations! Your expert application has been approved. "
                    "You now have access to expert features."
                ),
            },
            rejection_reason=None,
        )

    async def reject(
        self, reviewer: AuthTokenPayload, application_id: str, reason: str
    ) -> Dict[str, Any]:
        """PENDING -> REJECTED with a reason surfaced to the applicant."""
        reason = self.validate_string_not_empty(reason, "reason")
        return await self._review(
            reviewer,
            application_id,
            expected=ApplicationStatus.PENDING.value,
            target=ApplicationStatus.REJECTED.value,
            action=ActivityAction.APPLICATION_REJECTED,
            details={"reason": reason},
            new_role=None,
            notification={
                "title": "Application Status Update",
                "message": (
                    "Your expert application was reviewed and was not approved "
                    f"at this time. Reason: {reason}"
                ),
            },
            rejection_reason=reason,
        )

    async def remove(
        self,
        reviewer: AuthTokenPayload,
        application_id: str,
        reason: str,
        permanent_ban: bool = False,
    ) -> Dict[str, Any]:
        """
        APPROVED -> REVOKED. The expert is demoted to CUSTOMER, and the
        account is also SUSPENDED when ``permanent_ban`` is set.
        """
        reason = self.validate_string_not_empty(reason, "reason")
        return await self._review(
            reviewer,
            application_id,
            expected=ApplicationStatus.APPROVED.value,
            target=ApplicationStatus.REVOKED.value,
            action=ActivityAction.APPLICATION_REVOKED,
            details={"reason": reason, "permanentBan": permanent_ban},
            new_role=UserRole.CUSTOMER.value,
            account_status=UserStatus.SUSPENDED.value if permanent_ban else None,
            notification={
                "title": "Expert Status Revoked",
                "message": f"Your expert status has been revoked. Reason: {reason}",
            },
            rejection_reason=reason,
        )
