"""
Activity Log Service
--------------------
Append-only audit trail of user and staff actions.

Entries are written inside the caller's session so an audit record is
committed together with the state change it describes, or not at all.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database_schema import activity_logs, new_id, utc_now
from app.psql_db_services.base_service import BaseDatabaseService


class ActivityAction:
    USER_REGISTRATION = "USER_REGISTRATION"
    USER_ACTIVATION = "USER_ACTIVATION"
    USER_LOGIN = "USER_LOGIN"
    OAUTH_LOGIN = "OAUTH_LOGIN"
    TOKEN_REVOKED = "TOKEN_REVOKED"
    ALL_TOKENS_REVOKED = "ALL_TOKENS_REVOKED"
    APPLICATION_SUBMITTED = "APPLICATION_SUBMITTED"
    APPLICATION_APPROVED = "APPLICATION_APPROVED"
    APPLICATION_REJECTED = "APPLICATION_REJECTED"
    APPLICATION_REVOKED = "APPLICATION_REVOKED"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    DOCUMENT_DELETED = "DOCUMENT_DELETED"
    CREATE_TASK = "CREATE_TASK"
    UPDATE_TASK = "UPDATE_TASK"
    ASSIGN_TASK = "ASSIGN_TASK"
    ACCEPT_TASK = "ACCEPT_TASK"
    DECLINE_TASK = "DECLINE_TASK"
    COMPLETE_TASK = "COMPLETE_TASK"
    CREATE_TICKET = "CREATE_TICKET"
    UPDATE_TICKET_STATUS = "UPDATE_TICKET_STATUS"
    ASSIGN_TICKET = "ASSIGN_TICKET"
    REASSIGN_TICKET = "REASSIGN_TICKET"
    UNASSIGN_TICKET = "UNASSIGN_TICKET"
    RESPOND_TICKET = "RESPOND_TICKET"
    EDIT_TICKET_RESPONSE = "EDIT_TICKET_RESPONSE"
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DEACTIVATE_USER = "DEACTIVATE_USER"
    CONFIG_UPDATED = "CONFIG_UPDATED"


class ActivityLogService(BaseDatabaseService):
    """Writes and reads activity_logs rows."""

    async def record(
        self,
        session: AsyncSession,
        *,
        user_id: Optional[str],
        action: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        org_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> str:
        entry_id = new_id()
        await session.execute(
            insert(activity_logs).values(
                id=entry_id,
                user_id=user_id,
                org_id=org_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                details=details or {},
                created_at=utc_now(),
            )
        )
        self.log_operation(action, entity_id or entity_type)
        return entry_id

    async def list_entries(
        self,
        org_scope: Optional[str],
        page: int = 1,
        limit: int = 50,
        action: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Newest-first page of activity entries.

        Args:
            org_scope: Restrict to one organization; None for all
        """
        offset = self.validate_pagination_parameters(page, limit)
        statement = select(activity_logs)
        if org_scope is not None:
            statement = statement.where(activity_logs.c.org_id == org_scope)
        if action:
            statement = statement.where(activity_logs.c.action == action.upper())
        if user_id:
            statement = statement.where(activity_logs.c.user_id == user_id)

        async with self.get_session() as session:
            total = await self.count_rows(session, statement)
            rows: List[Dict[str, Any]] = await self.fetch_all(
                session,
                statement.order_by(activity_logs.c.created_at.desc())
                .limit(limit)
                .offset(offset),
            )
        return {"entries": rows, "total": total}
