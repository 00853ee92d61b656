"""
Help-Desk Service
-----------------
Support tickets with a single guarded response.

Ticket status (display form): Open, In Progress, Resolved, Closed. Any of
the four may follow any other, but only the assignee or a SUPERADMIN may
move a ticket.

Response sub-state:
    Unanswered --respond--> Answered(edit_count=0)
               --edit-----> Answered(edit_count=1, is_edited)
A non-SUPERADMIN may edit once. Both the first response and the edit are
compare-and-swap updates, so two concurrent responders cannot both win.

Tickets are addressable by id or by ticket number.
"""

import secrets
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import AuthTokenPayload
from app.auth.permissions import (
    TICKET_ASSIGNEE_ROLES,
    Capability,
    ensure_same_tenant,
    has_capability,
    require_capability,
)
from app.core.database_connection import DatabaseManager
from app.core.database_schema import helpdesk_tickets, new_id, users, utc_now
from app.core.exceptions import Conflict, Forbidden, NotFound, ValidationFailed
from app.models.request_models import (
    TicketCreateRequest,
    TicketStatus,
    UserRole,
    UserStatus,
)
from app.psql_db_services.activity_log_service import ActivityAction, ActivityLogService
from app.psql_db_services.base_service import BaseDatabaseService
from app.psql_db_services.notifications_service import NotificationsService, NotificationType

HELPDESK_LINK = "/helpdesk"
MAX_RESPONSE_EDITS = 1

_CLOSED_STATUSES = (TicketStatus.CLOSED.value, TicketStatus.RESOLVED.value)


def generate_ticket_number(now=None) -> str:
    """``PV-TK-YYYYMMDD-HHMM-XXXX`` with four random hex digits."""
    now = now or utc_now()
    return f"PV-TK-{now:%Y%m%d}-{now:%H%M}-{secrets.token_hex(2).upper()}"


class HelpdeskService(BaseDatabaseService):
    """Ticket repository, visibility rules and the response state machine."""

    def __init__(self, database_manager: Optional[DatabaseManager] = None):
        super().__init__(database_manager)
        self.activity = ActivityLogService(database_manager)
        self.notifications = NotificationsService(database_manager)

    # ========================================================================
    # VISIBILITY
    # ========================================================================

    @staticmethod
    def _visibility_conditions(caller: AuthTokenPayload) -> List[Any]:
        """
        WHERE clauses restricting tickets to what the caller may see:
        SUPERADMIN everything, ADMIN its organization, EXPERT/ANALYST tickets
        assigned to them, CUSTOMER tickets it raised.
        """
        if caller.is_superadmin:
            return []
        conditions = [helpdesk_tickets.c.org_id == caller.org_id]
        if caller.role == UserRole.ADMIN:
            return conditions
        if caller.role in (UserRole.EXPERT, UserRole.ANALYST):
            conditions.append(helpdesk_tickets.c.assigned_to == caller.user_id)
        else:
            conditions.append(helpdesk_tickets.c.raised_by == caller.user_id)
        return conditions

    @staticmethod
    def _ticket_key(ticket_id: str):
        return or_(helpdesk_tickets.c.id == ticket_id, helpdesk_tickets.c.ticket_number == ticket_id)

    async def _load(self, session: AsyncSession, ticket_id: str) -> Dict[str, Any]:
        ticket = await self.fetch_one(
            session, select(helpdesk_tickets).where(self._ticket_key(ticket_id))
        )
        if not ticket:
            raise NotFound("Ticket not found")
        return ticket

    # ========================================================================
    # CREATE / READ
    # ========================================================================

    async def create_ticket(
        self, caller: AuthTokenPayload, request: TicketCreateRequest
    ) -> Dict[str, Any]:
        now = utc_now()
        ticket = {
            "id": new_id(),
            "ticket_number": generate_ticket_number(now),
            "subject": request.subject,
            "category": request.category,
            "description": request.description,
            "priority": request.priority.value,
            "status": TicketStatus.OPEN.value,
            "raised_by": caller.user_id,
            "org_id": caller.org_id,
            "edit_count": 0,
            "is_edited": False,
            "created_at": now,
            "updated_at": now,
        }
        async with self.get_session() as session:
            await session.execute(insert(helpdesk_tickets).values(**ticket))
            await self.activity.record(
                session,
                user_id=caller.user_id,
                org_id=caller.org_id,
                action=ActivityAction.CREATE_TICKET,
                entity_type="Ticket",
                entity_id=ticket["id"],
                details={"ticketNumber": ticket["ticket_number"], "subject": request.subject},
            )
        self.log_operation("CREATE", ticket["ticket_number"])
        return ticket

    async def list_tickets(
        self,
        caller: AuthTokenPayload,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        offset = self.validate_pagination_parameters(page, limit)
        raiser = users.alias("raiser")
        statement = (
            select(
                helpdesk_tickets,
                raiser.c.name.label("raised_by_name"),
                raiser.c.email.label("raised_by_email"),
            )
            .select_from(helpdesk_tickets.join(raiser, raiser.c.id == helpdesk_tickets.c.raised_by))
            .where(*self._visibility_conditions(caller))
        )
        if status:
            statement = statement.where(helpdesk_tickets.c.status == TicketStatus.parse(status).value)

        async with self.get_session() as session:
            total = await self.count_rows(session, statement)
            rows = await self.fetch_all(
                session,
                statement.order_by(helpdesk_tickets.c.created_at.desc())
                .limit(limit)
                .offset(offset),
            )
        return {"tickets": rows, "total": total}

    async def get_ticket(self, caller: AuthTokenPayload, ticket_id: str) -> Dict[str, Any]:
        """Rows outside the caller's visibility are reported as missing."""
        async with self.get_session() as session:
            ticket = await self.fetch_one(
                session,
                select(helpdesk_tickets).where(
                    self._ticket_key(ticket_id), *self._visibility_conditions(caller)
                ),
            )
        if not ticket:
            raise NotFound("Ticket not found")
        return ticket

    # ========================================================================
    # STATUS
    # ========================================================================

    async def update_status(
        self,
        caller: AuthTokenPayload,
        ticket_id: str,
        status: str,
        reply: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Move a ticket to any of its four statuses; an optional reply is
        recorded through the response rules.
        """
        target = TicketStatus.parse(status).value
        async with self.get_session() as session:
            ticket = await self._load(session, ticket_id)
            if not caller.is_superadmin and ticket["assigned_to"] != caller.user_id:
                raise Forbidden("Only the assignee or a SUPERADMIN can change ticket status")

            previous = ticket["status"]
            now = utc_now()
            values: Dict[str, Any] = {"status": target, "updated_at": now}
            if target in _CLOSED_STATUSES and not ticket["resolved_at"]:
                values["resolved_at"] = now
            await session.execute(
                update(helpdesk_tickets).where(helpdesk_tickets.c.id == ticket["id"]).values(**values)
            )
            await self.activity.record(
                session,
                user_id=caller.user_id,
                org_id=ticket["org_id"],
                action=ActivityAction.UPDATE_TICKET_STATUS,
                entity_type="Ticket",
                entity_id=ticket["id"],
                details={"previousStatus": previous, "status": target},
            )
            if previous != target:
                await self.notifications.create(
                    session,
                    user_id=ticket["raised_by"],
                    type=NotificationType.TICKET,
                    title="Ticket Status Updated",
                    message=f"Ticket {ticket['ticket_number']} is now {target}",
                    link=HELPDESK_LINK,
                )
            if reply:
                await self._respond(session, caller, ticket, reply, edit_requested=bool(ticket["responder_id"]))
            ticket = await self._load(session, ticket["id"])
        return {**ticket, "previous_status": previous}

    # ========================================================================
    # ASSIGNMENT
    # ========================================================================

    async def _check_assignment(
        self, session: AsyncSession, caller: AuthTokenPayload, ticket: Dict[str, Any], assignee_id: str
    ) -> Dict[str, Any]:
        """
        Guards shared by assign and reassign.

        Raises:
            NotFound: Unknown assignee
            ValidationFailed: INVALID_ASSIGNEE_ROLE, TARGET_SUSPENDED or TICKET_CLOSED
            Forbidden: TENANT_MISMATCH
            Conflict: TICKET_LOCKED
        """
        require_capability(caller.role, Capability.ASSIGN_TICKETS)
        assignee = await self.fetch_one(
            session,
            select(users.c.id, users.c.name, users.c.role, users.c.status, users.c.org_id).where(
                users.c.id == assignee_id
            ),
        )
        if not assignee:
            raise NotFound("Assigned user not found")
        if UserRole(assignee["role"]) not in TICKET_ASSIGNEE_ROLES:
            raise ValidationFailed(
                "Tickets can only be assigned to ADMIN, SUPERADMIN or EXPERT",
                fields=["assignedToId"],
                error_code="INVALID_ASSIGNEE_ROLE",
            )
        ensure_same_tenant(caller.role, caller.org_id, assignee["org_id"])
        if assignee["status"] == UserStatus.SUSPENDED.value:
            raise ValidationFailed(
                "Cannot assign to a suspended user", error_code="TARGET_SUSPENDED"
            )
        ensure_same_tenant(caller.role, caller.org_id, ticket["org_id"])
        if ticket["status"] in _CLOSED_STATUSES:
            raise ValidationFailed(
                "Cannot assign closed or resolved tickets", error_code="TICKET_CLOSED"
            )
        if (
            ticket["locked_by"]
            and ticket["locked_by"] != caller.user_id
            and not caller.is_superadmin
        ):
            raise Conflict("Ticket is locked by another user", error_code="TICKET_LOCKED")
        return assignee

    async def assign(
        self,
        caller: AuthTokenPayload,
        ticket_id: str,
        assignee_id: str,
        reassign: bool = False,
    ) -> Dict[str, Any]:
        """Assign (or reassign) a ticket; an Open ticket moves to In Progress."""
        async with self.get_session() as session:
            ticket = await self._load(session, ticket_id)
            assignee = await self._check_assignment(session, caller, ticket, assignee_id)

            values: Dict[str, Any] = {
                "assigned_to": assignee["id"],
                "assigned_by": caller.user_id,
                "locked_by": caller.user_id,
                "updated_at": utc_now(),
            }
            if ticket["status"] == TicketStatus.OPEN.value:
                values["status"] = TicketStatus.IN_PROGRESS.value
            await session.execute(
                update(helpdesk_tickets).where(helpdesk_tickets.c.id == ticket["id"]).values(**values)
            )
            await self.activity.record(
                session,
                user_id=caller.user_id,
                org_id=ticket["org_id"],
                action=ActivityAction.REASSIGN_TICKET if reassign else ActivityAction.ASSIGN_TICKET,
                entity_type="Ticket",
                entity_id=ticket["id"],
                details={"assignedTo": assignee["id"], "previousAssignee": ticket["assigned_to"]},
            )
            if assignee["id"] != caller.user_id:
                await self.notifications.create(
                    session,
                    user_id=assignee["id"],
                    type=NotificationType.TICKET,
                    title="Ticket Assigned",
                    message=f"Ticket {ticket['ticket_number']} has been assigned to you",
                    link=HELPDESK_LINK,
                )
            ticket = await self._load(session, ticket["id"])
        logger.info(f"Ticket {ticket['ticket_number']} assigned to {assignee['id']} by {caller.user_id}")
        return ticket

    async def unassign(self, caller: AuthTokenPayload, ticket_id: str) -> Dict[str, Any]:
        require_capability(caller.role, Capability.ASSIGN_TICKETS)
        async with self.get_session() as session:
            ticket = await self._load(session, ticket_id)
            ensure_same_tenant(caller.role, caller.org_id, ticket["org_id"])
            if ticket["status"] in _CLOSED_STATUSES:
                raise ValidationFailed(
                    "Cannot unassign closed or resolved tickets", error_code="TICKET_CLOSED"
                )
            if (
                ticket["locked_by"]
                and ticket["locked_by"] != caller.user_id
                and not caller.is_superadmin
            ):
                raise Conflict("Ticket is locked by another user", error_code="TICKET_LOCKED")

            await session.execute(
                update(helpdesk_tickets)
                .where(helpdesk_tickets.c.id == ticket["id"])
                .values(
                    assigned_to=None,
                    assigned_by=None,
                    locked_by=None,
                    status=TicketStatus.OPEN.value,
                    updated_at=utc_now(),
                )
            )
            await self.activity.record(
                session,
                user_id=caller.user_id,
                org_id=ticket["org_id"],
                action=ActivityAction.UNASSIGN_TICKET,
                entity_type="Ticket",
                entity_id=ticket["id"],
                details={"previousAssignee": ticket["assigned_to"]},
            )
            ticket = await self._load(session, ticket["id"])
        return ticket

    # ========================================================================
    # RESPONSE
    # ========================================================================

    async def _respond(
        self,
        session: AsyncSession,
        caller: AuthTokenPayload,
        ticket: Dict[str, Any],
        response: str,
        edit_requested: bool,
    ) -> bool:
        """
        Apply the single-response rules inside the caller's session.

        Returns:
            True if an existing response was edited
        """
        is_superadmin = has_capability(caller.role, Capability.ANSWER_ANY_TICKET)
        if not is_superadmin and ticket["assigned_to"] != caller.user_id:
            raise Forbidden("Only the assignee or a SUPERADMIN can respond to this ticket")

        now = utc_now()
        if ticket["responder_id"] is None:
            result = await session.execute(
                update(helpdesk_tickets)
                .where(
                    helpdesk_tickets.c.id == ticket["id"],
                    helpdesk_tickets.c.responder_id.is_(None),
                )
                .values(
                    response_text=response,
                    responder_id=caller.user_id,
                    responded_at=now,
                    locked_by=ticket["locked_by"] or caller.user_id,
                    updated_at=now,
                )
            )
            if result.rowcount != 1:
                raise ValidationFailed(
                    "Ticket already has a response", error_code="ALREADY_RESPONDED"
                )
            edited = False
        else:
            if not edit_requested:
                raise ValidationFailed(
                    "Ticket already has a response", error_code="ALREADY_RESPONDED"
                )
            if not is_superadmin and caller.user_id not in (
                ticket["responder_id"],
                ticket["assigned_to"],
            ):
                raise Forbidden(
                    "You are not allowed to edit this response", error_code="UNAUTHORIZED_EDIT"
                )
            observed = ticket["edit_count"] or 0
            if not is_superadmin and observed >= MAX_RESPONSE_EDITS:
                raise ValidationFailed(
                    "Response has already been edited", error_code="EDIT_LIMIT_REACHED"
                )
            result = await session.execute(
                update(helpdesk_tickets)
                .where(
                    helpdesk_tickets.c.id == ticket["id"],
                    helpdesk_tickets.c.edit_count == observed,
                )
                .values(
                    response_text=response,
                    edit_count=observed + 1,
                    is_edited=True,
                    responded_at=now,
                    updated_at=now,
                )
            )
            if result.rowcount != 1:
                raise ValidationFailed(
                    "Response has already been edited", error_code="EDIT_LIMIT_REACHED"
                )
            edited = True

        await self.activity.record(
            session,
            user_id=caller.user_id,
            org_id=ticket["org_id"],
            action=ActivityAction.EDIT_TICKET_RESPONSE if edited else ActivityAction.RESPOND_TICKET,
            entity_type="Ticket",
            entity_id=ticket["id"],
        )
        if ticket["raised_by"] != caller.user_id:
            await self.notifications.create(
                session,
                user_id=ticket["raised_by"],
                type=NotificationType.TICKET,
                title="Ticket Response Updated" if edited else "New Ticket Response",
                message=f"Ticket {ticket['ticket_number']} has a response",
                link=HELPDESK_LINK,
            )
        return edited

    async def respond(
        self,
        caller: AuthTokenPayload,
        ticket_id: str,
        response: str,
        edit_requested: bool = False,
    ) -> Dict[str, Any]:
        response = self.validate_string_not_empty(response, "response")
        async with self.get_session() as session:
            ticket = await self._load(session, ticket_id)
            edited = await self._respond(session, caller, ticket, response, edit_requested)
            ticket = await self._load(session, ticket["id"])
        self.log_operation("EDIT_RESPONSE" if edited else "RESPOND", ticket["ticket_number"])
        return ticket
