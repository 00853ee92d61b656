"""
Help-Desk Endpoints
-------------------
Ticket creation, visibility-filtered reads, status changes, assignment and
the single guarded response.

Tickets can be addressed by id or by ticket number (``PV-TK-...``).
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger

from app.auth.dependencies import get_current_user, require_ticket_admin
from app.auth.models import AuthTokenPayload
from app.core.exceptions import PlatformError, ValidationFailed
from app.models.request_models import (
    TicketAssignRequest,
    TicketCreateRequest,
    TicketRespondRequest,
    TicketStatusRequest,
)
from app.models.response_models import pagination_block, success_response
from app.psql_db_services.helpdesk_service import HelpdeskService

# ============================================================================
# ROUTER INITIALIZATION
# ============================================================================

router = APIRouter(prefix="/api/helpdesk/tickets", tags=["Help Desk"])


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.exception(f"Error during {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


# ============================================================================
# CREATE / READ
# ============================================================================


@router.post("", status_code=status.HTTP_201_CREATED, summary="Raise a ticket")
async def create_ticket(
    request: TicketCreateRequest,
    current_user: AuthTokenPayload = Depends(get_current_user),
):
    try:
        ticket = await HelpdeskService().create_ticket(current_user, request)
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=success_response(
                jsonable_encoder(ticket),
                f"Ticket {ticket['ticket_number']} created",
            ),
        )
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("create ticket", e)


@router.get("", summary="List tickets visible to me")
async def list_tickets(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: AuthTokenPayload = Depends(get_current_user),
):
    """
    SUPERADMIN: all tickets. ADMIN: its organization. EXPERT/ANALYST: tickets
    assigned to them. CUSTOMER: tickets it raised.
    """
    try:
        result = await HelpdeskService().list_tickets(current_user, status_filter, page, limit)
        return success_response(
            {
                "tickets": jsonable_encoder(result["tickets"]),
                "pagination": pagination_block(page, limit, result["total"]),
            }
        )
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e), fields=["status"])
    except Exception as e:
        raise _internal_error("list tickets", e)


@router.get("/{ticket_id}", summary="Get a ticket")
async def get_ticket(ticket_id: str, current_user: AuthTokenPayload = Depends(get_current_user)):
    try:
        ticket = await HelpdeskService().get_ticket(current_user, ticket_id)
        return success_response(jsonable_encoder(ticket))
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("load ticket", e)


# ============================================================================
# STATUS / ASSIGNMENT
# ============================================================================


@router.patch("/{ticket_id}/status", summary="Change ticket status")
async def update_ticket_status(
    ticket_id: str,
    request: TicketStatusRequest,
    current_user: AuthTokenPayload = Depends(get_current_user),
):
    """Only the assignee or a SUPERADMIN may change status."""
    try:
        ticket = await HelpdeskService().update_status(
            current_user, ticket_id, request.status, request.reply
        )
        return success_response(jsonable_encoder(ticket), "Ticket status updated successfully")
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e), fields=["status"])
    except Exception as e:
        raise _internal_error("update ticket status", e)


@router.patch("/{ticket_id}/assign", summary="Assign a ticket")
async def assign_ticket(
    ticket_id: str,
    request: TicketAssignRequest,
    current_user: AuthTokenPayload = Depends(require_ticket_admin),
):
    """
    Raises:
        400: INVALID_ASSIGNEE_ROLE, TARGET_SUSPENDED, TICKET_CLOSED
        403: TENANT_MISMATCH
        409: TICKET_LOCKED
    """
    try:
        ticket = await HelpdeskService().assign(current_user, ticket_id, request.assigned_to_id)
        return success_response(jsonable_encoder(ticket), "Ticket assigned successfully")
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("assign ticket", e)


@router.post("/{ticket_id}/reassign", summary="Reassign a ticket")
async def reassign_ticket(
    ticket_id: str,
    request: TicketAssignRequest,
    current_user: AuthTokenPayload = Depends(require_ticket_admin),
):
    try:
        ticket = await HelpdeskService().assign(
            current_user, ticket_id, request.assigned_to_id, reassign=True
        )
        return success_response(jsonable_encoder(ticket), "Ticket reassigned")
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("reassign ticket", e)


@router.post("/{ticket_id}/unassign", summary="Unassign a ticket")
async def unassign_ticket(
    ticket_id: str, current_user: AuthTokenPayload = Depends(require_ticket_admin)
):
    try:
        ticket = await HelpdeskService().unassign(current_user, ticket_id)
        return success_response(jsonable_encoder(ticket), "Ticket unassigned")
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("unassign ticket", e)


# ============================================================================
# RESPONSE
# ============================================================================


@router.post("/{ticket_id}/messages", summary="Respond to a ticket")
async def respond_to_ticket(
    ticket_id: str,
    request: TicketRespondRequest,
    current_user: AuthTokenPayload = Depends(get_current_user),
):
    """
    A ticket holds one response. A second call needs ``edit_requested`` and
    non-SUPERADMIN responders may edit only once.

    Raises:
        400: ALREADY_RESPONDED, EDIT_LIMIT_REACHED
        403: FORBIDDEN, UNAUTHORIZED_EDIT
    """
    try:
        ticket = await HelpdeskService().respond(
            current_user, ticket_id, request.response, request.edit_requested
        )
        message = "Response updated" if ticket["is_edited"] and request.edit_requested else "Response recorded"
        return success_response(jsonable_encoder(ticket), message)
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e), fields=["response"])
    except Exception as e:
        raise _internal_error("respond to ticket", e)
