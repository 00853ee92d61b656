"""
Notification Endpoints
----------------------
In-app notifications of the current user.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder
from loguru import logger

from app.auth.dependencies import get_current_user
from app.auth.models import AuthTokenPayload
from app.core.exceptions import NotFound, PlatformError
from app.models.response_models import pagination_block, success_response
from app.psql_db_services.notifications_service import NotificationsService

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.exception(f"Error during {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.get("", summary="List my notifications")
async def list_notifications(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    current_user: AuthTokenPayload = Depends(get_current_user),
):
    try:
        result = await NotificationsService().list_for_user(
            current_user.user_id, page, limit, unread_only
        )
        return success_response(
            {
                "notifications": jsonable_encoder(result["notifications"]),
                "unreadCount": result["unreadCount"],
                "pagination": pagination_block(page, limit, result["total"]),
            }
        )
    except Exception as e:
        raise _internal_error("list notifications", e)


@router.get("/unread-count", summary="Count my unread notifications")
async def unread_count(current_user: AuthTokenPayload = Depends(get_current_user)):
    try:
        count = await NotificationsService().unread_count(current_user.user_id)
        return success_response({"unreadCount": count})
    except Exception as e:
        raise _internal_error("count notifications", e)


@router.patch("/read-all", summary="Mark all my notifications read")
async def mark_all_read(current_user: AuthTokenPayload = Depends(get_current_user)):
    try:
        updated = await NotificationsService().mark_all_read(current_user.user_id)
        return success_response({"updated": updated}, "All notifications marked as read")
    except Exception as e:
        raise _internal_error("update notifications", e)


@router.patch("/{notification_id}/read", summary="Mark one notification read")
async def mark_read(
    notification_id: str, current_user: AuthTokenPayload = Depends(get_current_user)
):
    try:
        if not await NotificationsService().mark_read(notification_id, current_user.user_id):
            raise NotFound("Notification not found")
        return success_response(message="Notification marked as read")
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("update notification", e)


@router.delete("/{notification_id}", summary="Delete a notification")
async def delete_notification(
    notification_id: str, current_user: AuthTokenPayload = Depends(get_current_user)
):
    try:
        if not await NotificationsService().delete(notification_id, current_user.user_id):
            raise NotFound("Notification not found")
        return success_response(message="Notification deleted")
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("delete notification", e)
