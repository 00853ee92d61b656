"""
Notifications Service
---------------------
In-app notifications: written alongside workflow transitions, read and
acknowledged by their recipient.
"""

from typing import Any, Dict, Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database_schema import new_id, notifications, utc_now
from app.psql_db_services.base_service import BaseDatabaseService


class NotificationType:
    APPLICATION = "APPLICATION"
    TASK = "TASK"
    TICKET = "TICKET"
    ACCOUNT = "ACCOUNT"
    SYSTEM = "SYSTEM"


class NotificationsService(BaseDatabaseService):
    """CRUD for the notifications table."""

    async def create(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        type: str,
        title: str,
        message: str,
        link: Optional[str] = None,
    ) -> str:
        """Insert a notification as part of the caller's unit of work."""
        notification_id = new_id()
        await session.execute(
            insert(notifications).values(
                id=notification_id,
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                link=link,
                is_read=False,
                created_at=utc_now(),
            )
        )
        self.log_operation("NOTIFY", user_id, additional_context=title)
        return notification_id

    async def list_for_user(
        self, user_id: str, page: int = 1, limit: int = 20, unread_only: bool = False
    ) -> Dict[str, Any]:
        offset = self.validate_pagination_parameters(page, limit)
        statement = select(notifications).where(notifications.c.user_id == user_id)
        if unread_only:
            statement = statement.where(notifications.c.is_read.is_(False))

        async with self.get_session() as session:
            total = await self.count_rows(session, statement)
            rows = await self.fetch_all(
                session,
                statement.order_by(notifications.c.created_at.desc())
                .limit(limit)
                .offset(offset),
            )
            unread = await self._unread_count(session, user_id)
        return {"notifications": rows, "total": total, "unreadCount": unread}

    @staticmethod
    async def _unread_count(session: AsyncSession, user_id: str) -> int:
        result = await session.execute(
            select(func.count())
            .select_from(notifications)
            .where(notifications.c.user_id == user_id, notifications.c.is_read.is_(False))
        )
        return int(result.scalar_one())

    async def unread_count(self, user_id: str) -> int:
        async with self.get_session() as session:
            return await self._unread_count(session, user_id)

    async def mark_read(self, notification_id: str, user_id: str) -> bool:
        """Returns False when the notification does not belong to the user."""
        async with self.get_session() as session:
            result = await session.execute(
                update(notifications)
                .where(
                    notifications.c.id == notification_id,
                    notifications.c.user_id == user_id,
                )
                .values(is_read=True)
            )
        return result.rowcount == 1

    async def mark_all_read(self, user_id: str) -> int:
        async with self.get_session() as session:
            result = await session.execute(
                update(notifications)
                .where(notifications.c.user_id == user_id, notifications.c.is_read.is_(False))
                .values(is_read=True)
            )
        return result.rowcount

    async def delete(self, notification_id: str, user_id: str) -> bool:
        async with self.get_session() as session:
            result = await session.execute(
                delete(notifications).where(
                    notifications.c.id == notification_id,
                    notifications.c.user_id == user_id,
                )
            )
        return result.rowcount == 1
