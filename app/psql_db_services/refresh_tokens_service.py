"""
Refresh Tokens Service
----------------------
Server-side store of opaque refresh credentials.

A refresh credential is a random uuid4 string with an expiry. It is single-use:
``rotate`` revokes the presented token and issues a replacement in the same
transaction, so a replayed token always fails.
"""

import uuid
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config_manager import settings
from app.core.database_schema import new_id, refresh_tokens, users, utc_now
from app.core.exceptions import Unauthenticated
from app.models.request_models import UserStatus
from app.psql_db_services.activity_log_service import ActivityAction, ActivityLogService
from app.psql_db_services.base_service import BaseDatabaseService


class RefreshTokensService(BaseDatabaseService):
    """Issue, rotate and revoke refresh credentials."""

    async def _issue(self, session: AsyncSession, user_id: str) -> str:
        token = str(uuid.uuid4())
        now = utc_now()
        await session.execute(
            insert(refresh_tokens).values(
                id=new_id(),
                user_id=user_id,
                token=token,
                expires_at=now + timedelta(hours=settings.refresh_token_expire_hours),
                created_at=now,
            )
        )
        return token

    async def issue(self, user_id: str) -> str:
        async with self.get_session() as session:
            token = await self._issue(session, user_id)
        self.log_operation("ISSUE_REFRESH", user_id)
        return token

    async def rotate(self, token: str) -> Dict[str, Any]:
        """
        Consume a refresh credential and issue its replacement.

        Returns:
            {"user": <user row>, "refresh_token": <new token>}

        Raises:
            Unauthenticated: Unknown, revoked or expired token, or a disabled account
        """
        invalid = Unauthenticated("Invalid or expired refresh token")
        async with self.get_session() as session:
            now = utc_now()
            revoked = await session.execute(
                update(refresh_tokens)
                .where(
                    refresh_tokens.c.token == token,
                    refresh_tokens.c.revoked_at.is_(None),
                    refresh_tokens.c.expires_at > now,
                )
                .values(revoked_at=now)
            )
            if revoked.rowcount != 1:
                raise invalid

            stored = await self.fetch_one(
                session,
                select(refresh_tokens.c.user_id).where(refresh_tokens.c.token == token),
            )
            user = await self.fetch_one(
                session, select(users).where(users.c.id == stored["user_id"])
            )
            if not user or user["status"] in (
                UserStatus.INACTIVE.value,
                UserStatus.SUSPENDED.value,
            ):
                raise invalid

            new_token = await self._issue(session, user["id"])
        self.log_operation("ROTATE_REFRESH", user["id"])
        return {"user": user, "refresh_token": new_token}

    async def revoke(self, token: str, requester_id: Optional[str] = None) -> bool:
        """
        Revoke one refresh credential. Unknown or already revoked tokens are
        ignored.

        Returns:
            True if a live token was revoked
        """
        async with self.get_session() as session:
            result = await session.execute(
                update(refresh_tokens)
                .where(
                    refresh_tokens.c.token == token,
                    refresh_tokens.c.revoked_at.is_(None),
                )
                .values(revoked_at=utc_now())
            )
            if result.rowcount:
                await ActivityLogService(self.database_manager).record(
                    session,
                    user_id=requester_id,
                    action=ActivityAction.TOKEN_REVOKED,
                    entity_type="RefreshToken",
                )
        return bool(result.rowcount)

    async def revoke_all(self, user_id: str) -> int:
        """Revoke every live refresh credential of a subject."""
        async with self.get_session() as session:
            result = await session.execute(
                update(refresh_tokens)
                .where(
                    refresh_tokens.c.user_id == user_id,
                    refresh_tokens.c.revoked_at.is_(None),
                )
                .values(revoked_at=utc_now())
            )
            await ActivityLogService(self.database_manager).record(
                session,
                user_id=user_id,
                action=ActivityAction.ALL_TOKENS_REVOKED,
                entity_type="RefreshToken",
                details={"revoked": result.rowcount},
            )
        return result.rowcount
