"""
System Configuration Service
----------------------------
Global key/value settings read by every client.

The live map is served from Redis when it is enabled (key ``system_config:live``)
and rebuilt from the database on a miss. Every write deletes the cached map so
the next poll sees the new value.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import func, insert, select, update

from app.auth.models import AuthTokenPayload
from app.core.config_manager import settings
from app.core.database_connection import DatabaseManager
from app.core.database_schema import system_config, utc_now
from app.core.redis_connection import RedisManager, redis_manager
from app.models.request_models import ConfigUpdateRequest
from app.psql_db_services.activity_log_service import ActivityAction, ActivityLogService
from app.psql_db_services.base_service import BaseDatabaseService

LIVE_CONFIG_CACHE_KEY = "system_config:live"


class SystemConfigService(BaseDatabaseService):
    """Reads and writes system_config rows with a Redis-cached live view."""

    def __init__(
        self,
        database_manager: Optional[DatabaseManager] = None,
        cache: Optional[RedisManager] = None,
    ):
        super().__init__(database_manager)
        self.cache = cache or redis_manager
        self.activity = ActivityLogService(database_manager)

    async def _load_map(self) -> Dict[str, Any]:
        async with self.get_session() as session:
            rows = await self.fetch_all(
                session, select(system_config.c.key, system_config.c.value)
            )
            latest = (
                await session.execute(select(func.max(system_config.c.updated_at)))
            ).scalar_one_or_none()
        return {
            "config": {row["key"]: row["value"] for row in rows},
            "updatedAt": latest.isoformat() if latest else None,
        }

    async def get_live_config(self) -> Dict[str, Any]:
        """
        Key/value map plus the latest update time.

        Returns:
            {"config": {key: value}, "updatedAt": iso timestamp or None}
        """
        cached = await self.cache.get_json(LIVE_CONFIG_CACHE_KEY)
        if cached is not None:
            return cached
        live = await self._load_map()
        await self.cache.set_json(
            LIVE_CONFIG_CACHE_KEY, live, settings.config_cache_ttl_seconds
        )
        return live

    async def get_public_config(self) -> Dict[str, Any]:
        """Uncached read used by the slow full-config fetch."""
        return await self._load_map()

    async def get_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        live = await self.get_live_config()
        return live["config"].get(key, default)

    async def is_enabled(self, key: str, default: bool = True) -> bool:
        value = await self.get_value(key)
        if value is None:
            return default
        return str(value).strip().lower() == "true"

    async def list_rows(self) -> List[Dict[str, Any]]:
        async with self.get_session() as session:
            return await self.fetch_all(
                session,
                select(system_config).order_by(system_config.c.category, system_config.c.key),
            )

    async def set_value(
        self, caller: AuthTokenPayload, key: str, request: ConfigUpdateRequest
    ) -> Dict[str, Any]:
        """Upsert one key and invalidate the cached live map."""
        key = self.validate_string_not_empty(key, "key")
        value = request.serialized_value()
        now = utc_now()
        async with self.get_session() as session:
            existing = await self.fetch_one(
                session, select(system_config).where(system_config.c.key == key)
            )
            values: Dict[str, Any] = {"value": value, "updated_by": caller.user_id, "updated_at": now}
            if request.description is not None:
                values["description"] = request.description
            if request.category is not None:
                values["category"] = request.category
            if existing:
                await session.execute(
                    update(system_config).where(system_config.c.key == key).values(**values)
                )
            else:
                values.setdefault("category", "general")
                await session.execute(insert(system_config).values(key=key, **values))
            await self.activity.record(
                session,
                user_id=caller.user_id,
                org_id=caller.org_id,
                action=ActivityAction.CONFIG_UPDATED,
                entity_type="SystemConfig",
                entity_id=key,
                details={
                    "previousValue": existing["value"] if existing else None,
                    "value": value,
                },
            )
            row = await self.fetch_one(
                session, select(system_config).where(system_config.c.key == key)
            )
        await self.cache.delete(LIVE_CONFIG_CACHE_KEY)
        self.log_operation("SET", key, additional_context=f"value={value}")
        return row
