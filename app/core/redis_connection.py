"""
Redis Connection Manager
------------------------
Manages the Redis connection pool used for caching the live configuration map.
Provides an async Redis client with connection pooling and small JSON helpers.

Redis is optional: with ``redis_enabled=False`` the manager stays uninitialized
and every caller falls back to the database.
"""

import json
from typing import Any, Optional

import redis.asyncio as aioredis
from redis.asyncio.connection import ConnectionPool
from loguru import logger

from app.core.config_manager import settings


class RedisManager:
    """Manages Redis connection pool and client."""

    def __init__(self):
        """Initialize Redis manager."""
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[aioredis.Redis] = None

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def initialize(self) -> None:
        """
        Initialize Redis connection pool and client.
        Creates connection pool based on configuration.
        """
        if not settings.redis_enabled:
            logger.info("Redis disabled by configuration; caching is off")
            return

        if self._pool is not None:
            logger.warning("Redis connection pool already initialized")
            return

        logger.info(
            f"Initializing Redis connection to {settings.redis_host}:{settings.redis_port}"
        )

        self._pool = ConnectionPool(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password,
            max_connections=settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )
        self._client = aioredis.Redis(connection_pool=self._pool)

        logger.info("Redis connection initialized successfully")

    async def close(self) -> None:
        """Close Redis connection pool and cleanup."""
        if self._client is None:
            return

        logger.info("Closing Redis connections")
        await self._client.aclose()
        await self._pool.disconnect()
        self._client = None
        self._pool = None
        logger.info("Redis connections closed")

    async def ping(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            bool: True if Redis is responsive, False otherwise
        """
        try:
            if self._client is None:
                return False
            return bool(await self._client.ping())
        except Exception as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    @property
    def client(self) -> aioredis.Redis:
        """
        Get Redis client.

        Raises:
            RuntimeError: If Redis not initialized
        """
        if self._client is None:
            raise RuntimeError("Redis not initialized. Call initialize() first.")
        return self._client

    # ========================================================================
    # JSON CACHE HELPERS
    # ========================================================================

    async def get_json(self, key: str) -> Optional[Any]:
        """Read a JSON value; cache errors are logged and treated as a miss."""
        if self._client is None:
            return None
        try:
            raw = await self._client.get(key)
        except Exception as e:
            logger.warning(f"Redis GET {key} failed, falling back: {e}")
            return None
        return json.loads(raw) if raw is not None else None

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        if self._client is None:
            return
        try:
            await self._client.set(key, json.dumps(value), ex=ttl_seconds)
        except Exception as e:
            logger.warning(f"Redis SET {key} failed: {e}")

    async def delete(self, key: str) -> None:
        if self._client is None:
            return
        try:
            await self._client.delete(key)
        except Exception as e:
            logger.warning(f"Redis DEL {key} failed: {e}")


# Global Redis manager instance
redis_manager = RedisManager()
