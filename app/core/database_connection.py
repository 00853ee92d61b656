"""
Database Connection Manager
---------------------------
Manages database connections with the SQLAlchemy async engine.

PostgreSQL (asyncpg) is the production target; any async SQLAlchemy URL works,
which lets local runs and the test-suite use SQLite through aiosqlite.
"""

from typing import Any, AsyncGenerator, Dict, Optional
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy import insert, select, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config_manager import settings
from app.core.database_schema import (
    DEFAULT_SYSTEM_CONFIG,
    metadata,
    organizations,
    system_config,
    utc_now,
)


class DatabaseManager:
    """
    Manages the async engine and session factory.

    A single instance is shared process-wide (singleton), so every service
    that constructs ``DatabaseManager()`` reuses the same connection pool.
    """

    _instance = None
    _engine: Optional[AsyncEngine] = None
    _sessionmaker: Optional[async_sessionmaker] = None

    def __new__(cls, *args, **kwargs):
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super(DatabaseManager, cls).__new__(cls)
        return cls._instance

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._engine

    async def initialize(self, database_url: Optional[str] = None) -> None:
        """
        Initialize SQLAlchemy async engine.

        Args:
            database_url: Optional URL override, defaults to settings.database_url
        """
        if self._engine is not None:
            logger.warning("Database engine already initialized")
            return

        url = database_url or settings.database_url
        engine_options: Dict[str, Any] = {"echo": False}
        if url.startswith("postgresql"):
            engine_options.update(
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                pool_pre_ping=True,
                pool_recycle=3600,
                pool_timeout=30,
            )

        logger.info(f"Initializing database engine for {url.split('://')[0]}")
        try:
            self._engine = create_async_engine(url, **engine_options)
            self._sessionmaker = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            logger.info("SQLAlchemy async engine and sessionmaker initialized")
        except Exception as e:
            logger.error(f"Error initializing SQLAlchemy engine: {e}")
            raise

    async def create_schema(self) -> None:
        """Create any missing tables."""
        async with self.engine.begin() as connection:
            await connection.run_sync(metadata.create_all)
        logger.info("Database schema verified")

    async def seed_reference_data(self) -> None:
        """Insert the default organization and default system configuration."""
        async with self.get_session() as session:
            existing_org = await session.execute(
                select(organizations.c.id).where(
                    organizations.c.id == settings.default_org_id
                )
            )
            if existing_org.first() is None:
                await session.execute(
                    insert(organizations).values(
                        id=settings.default_org_id,
                        name="Default Organization",
                        created_at=utc_now(),
                    )
                )
                logger.info(f"Seeded organization {settings.default_org_id}")

            existing_keys = set(
                (await session.execute(select(system_config.c.key))).scalars().all()
            )
            for entry in DEFAULT_SYSTEM_CONFIG:
                if entry["key"] in existing_keys:
                    continue
                await session.execute(
                    insert(system_config).values(**entry, updated_at=utc_now())
                )
                logger.info(f"Seeded system config {entry['key']}={entry['value']}")

    async def ping(self) -> bool:
        """Run a trivial query; False when the database is unreachable."""
        if self._engine is None:
            return False
        try:
            async with self.get_session() as session:
                result = await session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except Exception as e:
            logger.error(f"Database ping failed: {e}")
            return False

    async def close(self) -> None:
        """Close SQLAlchemy engine."""
        if self._engine is not None:
            logger.info("Disposing SQLAlchemy engine")
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None
            logger.info("SQLAlchemy engine disposed")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a SQLAlchemy async session from the sessionmaker.

        Yields:
            AsyncSession: Active session, committed on success and rolled back
                          on any exception

        Raises:
            RuntimeError: If database not initialized
        """
        if not self._sessionmaker:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        session = self._sessionmaker()
        try:
            yield session
            await session.commit()
            logger.debug("Session committed successfully")
        except Exception as e:
            await session.rollback()
            logger.debug(f"Session rolled back due to error: {e}")
            raise
        finally:
            await session.close()


# Global database manager instance
db_manager = DatabaseManager()
