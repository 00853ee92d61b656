"""
Base Database Service
--------------------
Base class for all database services with shared session management,
validation helpers and the compare-and-swap status update used by every
entity state machine.
"""

from typing import Any, AsyncGenerator, Dict, Iterable, List, Optional, Sequence, Union
from contextlib import asynccontextmanager

from sqlalchemy import Table, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement, Select
from loguru import logger

from app.core.database_connection import DatabaseManager
from app.core.database_schema import utc_now


class BaseDatabaseService:
    """
    Base class for all database service classes.

    Provides shared functionality for database operations including:
    - SQLAlchemy session management
    - Row fetching helpers returning plain dictionaries
    - Compare-and-swap status updates
    - Common validation utilities
    """

    def __init__(self, database_manager: Optional[DatabaseManager] = None):
        """
        Initialize the database service with a database manager.

        Args:
            database_manager: Optional DatabaseManager instance. If not provided,
                            uses the singleton instance for connection pooling.
        """
        self.database_manager = database_manager or DatabaseManager()
        self._service_name = self.__class__.__name__

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a SQLAlchemy session with automatic commit/rollback.

        All statements issued inside one ``async with`` block form a single
        logical unit: an exception anywhere rolls every one of them back.
        """
        async with self.database_manager.get_session() as session:
            yield session

    # ========================================================================
    # QUERY HELPERS
    # ========================================================================

    @staticmethod
    async def fetch_one(session: AsyncSession, statement: Select) -> Optional[Dict[str, Any]]:
        result = await session.execute(statement)
        row = result.mappings().first()
        return dict(row) if row else None

    @staticmethod
    async def fetch_all(session: AsyncSession, statement: Select) -> List[Dict[str, Any]]:
        result = await session.execute(statement)
        return [dict(row) for row in result.mappings().all()]

    @staticmethod
    async def count_rows(session: AsyncSession, statement: Select) -> int:
        count_statement = select(func.count()).select_from(statement.order_by(None).subquery())
        return int((await session.execute(count_statement)).scalar_one())

    async def update_if_status(
        self,
        session: AsyncSession,
        table: Table,
        row_id: Optional[str],
        expected_status: Union[str, Sequence[str]],
        new_status: str,
        extra_conditions: Iterable[ColumnElement] = (),
        **values: Any,
    ) -> bool:
        """
        Compare-and-swap a row's status.

        Issues ``UPDATE ... SET status = :new WHERE id = :id AND status IN (:expected)``
        so two concurrent actors cannot both win the same transition.

        Args:
            session: Open session (the caller's unit of work)
            table: Table holding a ``status`` column
            row_id: Primary key, or None when extra_conditions identify the row
            expected_status: Status or statuses the row must currently hold
            new_status: Status to write
            extra_conditions: Additional WHERE clauses
            **values: Extra columns to set alongside the status

        Returns:
            True if exactly one row transitioned, False otherwise
        """
        if isinstance(expected_status, str):
            expected_status = [expected_status]
        conditions = [table.c.status.in_(list(expected_status)), *extra_conditions]
        if row_id is not None:
            conditions.append(table.c.id == row_id)
        if "updated_at" in table.c and "updated_at" not in values:
            values["updated_at"] = utc_now()

        result = await session.execute(
            update(table).where(*conditions).values(status=new_status, **values)
        )
        swapped = result.rowcount == 1
        if not swapped:
            logger.info(
                f"{self._service_name}: status swap {list(expected_status)} -> "
                f"{new_status} lost on {table.name} {row_id}"
            )
        return swapped

    # ========================================================================
    # VALIDATION UTILITIES
    # ========================================================================

    def validate_string_not_empty(
        self, string_value: Optional[str], parameter_name: str = "string"
    ) -> str:
        """
        Validate that a string is not None or empty.

        Returns:
            The stripped string

        Raises:
            ValueError: If string is None or empty
        """
        if not string_value or not isinstance(string_value, str):
            raise ValueError(f"{parameter_name} must be a non-empty string")
        if not string_value.strip():
            raise ValueError(f"{parameter_name} cannot be only whitespace")
        return string_value.strip()

    def validate_enum_value(
        self, enum_value: str, valid_values: List[str], parameter_name: str = "value"
    ) -> None:
        """
        Validate that a value is one of the allowed enum values.

        Raises:
            ValueError: If value is not in the list of valid values
        """
        if enum_value not in valid_values:
            raise ValueError(
                f"Invalid {parameter_name}: '{enum_value}'. "
                f"Must be one of: {', '.join(valid_values)}"
            )

    def validate_pagination_parameters(
        self, page: int, limit: int, max_limit: int = 100
    ) -> int:
        """
        Validate page/limit pagination.

        Returns:
            The row offset for the requested page

        Raises:
            ValueError: If pagination parameters are invalid
        """
        if page < 1:
            raise ValueError(f"page must be positive, got {page}")
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        if limit > max_limit:
            raise ValueError(f"limit cannot exceed {max_limit}, got {limit}")
        return (page - 1) * limit

    # ========================================================================
    # UTILITY METHODS
    # ========================================================================

    def log_operation(
        self,
        operation_type: str,
        entity_identifier: Any,
        success: bool = True,
        additional_context: Optional[str] = None,
    ) -> None:
        """
        Log database operations for monitoring and debugging.

        Args:
            operation_type: Type of operation (e.g., "CREATE", "UPDATE", "DELETE")
            entity_identifier: Identifier of the entity being operated on
            success: Whether the operation was successful
            additional_context: Optional additional context information
        """
        log_level = "info" if success else "error"
        status = "succeeded" if success else "failed"

        message = (
            f"{self._service_name}: {operation_type} operation {status} "
            f"for entity: {entity_identifier}"
        )

        if additional_context:
            message += f" - {additional_context}"

        getattr(logger, log_level)(message)
