"""
SQLite Storage Implementation

DESIGN DECISION: SQLite is the storage backend because:
1. The app is single-user and local-first
2. No database server to set up
3. Plain SQL aggregation is all the summaries need

We go through SQLAlchemy's asyncio extension (aiosqlite driver) and
plain text() statements instead of ORM models. The store owns its SQL;
SQLAlchemy only supplies the async engine, pooling and transactions.

TRADEOFFS:
- REAL columns for money (converted to Decimal above this layer)
- No foreign-key enforcement (the store deletes dependents itself)
"""

from contextlib import asynccontextmanager
from decimal import Decimal
from enum import Enum
from typing import Any, AsyncIterator, Optional
from uuid import UUID

import structlog
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEvent
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DatabaseExecutor,
    DatabaseInterface,
    ExecuteResult,
    NotFoundError,
    Params,
    Row,
    StorageError,
    TransactionError,
)


logger = structlog.get_logger(__name__)


def _bind_value(value: Any) -> Any:
    """Convert Python values the sqlite driver cannot bind."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def _bind(params: Params) -> dict[str, Any]:
    if not params:
        return {}
    return {key: _bind_value(value) for key, value in params.items()}


class SQLExecutor(DatabaseExecutor):
    """
    Runs statements on one open connection.

    Used directly inside transactions; SQLiteDatabase wraps it with
    a connection-per-statement for standalone calls.
    """

    def __init__(self, conn: AsyncConnection):
        self._conn = conn

    async def execute(self, sql: str, params: Params = None) -> ExecuteResult:
        try:
            result = await self._conn.execute(text(sql), _bind(params))
        except SQLAlchemyError as e:
            raise StorageError(f"Statement failed: {e}") from e
        return ExecuteResult(
            last_insert_id=result.lastrowid,
            rowcount=max(result.rowcount, 0),
        )

    async def fetch_all(self, sql: str, params: Params = None) -> list[Row]:
        try:
            result = await self._conn.execute(text(sql), _bind(params))
        except SQLAlchemyError as e:
            raise StorageError(f"Query failed: {e}") from e
        return [dict(row) for row in result.mappings().all()]

    async def fetch_one(self, sql: str, params: Params = None) -> Optional[Row]:
        try:
            result = await self._conn.execute(text(sql), _bind(params))
        except SQLAlchemyError as e:
            raise StorageError(f"Query failed: {e}") from e
        row = result.mappings().first()
        return dict(row) if row is not None else None


class SQLiteDatabase(DatabaseInterface):
    """
    Async SQLite database handle.

    Standalone statements each run in their own short transaction.
    Use ``transaction()`` to group statements atomically.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        echo: Optional[bool] = None,
    ):
        settings = get_settings().database
        self._url = url or settings.url
        self._echo = settings.echo if echo is None else echo
        self._engine: Optional[AsyncEngine] = None

    @property
    def url(self) -> str:
        return self._url

    def _create_engine(self) -> AsyncEngine:
        engine_kwargs: dict[str, Any] = {"echo": self._echo, "future": True}
        if ":memory:" in self._url:
            # One shared connection, otherwise every checkout sees an empty database
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        return create_async_engine(self._url, **engine_kwargs)

    @retry(
        retry=retry_if_exception_type(OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _ping(self, engine: AsyncEngine) -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def connect(self) -> None:
        """
        Create the engine and check the database answers.

        Locked or briefly unavailable database files are retried.
        """
        if self._engine is not None:
            return

        engine = self._create_engine()
        try:
            await self._ping(engine)
        except SQLAlchemyError as e:
            await engine.dispose()
            raise ConnectionError(f"Failed to open database {self._url}: {e}") from e

        self._engine = engine
        logger.info("database_connected", url=self._url)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.debug("database_closed", url=self._url)

    async def _get_engine(self) -> AsyncEngine:
        if self._engine is None:
            await self.connect()
        return self._engine

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[SQLExecutor]:
        engine = await self._get_engine()
        try:
            async with engine.begin() as conn:
                yield SQLExecutor(conn)
        except SQLAlchemyError as e:
            raise StorageError(f"Database error: {e}") from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[DatabaseExecutor]:
        try:
            async with self._connection() as tx:
                yield tx
        except NotFoundError as e:
            logger.warning("transaction_rolled_back", error=str(e))
            raise
        except StorageError as e:
            logger.warning("transaction_rolled_back", error=str(e))
            raise TransactionError(f"Transaction rolled back: {e}") from e

    async def execute(self, sql: str, params: Params = None) -> ExecuteResult:
        async with self._connection() as conn:
            return await conn.execute(sql, params)

    async def fetch_all(self, sql: str, params: Params = None) -> list[Row]:
        async with self._connection() as conn:
            return await conn.fetch_all(sql, params)

    async def fetch_one(self, sql: str, params: Params = None) -> Optional[Row]:
        async with self._connection() as conn:
            return await conn.fetch_one(sql, params)


class SQLAuditStorage(AuditStorageInterface):
    """
    Audit events persisted to the audit_events table.

    Shares the database handle with the store.
    """

    def __init__(self, db: DatabaseInterface):
        self._db = db

    async def append_event(self, event: AuditEvent) -> bool:
        await self._db.execute(
            """
            INSERT INTO audit_events (
                event_id, timestamp, event_type, severity, entity_type, entity_id,
                correlation_id, description, details_json, error_message, is_user_action
            ) VALUES (
                :event_id, :timestamp, :event_type, :severity, :entity_type, :entity_id,
                :correlation_id, :description, :details_json, :error_message, :is_user_action
            )
            """,
            event.to_row(),
        )
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        rows = await self._db.fetch_all(
            "SELECT * FROM audit_events WHERE correlation_id = :correlation_id "
            "ORDER BY timestamp ASC",
            {"correlation_id": str(correlation_id)},
        )
        return [AuditEvent.from_row(row) for row in rows]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        rows = await self._db.fetch_all(
            "SELECT * FROM audit_events ORDER BY timestamp DESC LIMIT :limit",
            {"limit": limit},
        )
        return [AuditEvent.from_row(row) for row in rows]
