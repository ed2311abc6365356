"""
Abstract Storage Interface

DESIGN DECISION: The store never talks to a database driver directly.
It only needs three primitives from the durable layer:
1. Run a parameterized statement (returning the generated id for inserts)
2. Run a parameterized query returning zero or more rows
3. Run a parameterized query returning at most one row

plus a transaction boundary for multi-statement writes. This allows us to:
- Swap SQLite for another relational backend
- Use a wrapped or failing database in tests
- Keep the finance logic decoupled from the driver

The interface is intentionally simple - we're not building an ORM.
Rows come back as plain dicts keyed by column name.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel

from finance_tracker.models.audit import AuditEvent


Params = Optional[Mapping[str, Any]]
Row = dict[str, Any]


class ExecuteResult(BaseModel):
    """What a write statement reports back."""

    last_insert_id: Optional[int] = None
    rowcount: int = 0


class DatabaseExecutor(ABC):
    """
    Statement execution primitives.

    SQL uses named parameters (``:name``) bound from a mapping.
    """

    @abstractmethod
    async def execute(self, sql: str, params: Params = None) -> ExecuteResult:
        """
        Run a statement that returns no rows.

        Returns:
            ExecuteResult with the generated id for inserts

        Raises:
            StorageError: If the statement is rejected
        """
        pass

    @abstractmethod
    async def fetch_all(self, sql: str, params: Params = None) -> list[Row]:
        """
        Run a query and return every row.

        Raises:
            StorageError: If the query is rejected
        """
        pass

    @abstractmethod
    async def fetch_one(self, sql: str, params: Params = None) -> Optional[Row]:
        """
        Run a query and return the first row, or None.

        Raises:
            StorageError: If the query is rejected
        """
        pass


class DatabaseInterface(DatabaseExecutor):
    """
    A database handle.

    Statements run directly on the handle are committed individually.
    Statements run inside ``transaction()`` commit together or not at all.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the underlying connection pool.

        Raises:
            ConnectionError: If the database cannot be reached
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release all connections."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[DatabaseExecutor]:
        """
        Open an atomic unit of work.

        Usage:
            async with db.transaction() as tx:
                await tx.execute(...)
                await tx.execute(...)

        Commits when the block exits normally and rolls back
        if it raises. The exception is re-raised.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one smart entry submission).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class TransactionError(StorageError):
    """A multi-statement write was rolled back."""
    pass
