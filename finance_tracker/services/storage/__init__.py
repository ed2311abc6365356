"""
Storage Services Package

Provides the abstract database interface and the SQLite implementation.
The store only depends on the interface, so the backend is swappable.
"""

from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DatabaseExecutor,
    DatabaseInterface,
    ExecuteResult,
    NotFoundError,
    StorageError,
    TransactionError,
)
from finance_tracker.services.storage.schema import (
    DEFAULT_CATEGORIES,
    SCHEMA_VERSION,
    init_schema,
    seed_default_categories,
)
from finance_tracker.services.storage.sqlite import (
    SQLAuditStorage,
    SQLExecutor,
    SQLiteDatabase,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "DatabaseExecutor",
    "DatabaseInterface",
    "ExecuteResult",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    "TransactionError",
    # Schema
    "DEFAULT_CATEGORIES",
    "SCHEMA_VERSION",
    "init_schema",
    "seed_default_categories",
    # SQLite implementation
    "SQLAuditStorage",
    "SQLExecutor",
    "SQLiteDatabase",
]
