"""Services package."""

from finance_tracker.services.parsing import (
    GeminiTextParser,
    ParsingError,
    TextParsingInterface,
)
from finance_tracker.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DatabaseInterface,
    NotFoundError,
    SQLAuditStorage,
    SQLiteDatabase,
    StorageError,
    TransactionError,
)

__all__ = [
    # Parsing services
    "GeminiTextParser",
    "ParsingError",
    "TextParsingInterface",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DatabaseInterface",
    "NotFoundError",
    "SQLAuditStorage",
    "SQLiteDatabase",
    "StorageError",
    "TransactionError",
]
