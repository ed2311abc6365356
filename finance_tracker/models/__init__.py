"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing between the database, the store and the UI conforms to these schemas.
"""

from finance_tracker.models.finance import (
    ActionResult,
    Category,
    CategoryCreate,
    CategoryUpdate,
    FinanceState,
    MonthSummary,
    ParsedTransaction,
    SplitBill,
    SplitBillCreate,
    SplitBillMember,
    SplitBillMemberCreate,
    Transaction,
    TransactionCreate,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "ActionResult",
    "Category",
    "CategoryCreate",
    "CategoryUpdate",
    "FinanceState",
    "MonthSummary",
    "ParsedTransaction",
    "SplitBill",
    "SplitBillCreate",
    "SplitBillMember",
    "SplitBillMemberCreate",
    "Transaction",
    "TransactionCreate",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
