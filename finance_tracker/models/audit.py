"""
Audit Models for Finance Tracker

Every store action and every smart entry step is logged for audit purposes.
This provides:
1. Traceability of all writes to the database
2. Debugging information when an action fails silently for the UI
3. Ability to reconstruct what happened to a bill or category

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Categories
    CATEGORY_ADDED = "category_added"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_DELETED = "transaction_deleted"

    # Summary
    SUMMARY_CALCULATED = "summary_calculated"

    # Split bills
    SPLIT_BILL_SAVED = "split_bill_saved"
    SPLIT_BILL_DELETED = "split_bill_deleted"

    # Smart entry
    TEXT_PARSED = "text_parsed"
    TEXT_PARSE_FAILED = "text_parse_failed"
    VALIDATION_FAILED = "validation_failed"

    # Failures
    STORE_ERROR = "store_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'category', 'transaction', 'split_bill')"
    )
    entity_id: Optional[int] = Field(
        default=None,
        description="Database id of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one smart entry submission)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_row(self) -> dict:
        """
        Convert to bind parameters for the audit_events table.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details_json": json.dumps(self.details, default=str) if self.details else None,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    @classmethod
    def from_row(cls, row: dict) -> "AuditEvent":
        return cls(
            event_id=UUID(row["event_id"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
            event_type=AuditEventType(row["event_type"]),
            severity=AuditSeverity(row["severity"]),
            entity_type=row.get("entity_type"),
            entity_id=row.get("entity_id"),
            correlation_id=UUID(row["correlation_id"]) if row.get("correlation_id") else None,
            description=row["description"],
            details=json.loads(row["details_json"]) if row.get("details_json") else {},
            error_message=row.get("error_message"),
            is_user_action=bool(row.get("is_user_action")),
        )


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.category_added(category_id, name)
        event = AuditEventBuilder.store_error("add_transaction", "disk I/O error")
    """

    @staticmethod
    def category_added(
        category_id: Optional[int],
        name: str,
        category_type: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            entity_type="category",
            entity_id=category_id,
            description=f"Category added: {name}",
            details={
                "name": name,
                "category_type": category_type,
            },
            is_user_action=True,
        )

    @staticmethod
    def category_updated(
        category_id: int,
        changes: dict[str, str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_UPDATED,
            entity_type="category",
            entity_id=category_id,
            description=f"Category {category_id} updated",
            details={"changes": changes},
            is_user_action=True,
        )

    @staticmethod
    def category_deleted(
        category_id: int,
        transactions_removed: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            severity=AuditSeverity.WARNING if transactions_removed else AuditSeverity.INFO,
            entity_type="category",
            entity_id=category_id,
            description=(
                f"Category {category_id} deleted with "
                f"{transactions_removed} transaction(s)"
            ),
            details={"transactions_removed": transactions_removed},
            is_user_action=True,
        )

    @staticmethod
    def transaction_added(
        transaction_id: Optional[int],
        amount: str,
        transaction_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{transaction_type.capitalize()} recorded: {amount}",
            details={
                "amount": amount,
                "type": transaction_type,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(transaction_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction {transaction_id} deleted",
            is_user_action=True,
        )

    @staticmethod
    def summary_calculated(
        month: str,
        total_income: str,
        total_expense: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_CALCULATED,
            severity=AuditSeverity.DEBUG,
            entity_type="summary",
            description=f"Summary calculated for {month}",
            details={
                "month": month,
                "total_income": total_income,
                "total_expense": total_expense,
            },
        )

    @staticmethod
    def split_bill_saved(
        bill_id: Optional[int],
        name: str,
        total_amount: str,
        member_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_BILL_SAVED,
            entity_type="split_bill",
            entity_id=bill_id,
            description=f"Split bill saved: {name} - {total_amount}",
            details={
                "name": name,
                "total_amount": total_amount,
                "member_count": member_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def split_bill_deleted(
        bill_id: int,
        members_removed: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_BILL_DELETED,
            entity_type="split_bill",
            entity_id=bill_id,
            description=f"Split bill {bill_id} deleted",
            details={"members_removed": members_removed},
            is_user_action=True,
        )

    @staticmethod
    def text_parsed(
        text: str,
        parsed: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TEXT_PARSED,
            entity_type="smart_entry",
            correlation_id=correlation_id,
            description="Text parsed into a transaction proposal",
            details={
                "text": text[:200],
                "parsed": parsed,
            },
            is_user_action=True,
        )

    @staticmethod
    def text_parse_failed(
        text: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TEXT_PARSE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="smart_entry",
            correlation_id=correlation_id,
            description="Text could not be parsed",
            details={
                "text": text[:200],
                "reason": reason,
            },
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="smart_entry",
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def store_error(
        action: str,
        error_message: str,
        entity_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            entity_id=entity_id,
            description=f"Store action failed: {action}",
            error_message=error_message,
            details={"action": action},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
