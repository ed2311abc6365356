"""Tests for the audit logger and its SQL storage."""

from uuid import uuid4

import pytest

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.models.audit import AuditEventBuilder, AuditEventType, AuditSeverity
from finance_tracker.services.storage import AuditStorageInterface, SQLAuditStorage


class FailingAuditStorage(AuditStorageInterface):

    async def append_event(self, event):
        raise RuntimeError("audit table locked")

    async def get_events_by_correlation_id(self, correlation_id):
        return []

    async def get_recent_events(self, limit=100):
        return []


class TestAuditLogger:

    @pytest.mark.asyncio
    async def test_local_only_logging_succeeds(self):
        logger = AuditLogger()
        assert await logger.log(AuditEventBuilder.transaction_deleted(1)) is True

    @pytest.mark.asyncio
    async def test_storage_failure_is_swallowed(self):
        logger = AuditLogger(FailingAuditStorage())
        assert await logger.log(AuditEventBuilder.transaction_deleted(1)) is False

    @pytest.mark.asyncio
    async def test_events_persisted_by_correlation_id(self, db):
        storage = SQLAuditStorage(db)
        logger = AuditLogger(storage)
        correlation_id = create_correlation_id()

        await logger.log(AuditEventBuilder.text_parsed("lunch 50k", {"amount": "50000"}, correlation_id))
        await logger.log(AuditEventBuilder.text_parse_failed("??", "no json", uuid4()))

        events = await storage.get_events_by_correlation_id(correlation_id)
        assert len(events) == 1
        assert events[0].event_type == AuditEventType.TEXT_PARSED
        assert events[0].details["parsed"] == {"amount": "50000"}

    @pytest.mark.asyncio
    async def test_store_error_logged_with_type(self, db):
        storage = SQLAuditStorage(db)
        logger = AuditLogger(storage)

        await logger.log_store_error("add_transaction", ValueError("bad amount"), entity_id=4)

        [event] = await storage.get_recent_events(limit=10)
        assert event.event_type == AuditEventType.STORE_ERROR
        assert event.severity == AuditSeverity.ERROR
        assert event.entity_id == 4
        assert event.error_message == "ValueError: bad amount"
