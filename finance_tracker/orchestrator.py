"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the
end-to-end smart entry flow:
    text → parse → validate → add transaction → display message

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written unless validation passes
- The parser only proposes; the category list decides
- Every step is audited under one correlation id

The store is passed in by the application root. There is no
shared global instance anywhere in the package.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.finance import (
    ActionResult,
    ParsedTransaction,
    TransactionCreate,
    TransactionType,
    ValidationResult,
)
from finance_tracker.services.parsing import (
    GeminiTextParser,
    ParsingError,
    TextParsingInterface,
)
from finance_tracker.services.storage import (
    DatabaseInterface,
    SQLAuditStorage,
    SQLiteDatabase,
    init_schema,
    seed_default_categories,
)
from finance_tracker.store import FinanceStore
from finance_tracker.validation import TransactionValidator


logger = structlog.get_logger(__name__)

PARSE_ERROR_MESSAGE = "Could not understand that. Try something like 'lunch 50000 food'."


def format_amount(amount: Decimal) -> str:
    """Group thousands with dots, as Rupiah amounts are written (50.000)."""
    if amount == amount.to_integral_value():
        return f"{int(amount):,}".replace(",", ".")
    text = f"{amount:,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


class SmartEntryOutcome(BaseModel):
    """What the UI needs to report back after a smart entry."""

    success: bool
    message: str
    correlation_id: UUID
    parsed: Optional[ParsedTransaction] = None
    validation: Optional[ValidationResult] = None
    transaction_result: Optional[ActionResult] = None
    completed_at: datetime = Field(default_factory=datetime.now)


class SmartEntryFlow:
    """
    Orchestrates the smart text entry flow.

    Flow:
    1. Split the store's categories into expense and income names
    2. Parse → ask the parser for a proposal
    3. Validate → amount, name and category must all check out
    4. Save → add the transaction through the store
    5. Report → signed amount message for the UI
    """

    def __init__(
        self,
        store: FinanceStore,
        parser: TextParsingInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._parser = parser
        self._audit_logger = audit_logger or AuditLogger()
        self._currency = get_settings().app.currency_symbol

    async def submit(self, text: str) -> Optional[SmartEntryOutcome]:
        """
        Turn free text into a saved transaction.

        Returns None for blank input (nothing to do).
        """
        if not text or not text.strip():
            return None
        text = text.strip()
        correlation_id = create_correlation_id()

        # Step 1: Category names by type
        categories = self._store.state.categories
        expense_names = [c.name for c in categories if c.category_type != TransactionType.INCOME]
        income_names = [c.name for c in categories if c.category_type == TransactionType.INCOME]

        # Step 2: Parse
        try:
            parsed = await self._parser.parse(text, expense_names, income_names)
        except ParsingError as e:
            await self._audit_logger.log_external_service_error(
                service="gemini",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return self._parse_failure(correlation_id)
        except Exception as e:
            logger.error("smart_entry_parse_crashed", error=str(e))
            await self._audit_logger.log(
                AuditEventBuilder.system_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            )
            return self._parse_failure(correlation_id)

        if parsed is None:
            await self._audit_logger.log(
                AuditEventBuilder.text_parse_failed(text, "no usable answer", correlation_id)
            )
            return self._parse_failure(correlation_id)

        await self._audit_logger.log(
            AuditEventBuilder.text_parsed(text, parsed.model_dump(mode="json"), correlation_id)
        )

        # Step 3: Validate
        validator = TransactionValidator(categories)
        validation = validator.validate(parsed)
        if not validation.is_valid:
            await self._audit_logger.log(
                AuditEventBuilder.validation_failed(
                    [issue.model_dump() for issue in validation.issues],
                    correlation_id,
                )
            )
            first_error = next(i for i in validation.issues if i.severity == "error")
            return SmartEntryOutcome(
                success=False,
                message=first_error.message,
                correlation_id=correlation_id,
                parsed=parsed,
                validation=validation,
            )

        # Step 4: Save
        category = validator.resolve_category(parsed)
        result = await self._store.add_transaction(
            TransactionCreate(
                category_id=category.id,
                amount=parsed.amount,
                date=datetime.now().isoformat(),
                note=parsed.name,
                type=parsed.type,
            )
        )
        if not result.success:
            return SmartEntryOutcome(
                success=False,
                message="The transaction could not be saved.",
                correlation_id=correlation_id,
                parsed=parsed,
                validation=validation,
                transaction_result=result,
            )

        # Step 5: Report
        is_income = parsed.type == TransactionType.INCOME
        label = "Income added" if is_income else "Expense added"
        sign = "+" if is_income else "-"
        message = (
            f"{label}: {parsed.name}\n"
            f"{sign}{self._currency} {format_amount(parsed.amount)}"
        )
        return SmartEntryOutcome(
            success=True,
            message=message,
            correlation_id=correlation_id,
            parsed=parsed,
            validation=validation,
            transaction_result=result,
        )

    def _parse_failure(self, correlation_id: UUID) -> SmartEntryOutcome:
        return SmartEntryOutcome(
            success=False,
            message=PARSE_ERROR_MESSAGE,
            correlation_id=correlation_id,
        )


async def create_app_components(
    db: Optional[DatabaseInterface] = None,
    parser: Optional[TextParsingInterface] = None,
) -> tuple[FinanceStore, Optional[SmartEntryFlow], DatabaseInterface]:
    """
    Factory function to create all application components.

    Opens the database, creates the schema and (if configured) the
    default categories, then wires audit logging, the store and the
    smart entry flow.

    Returns:
        (store, smart_entry_flow, db)

    smart_entry_flow is None when Gemini is not configured;
    manual entry keeps working without it.
    """
    settings = get_settings()

    db = db or SQLiteDatabase()
    await db.connect()
    await init_schema(db)
    if settings.database.seed_defaults:
        created = await seed_default_categories(db)
        if created:
            logger.info("default_categories_seeded", count=created)

    audit_logger = AuditLogger(SQLAuditStorage(db))
    store = FinanceStore(db, audit_logger)

    if parser is None:
        try:
            parser = GeminiTextParser()
        except Exception as e:
            # Gemini not configured - continue without smart entry
            logger.warning("smart_entry_unavailable", error=str(e))
            parser = None

    flow = SmartEntryFlow(store, parser, audit_logger) if parser else None
    return store, flow, db
