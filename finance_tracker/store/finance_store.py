"""
Finance Store

The single source of truth the UI reads from.

DESIGN DECISION: The store keeps an immutable FinanceState snapshot and
replaces it wholesale after every successful action. A failed action
leaves the previous snapshot in place, so the UI never shows a
half-applied write.

Rules every action follows:
- Never raise to the caller; return an ActionResult instead
- Log every failure through the audit logger
- Re-fetch whatever the write affected

There is no module-level instance. The application root builds one
store and passes it to whoever needs it.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Optional

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEventBuilder
from finance_tracker.models.finance import (
    ActionResult,
    Category,
    CategoryCreate,
    CategoryUpdate,
    FinanceState,
    MonthSummary,
    SplitBill,
    SplitBillCreate,
    SplitBillMember,
    SplitBillMemberCreate,
    Transaction,
    TransactionCreate,
    TransactionType,
)
from finance_tracker.services.storage.interface import DatabaseInterface, NotFoundError
from finance_tracker.store.summary import (
    MonthTarget,
    build_month_summary,
    resolve_year_month,
)


logger = structlog.get_logger(__name__)

StateListener = Callable[[FinanceState], Any]


# Amounts are kept to the smallest currency unit
MONEY_QUANTUM = Decimal("0.01")


def _to_decimal(value: Any) -> Decimal:
    """
    Turn a REAL sum from SQLite into an exact amount.

    Float addition leaves noise below the currency unit
    (0.1 + 0.2 = 0.30000000000000004), so sums are rounded to MONEY_QUANTUM.
    """
    if value is None:
        return Decimal("0")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


# =============================================================================
# SQL
# =============================================================================

SELECT_CATEGORIES = "SELECT * FROM categories"

INSERT_CATEGORY = """
    INSERT INTO categories (name, icon, color, budget_limit, category_type)
    VALUES (:name, :icon, :color, :budget_limit, :category_type)
"""

UPDATE_CATEGORY = """
    UPDATE categories SET name = :name, icon = :icon, color = :color
    WHERE id = :id
"""

SELECT_RECENT_TRANSACTIONS = """
    SELECT t.*, c.name AS category_name, c.icon AS category_icon, c.color AS category_color
    FROM transactions t
    JOIN categories c ON t.category_id = c.id
    ORDER BY t.date DESC, t.id DESC
    LIMIT :limit
"""

INSERT_TRANSACTION = """
    INSERT INTO transactions (category_id, amount, date, note, image_uri, type)
    VALUES (:category_id, :amount, :date, :note, :image_uri, :type)
"""

SUM_EXPENSE = """
    SELECT COALESCE(SUM(amount), 0) AS total FROM transactions
    WHERE strftime('%Y-%m', date) = :month AND (type = 'expense' OR type IS NULL)
"""

SUM_INCOME = """
    SELECT COALESCE(SUM(amount), 0) AS total FROM transactions
    WHERE strftime('%Y-%m', date) = :month AND type = 'income'
"""

EXPENSE_BY_CATEGORY = """
    SELECT category_id, SUM(amount) AS total FROM transactions
    WHERE strftime('%Y-%m', date) = :month AND (type = 'expense' OR type IS NULL)
    GROUP BY category_id
"""

SELECT_SPLIT_BILLS = "SELECT * FROM split_bills ORDER BY date DESC, id DESC"

INSERT_SPLIT_BILL = """
    INSERT INTO split_bills (date, name, total_amount, image_uri)
    VALUES (:date, :name, :total_amount, :image_uri)
"""

INSERT_SPLIT_BILL_MEMBER = """
    INSERT INTO split_bill_members (split_bill_id, name, share_amount, is_me)
    VALUES (:split_bill_id, :name, :share_amount, :is_me)
"""


class FinanceStore:
    """
    In-memory finance state backed by the database.

    Usage:
        store = FinanceStore(db, audit_logger)
        await store.initialize()
        result = await store.add_transaction(TransactionCreate(...))
        if not result.success:
            ...
        store.state.transactions
    """

    def __init__(
        self,
        db: DatabaseInterface,
        audit_logger: Optional[AuditLogger] = None,
        recent_limit: Optional[int] = None,
    ):
        self._db = db
        self._audit_logger = audit_logger or AuditLogger()
        self._recent_limit = recent_limit or get_settings().app.recent_transactions_limit
        self._state = FinanceState()
        self._listeners: list[StateListener] = []
        self._last_summary: Optional[MonthSummary] = None

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> FinanceState:
        """Current snapshot."""
        return self._state

    @property
    def last_summary(self) -> Optional[MonthSummary]:
        """Summary produced by the most recent successful calculation."""
        return self._last_summary

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a callable that receives every new snapshot.

        Returns a function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, **changes: Any) -> None:
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.warning("state_listener_failed", error=str(e))

    async def _fail(
        self,
        action: str,
        error: Exception,
        entity_id: Optional[int] = None,
    ) -> ActionResult:
        await self._audit_logger.log_store_error(action, error, entity_id=entity_id)
        return ActionResult.failed(action, error, entity_id=entity_id)

    async def initialize(self) -> ActionResult:
        """
        Load everything the UI shows on first render.

        Stops at the first step that fails and reports it.
        """
        steps = (
            self.fetch_categories,
            self.fetch_recent_transactions,
            self.fetch_split_bills,
            self.calculate_month_summary,
        )
        for step in steps:
            result = await step()
            if not result.success:
                return result
        return ActionResult.ok("initialize")

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def fetch_categories(self) -> ActionResult:
        try:
            rows = await self._db.fetch_all(SELECT_CATEGORIES)
            categories = [Category.model_validate(row) for row in rows]
        except Exception as e:
            return await self._fail("fetch_categories", e)

        self._publish(categories=categories)
        return ActionResult.ok("fetch_categories")

    async def add_category(self, data: CategoryCreate) -> ActionResult:
        """Insert a category. Duplicate names are allowed."""
        category_type = data.category_type or TransactionType.EXPENSE
        try:
            result = await self._db.execute(
                INSERT_CATEGORY,
                {
                    "name": data.name,
                    "icon": data.icon,
                    "color": data.color,
                    "budget_limit": data.budget_limit or Decimal("0"),
                    "category_type": category_type,
                },
            )
        except Exception as e:
            return await self._fail("add_category", e)

        await self._audit_logger.log(
            AuditEventBuilder.category_added(
                result.last_insert_id, data.name, category_type.value
            )
        )
        await self.fetch_categories()
        return ActionResult.ok("add_category", result.last_insert_id)

    async def update_category(
        self,
        category_id: int,
        data: CategoryUpdate,
    ) -> ActionResult:
        """
        Overwrite name, icon and color.

        Fields left out of `data` are written as empty strings,
        so callers should pass the full set.
        An unknown id fails with NotFoundError.
        """
        changes = {
            "name": data.name or "",
            "icon": data.icon or "",
            "color": data.color or "",
        }
        try:
            result = await self._db.execute(UPDATE_CATEGORY, {"id": category_id, **changes})
            if result.rowcount == 0:
                raise NotFoundError(f"Category {category_id} does not exist")
        except Exception as e:
            return await self._fail("update_category", e, category_id)

        await self._audit_logger.log(
            AuditEventBuilder.category_updated(category_id, changes)
        )
        await self.fetch_categories()
        return ActionResult.ok("update_category", category_id)

    async def delete_category(self, category_id: int) -> ActionResult:
        """Delete a category and every transaction filed under it."""
        try:
            async with self._db.transaction() as tx:
                removed = await tx.execute(
                    "DELETE FROM transactions WHERE category_id = :id",
                    {"id": category_id},
                )
                await tx.execute(
                    "DELETE FROM categories WHERE id = :id",
                    {"id": category_id},
                )
        except Exception as e:
            return await self._fail("delete_category", e, category_id)

        await self._audit_logger.log(
            AuditEventBuilder.category_deleted(category_id, removed.rowcount)
        )
        await self.fetch_categories()
        # Cascaded rows must disappear from the recent list and the totals too
        if removed.rowcount:
            await self.fetch_recent_transactions()
            await self.calculate_month_summary()
        return ActionResult.ok("delete_category", category_id)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def fetch_recent_transactions(self) -> ActionResult:
        try:
            rows = await self._db.fetch_all(
                SELECT_RECENT_TRANSACTIONS, {"limit": self._recent_limit}
            )
            transactions = [Transaction.model_validate(row) for row in rows]
        except Exception as e:
            return await self._fail("fetch_recent_transactions", e)

        self._publish(transactions=transactions)
        return ActionResult.ok("fetch_recent_transactions")

    async def add_transaction(self, data: TransactionCreate) -> ActionResult:
        """
        Record an expense or an income.

        The busy flag is raised for the duration and always cleared.
        """
        transaction_type = data.type or TransactionType.EXPENSE
        self._publish(is_loading=True)
        try:
            try:
                result = await self._db.execute(
                    INSERT_TRANSACTION,
                    {
                        "category_id": data.category_id,
                        "amount": data.amount,
                        "date": data.date,
                        "note": data.note,
                        "image_uri": data.image_uri,
                        "type": transaction_type,
                    },
                )
            except Exception as e:
                return await self._fail("add_transaction", e)

            await self._audit_logger.log(
                AuditEventBuilder.transaction_added(
                    result.last_insert_id, str(data.amount), transaction_type.value
                )
            )
            await self.fetch_recent_transactions()
            await self.calculate_month_summary()
            return ActionResult.ok("add_transaction", result.last_insert_id)
        finally:
            self._publish(is_loading=False)

    async def delete_transaction(self, transaction_id: int) -> ActionResult:
        try:
            await self._db.execute(
                "DELETE FROM transactions WHERE id = :id", {"id": transaction_id}
            )
        except Exception as e:
            return await self._fail("delete_transaction", e, transaction_id)

        await self._audit_logger.log(
            AuditEventBuilder.transaction_deleted(transaction_id)
        )
        await self.fetch_recent_transactions()
        await self.calculate_month_summary()
        return ActionResult.ok("delete_transaction", transaction_id)

    # =========================================================================
    # SUMMARY
    # =========================================================================

    async def calculate_month_summary(
        self,
        target_month: MonthTarget = None,
    ) -> ActionResult:
        """
        Compute totals and the per-category expense breakdown for a month.

        Every known category gets total_spent and percentage, including
        the ones with nothing spent. The summary is kept on `last_summary`.
        """
        try:
            month = resolve_year_month(target_month)
            params = {"month": month}
            expense_row = await self._db.fetch_one(SUM_EXPENSE, params)
            income_row = await self._db.fetch_one(SUM_INCOME, params)
            breakdown_rows = await self._db.fetch_all(EXPENSE_BY_CATEGORY, params)
        except Exception as e:
            return await self._fail("calculate_month_summary", e)

        breakdown = {
            row["category_id"]: _to_decimal(row["total"]) for row in breakdown_rows
        }
        summary = build_month_summary(
            month=month,
            total_income=_to_decimal(income_row["total"] if income_row else None),
            total_expense=_to_decimal(expense_row["total"] if expense_row else None),
            categories=self._state.categories,
            breakdown=breakdown,
        )

        self._last_summary = summary
        self._publish(
            balance=summary.balance,
            total_income=summary.total_income,
            total_expense=summary.total_expense,
            categories=summary.categories,
        )
        await self._audit_logger.log(
            AuditEventBuilder.summary_calculated(
                month, str(summary.total_income), str(summary.total_expense)
            )
        )
        return ActionResult.ok("calculate_month_summary")

    # =========================================================================
    # SPLIT BILLS
    # =========================================================================

    async def fetch_split_bills(self) -> ActionResult:
        """Load all bills, newest first. Members are not attached."""
        try:
            rows = await self._db.fetch_all(SELECT_SPLIT_BILLS)
            bills = [SplitBill.model_validate(row) for row in rows]
        except Exception as e:
            return await self._fail("fetch_split_bills", e)

        self._publish(split_bills=bills)
        return ActionResult.ok("fetch_split_bills")

    async def fetch_split_bill(self, bill_id: int) -> Optional[SplitBill]:
        """
        Load one bill with its members.

        Returns None when the bill does not exist or cannot be read.
        The snapshot is not touched.
        """
        try:
            row = await self._db.fetch_one(
                "SELECT * FROM split_bills WHERE id = :id", {"id": bill_id}
            )
            if row is None:
                return None
            member_rows = await self._db.fetch_all(
                "SELECT * FROM split_bill_members WHERE split_bill_id = :id ORDER BY id",
                {"id": bill_id},
            )
        except Exception as e:
            await self._fail("fetch_split_bill", e, bill_id)
            return None

        members = [SplitBillMember.model_validate(m) for m in member_rows]
        return SplitBill.model_validate({**row, "members": members})

    async def add_split_bill(
        self,
        bill: SplitBillCreate,
        members: list[SplitBillMemberCreate],
    ) -> ActionResult:
        """
        Save a bill and its members atomically.

        If any member insert fails nothing is kept. Whether the shares
        add up to the total is the caller's business.
        """
        try:
            async with self._db.transaction() as tx:
                result = await tx.execute(
                    INSERT_SPLIT_BILL,
                    {
                        "date": bill.date,
                        "name": bill.name,
                        "total_amount": bill.total_amount,
                        "image_uri": bill.image_uri,
                    },
                )
                bill_id = result.last_insert_id
                for member in members:
                    await tx.execute(
                        INSERT_SPLIT_BILL_MEMBER,
                        {
                            "split_bill_id": bill_id,
                            "name": member.name,
                            "share_amount": member.share_amount,
                            "is_me": 1 if member.is_me else 0,
                        },
                    )
        except Exception as e:
            result = await self._fail("add_split_bill", e)
            await self.fetch_split_bills()
            return result

        await self._audit_logger.log(
            AuditEventBuilder.split_bill_saved(
                bill_id, bill.name, str(bill.total_amount), len(members)
            )
        )
        await self.fetch_split_bills()
        return ActionResult.ok("add_split_bill", bill_id)

    async def delete_split_bill(self, bill_id: int) -> ActionResult:
        """
        Delete a bill's members and then the bill, in one transaction.

        An unknown id fails with NotFoundError and nothing is removed.
        """
        try:
            async with self._db.transaction() as tx:
                removed = await tx.execute(
                    "DELETE FROM split_bill_members WHERE split_bill_id = :id",
                    {"id": bill_id},
                )
                deleted = await tx.execute(
                    "DELETE FROM split_bills WHERE id = :id", {"id": bill_id}
                )
                if deleted.rowcount == 0:
                    raise NotFoundError(f"Split bill {bill_id} does not exist")
        except Exception as e:
            return await self._fail("delete_split_bill", e, bill_id)

        await self._audit_logger.log(
            AuditEventBuilder.split_bill_deleted(bill_id, removed.rowcount)
        )
        await self.fetch_split_bills()
        return ActionResult.ok("delete_split_bill", bill_id)
