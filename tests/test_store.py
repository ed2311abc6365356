"""
Integration tests for FinanceStore against a real SQLite file.
"""

from contextlib import asynccontextmanager
from decimal import Decimal

import pytest

from finance_tracker.models import (
    CategoryCreate,
    CategoryUpdate,
    SplitBillCreate,
    SplitBillMemberCreate,
    TransactionCreate,
    TransactionType,
)
from finance_tracker.models.audit import AuditEventType
from finance_tracker.services.storage import (
    DatabaseInterface,
    SQLAuditStorage,
    StorageError,
)
from finance_tracker.store import FinanceStore, LegacyFinanceStore


def category_id(store, name):
    return next(c.id for c in store.state.categories if c.name == name)


class BrokenDatabase(DatabaseInterface):
    """Every statement fails, as if the file had gone away."""

    async def connect(self):
        pass

    async def close(self):
        pass

    async def execute(self, sql, params=None):
        raise StorageError("disk I/O error")

    async def fetch_all(self, sql, params=None):
        raise StorageError("disk I/O error")

    async def fetch_one(self, sql, params=None):
        raise StorageError("disk I/O error")

    @asynccontextmanager
    async def transaction(self):
        raise StorageError("disk I/O error")
        yield self


def expense(store, amount, day="2024-06-15", category="Food", note=""):
    return store.add_transaction(TransactionCreate(
        category_id=category_id(store, category),
        amount=Decimal(amount),
        date=day,
        note=note,
    ))


async def count_rows(db, table):
    row = await db.fetch_one(f"SELECT COUNT(*) AS n FROM {table}")
    return row["n"]


class TestCategories:

    @pytest.mark.asyncio
    async def test_add_category_grows_list_and_defaults_to_expense(self, store):
        before = len(store.state.categories)
        result = await store.add_category(CategoryCreate(name="Food"))

        assert result.success is True
        assert result.entity_id is not None
        assert len(store.state.categories) == before + 1
        added = store.state.categories[-1]
        assert added.name == "Food"
        assert added.category_type == TransactionType.EXPENSE
        assert added.budget_limit == Decimal("0")

    @pytest.mark.asyncio
    async def test_duplicate_names_allowed(self, store):
        await store.add_category(CategoryCreate(name="Food"))
        result = await store.add_category(CategoryCreate(name="Food"))
        assert result.success is True
        assert [c.name for c in store.state.categories] == ["Food", "Food"]

    @pytest.mark.asyncio
    async def test_update_category_blanks_omitted_fields(self, food_store):
        food_id = category_id(food_store, "Food")
        result = await food_store.update_category(food_id, CategoryUpdate(name="Meals"))

        assert result.success is True
        meals = next(c for c in food_store.state.categories if c.id == food_id)
        assert meals.name == "Meals"
        assert meals.icon == ""
        assert meals.color == ""

    @pytest.mark.asyncio
    async def test_update_missing_category_fails_with_not_found(self, food_store):
        before = food_store.state.categories

        result = await food_store.update_category(999, CategoryUpdate(name="Ghost"))

        assert result.success is False
        assert result.entity_id == 999
        assert result.error_message.startswith("NotFoundError")
        assert food_store.state.categories == before

    @pytest.mark.asyncio
    async def test_delete_category_removes_its_transactions(self, food_store, db):
        await expense(food_store, "50000")
        await expense(food_store, "20000")
        await food_store.add_transaction(TransactionCreate(
            category_id=category_id(food_store, "Salary"),
            amount=Decimal("1000000"),
            date="2024-06-01",
            type=TransactionType.INCOME,
        ))
        food_id = category_id(food_store, "Food")

        result = await food_store.delete_category(food_id)

        assert result.success is True
        assert all(c.id != food_id for c in food_store.state.categories)
        assert all(t.category_id != food_id for t in food_store.state.transactions)
        rows = await db.fetch_all(
            "SELECT id FROM transactions WHERE category_id = :id", {"id": food_id}
        )
        assert rows == []
        assert await count_rows(db, "transactions") == 1


class TestTransactions:

    @pytest.mark.asyncio
    async def test_add_expense_updates_list_and_summary(self, food_store):
        result = await expense(food_store, "50000", note="lunch")

        assert result.success is True
        assert len(food_store.state.transactions) == 1
        txn = food_store.state.transactions[0]
        assert txn.type == TransactionType.EXPENSE
        assert txn.note == "lunch"
        assert txn.category_name == "Food"
        assert txn.category_icon == "emoji:🍔"
        assert txn.created_at is not None

    @pytest.mark.asyncio
    async def test_add_income(self, food_store):
        result = await food_store.add_transaction(TransactionCreate(
            category_id=category_id(food_store, "Salary"),
            amount=Decimal("1000000"),
            date="2024-06-01",
            type=TransactionType.INCOME,
        ))
        assert result.success is True
        assert food_store.state.transactions[0].type == TransactionType.INCOME

    @pytest.mark.asyncio
    async def test_busy_flag_raised_then_cleared(self, food_store):
        seen = []
        food_store.subscribe(lambda state: seen.append(state.is_loading))

        await expense(food_store, "100")

        assert seen[0] is True
        assert seen[-1] is False
        assert food_store.state.is_loading is False

    @pytest.mark.asyncio
    async def test_recent_transactions_ordered_and_limited(self, db, audit_logger):
        store = FinanceStore(db, audit_logger, recent_limit=3)
        await store.add_category(CategoryCreate(name="Food"))
        for day in ("2024-06-01", "2024-06-03", "2024-06-02", "2024-06-03", "2024-05-30"):
            await expense(store, "10", day=day)

        txns = store.state.transactions
        assert len(txns) == 3
        assert [t.date for t in txns] == ["2024-06-03", "2024-06-03", "2024-06-02"]
        # Same date: newest id first
        assert txns[0].id > txns[1].id

    @pytest.mark.asyncio
    async def test_delete_transaction_reduces_expense_by_its_amount(self, food_store):
        await expense(food_store, "50000")
        result = await expense(food_store, "12500")
        await food_store.calculate_month_summary("2024-06")
        before = food_store.state.total_expense

        await food_store.delete_transaction(result.entity_id)
        await food_store.calculate_month_summary("2024-06")

        assert before - food_store.state.total_expense == Decimal("12500")
        assert all(t.id != result.entity_id for t in food_store.state.transactions)

    @pytest.mark.asyncio
    async def test_fractional_amounts_sum_exactly(self, food_store):
        small = await expense(food_store, "0.1")
        await expense(food_store, "0.2")
        await food_store.calculate_month_summary("2024-06")
        before = food_store.state.total_expense

        assert before == Decimal("0.3")
        assert food_store.last_summary.balance == Decimal("-0.3")

        await food_store.delete_transaction(small.entity_id)
        await food_store.calculate_month_summary("2024-06")

        assert before - food_store.state.total_expense == Decimal("0.1")


class TestMonthSummary:

    @pytest.mark.asyncio
    async def test_food_scenario(self, food_store):
        await expense(food_store, "50000", day="2024-06-15")

        result = await food_store.calculate_month_summary("2024-06")

        assert result.success is True
        state = food_store.state
        assert state.total_expense == Decimal("50000")
        assert state.total_income == Decimal("0")
        assert state.balance == Decimal("-50000")
        assert state.total_month == Decimal("-50000")
        food = next(c for c in state.categories if c.name == "Food")
        assert food.total_spent == Decimal("50000")
        assert food.percentage == 100
        assert food_store.last_summary.month == "2024-06"

    @pytest.mark.asyncio
    async def test_other_months_ignored(self, food_store):
        await expense(food_store, "50000", day="2024-06-15")
        await expense(food_store, "99999", day="2024-07-01")

        await food_store.calculate_month_summary("2024-06")

        assert food_store.state.total_expense == Decimal("50000")

    @pytest.mark.asyncio
    async def test_accepts_iso_datetime_dates(self, food_store):
        await expense(food_store, "100", day="2024-06-30T23:10:00.000Z")
        await food_store.calculate_month_summary("2024-06")
        assert food_store.state.total_expense == Decimal("100")

    @pytest.mark.asyncio
    async def test_idempotent(self, food_store):
        await expense(food_store, "300")
        await food_store.calculate_month_summary("2024-06")
        first = food_store.state

        await food_store.calculate_month_summary("2024-06")
        second = food_store.state

        assert first.total_expense == second.total_expense
        assert first.balance == second.balance
        assert [(c.total_spent, c.percentage) for c in first.categories] == \
            [(c.total_spent, c.percentage) for c in second.categories]

    @pytest.mark.asyncio
    async def test_zero_expense_month_has_zero_percentages(self, food_store):
        await food_store.add_transaction(TransactionCreate(
            category_id=category_id(food_store, "Salary"),
            amount=Decimal("1000000"),
            date="2024-06-01",
            type=TransactionType.INCOME,
        ))

        await food_store.calculate_month_summary("2024-06")

        assert food_store.state.total_income == Decimal("1000000")
        assert food_store.state.balance == Decimal("1000000")
        assert all(c.percentage == 0 for c in food_store.state.categories)

    @pytest.mark.asyncio
    async def test_percentages_bounded(self, food_store):
        await food_store.add_category(CategoryCreate(name="Transport"))
        await food_store.add_category(CategoryCreate(name="Bills"))
        await expense(food_store, "100", category="Food")
        await expense(food_store, "100", category="Transport")
        await expense(food_store, "100", category="Bills")

        await food_store.calculate_month_summary("2024-06")

        percentages = [c.percentage for c in food_store.state.categories]
        assert all(0 <= p <= 100 for p in percentages)
        assert sum(percentages) <= 100 + len(percentages)

    @pytest.mark.asyncio
    async def test_null_type_counts_as_expense(self, food_store, db):
        await db.execute(
            "INSERT INTO transactions (category_id, amount, date, note, type) "
            "VALUES (:category_id, :amount, :date, '', NULL)",
            {"category_id": category_id(food_store, "Food"), "amount": 700, "date": "2024-06-02"},
        )

        await food_store.calculate_month_summary("2024-06")
        await food_store.fetch_recent_transactions()

        assert food_store.state.total_expense == Decimal("700")
        assert food_store.state.transactions[0].type == TransactionType.EXPENSE


class TestSplitBills:

    @pytest.mark.asyncio
    async def test_add_and_fetch_split_bill(self, store):
        bill = SplitBillCreate(name="Dinner", date="2024-06-15", total_amount=Decimal("300000"))
        members = [
            SplitBillMemberCreate(name="Me", share_amount=Decimal("100000"), is_me=True),
            SplitBillMemberCreate(name="Budi", share_amount=Decimal("200000")),
        ]

        result = await store.add_split_bill(bill, members)

        assert result.success is True
        assert [b.name for b in store.state.split_bills] == ["Dinner"]
        assert store.state.split_bills[0].members == []

        detail = await store.fetch_split_bill(result.entity_id)
        assert detail.total_amount == Decimal("300000")
        assert [(m.name, m.is_me) for m in detail.members] == [("Me", True), ("Budi", False)]

    @pytest.mark.asyncio
    async def test_fetch_missing_split_bill(self, store):
        assert await store.fetch_split_bill(404) is None

    @pytest.mark.asyncio
    async def test_split_bills_newest_first(self, store):
        for name, day in (("Old", "2024-05-01"), ("New", "2024-06-01"), ("Mid", "2024-05-15")):
            await store.add_split_bill(
                SplitBillCreate(name=name, date=day, total_amount=Decimal("10")),
                [SplitBillMemberCreate(name="Me", share_amount=Decimal("10"), is_me=True)],
            )
        assert [b.name for b in store.state.split_bills] == ["New", "Mid", "Old"]

    @pytest.mark.asyncio
    async def test_failed_member_insert_rolls_back_whole_bill(self, store, db):
        bill = SplitBillCreate(name="Dinner", date="2024-06-15", total_amount=Decimal("300"))
        members = [
            SplitBillMemberCreate(name="Me", share_amount=Decimal("100"), is_me=True),
            SplitBillMemberCreate(name="Budi", share_amount=Decimal("100")),
            # name is NOT NULL in the table, so the third insert fails
            SplitBillMemberCreate.model_construct(name=None, share_amount=Decimal("100"), is_me=False),
        ]

        result = await store.add_split_bill(bill, members)

        assert result.success is False
        assert "TransactionError" in result.error_message
        assert await count_rows(db, "split_bills") == 0
        assert await count_rows(db, "split_bill_members") == 0
        await store.fetch_split_bills()
        assert store.state.split_bills == []

    @pytest.mark.asyncio
    async def test_delete_split_bill_removes_members(self, store, db):
        result = await store.add_split_bill(
            SplitBillCreate(name="Trip", date="2024-06-15", total_amount=Decimal("200")),
            [
                SplitBillMemberCreate(name="Me", share_amount=Decimal("100"), is_me=True),
                SplitBillMemberCreate(name="Sari", share_amount=Decimal("100")),
            ],
        )

        deleted = await store.delete_split_bill(result.entity_id)

        assert deleted.success is True
        assert store.state.split_bills == []
        assert await count_rows(db, "split_bill_members") == 0

    @pytest.mark.asyncio
    async def test_delete_missing_split_bill_fails_with_not_found(self, store, db):
        await store.add_split_bill(
            SplitBillCreate(name="Lunch", date="2024-06-15", total_amount=Decimal("50")),
            [SplitBillMemberCreate(name="Me", share_amount=Decimal("50"), is_me=True)],
        )

        result = await store.delete_split_bill(999)

        assert result.success is False
        assert result.error_message.startswith("NotFoundError")
        assert len(store.state.split_bills) == 1
        assert await count_rows(db, "split_bill_members") == 1


class TestFailures:

    @pytest.mark.asyncio
    async def test_actions_never_raise(self):
        store = FinanceStore(BrokenDatabase(), recent_limit=20)

        results = [
            await store.fetch_categories(),
            await store.add_category(CategoryCreate(name="Food")),
            await store.update_category(1, CategoryUpdate(name="x")),
            await store.delete_category(1),
            await store.fetch_recent_transactions(),
            await store.add_transaction(TransactionCreate(
                category_id=1, amount=Decimal("1"), date="2024-06-01"
            )),
            await store.delete_transaction(1),
            await store.calculate_month_summary("2024-06"),
            await store.fetch_split_bills(),
            await store.add_split_bill(
                SplitBillCreate(name="x", date="2024-06-01", total_amount=Decimal("1")), []
            ),
            await store.delete_split_bill(1),
        ]

        assert all(r.success is False for r in results)
        assert all("disk I/O error" in r.error_message for r in results)
        assert await store.fetch_split_bill(1) is None

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_snapshot(self):
        store = FinanceStore(BrokenDatabase(), recent_limit=20)
        before = store.state

        await store.fetch_categories()

        assert store.state is before

    @pytest.mark.asyncio
    async def test_busy_flag_cleared_after_failure(self):
        store = FinanceStore(BrokenDatabase(), recent_limit=20)
        await store.add_transaction(TransactionCreate(
            category_id=1, amount=Decimal("1"), date="2024-06-01"
        ))
        assert store.state.is_loading is False

    @pytest.mark.asyncio
    async def test_initialize_stops_at_first_failure(self):
        store = FinanceStore(BrokenDatabase(), recent_limit=20)
        result = await store.initialize()
        assert result.success is False
        assert result.action == "fetch_categories"

    @pytest.mark.asyncio
    async def test_listener_errors_do_not_break_actions(self, store):
        def bad_listener(state):
            raise RuntimeError("boom")

        store.subscribe(bad_listener)
        result = await store.add_category(CategoryCreate(name="Food"))

        assert result.success is True
        assert len(store.state.categories) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self, store):
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()
        await store.add_category(CategoryCreate(name="Food"))
        assert seen == []


class TestAuditTrail:

    @pytest.mark.asyncio
    async def test_actions_are_audited(self, food_store, db):
        await expense(food_store, "50000")

        events = await SQLAuditStorage(db).get_recent_events(limit=50)
        types = {e.event_type for e in events}

        assert AuditEventType.CATEGORY_ADDED in types
        assert AuditEventType.TRANSACTION_ADDED in types
        assert AuditEventType.SUMMARY_CALCULATED in types


class TestLegacyFinanceStore:

    @pytest.mark.asyncio
    async def test_add_expense_records_income_too(self, food_store):
        legacy = LegacyFinanceStore(food_store)

        result = await legacy.add_expense(TransactionCreate(
            category_id=category_id(food_store, "Salary"),
            amount=Decimal("5000000"),
            date="2024-06-01",
            type=TransactionType.INCOME,
        ))
        await legacy.calculate_total_month("2024-06")

        assert result.success is True
        assert legacy.state.total_income == Decimal("5000000")
        assert legacy.state.total_month == Decimal("5000000")
        assert legacy.store is food_store

    @pytest.mark.asyncio
    async def test_passes_other_names_through(self, store):
        legacy = LegacyFinanceStore(store)
        result = await legacy.add_category(CategoryCreate(name="Food"))
        assert result.success is True
        assert legacy.state.categories[0].name == "Food"
