"""
Older action names.

Screens written against the first version of the store call
`add_expense` and `calculate_total_month`. Both now map onto the
canonical FinanceStore operations; nothing is implemented twice.
"""

from typing import Any

from finance_tracker.models.finance import ActionResult, TransactionCreate
from finance_tracker.store.finance_store import FinanceStore
from finance_tracker.store.summary import MonthTarget


class LegacyFinanceStore:
    """Wraps a FinanceStore and exposes the old names next to the new ones."""

    def __init__(self, store: FinanceStore):
        self._store = store

    @property
    def store(self) -> FinanceStore:
        return self._store

    async def add_expense(self, data: TransactionCreate) -> ActionResult:
        """Despite the name, records incomes too (the type travels in `data`)."""
        return await self._store.add_transaction(data)

    async def calculate_total_month(self, target_month: MonthTarget = None) -> ActionResult:
        return await self._store.calculate_month_summary(target_month)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._store, name)
