"""In-memory finance state and the actions that change it."""

from finance_tracker.store.compat import LegacyFinanceStore
from finance_tracker.store.finance_store import FinanceStore
from finance_tracker.store.summary import (
    build_month_summary,
    category_percentage,
    merge_category_stats,
    resolve_year_month,
)

__all__ = [
    "FinanceStore",
    "LegacyFinanceStore",
    "build_month_summary",
    "category_percentage",
    "merge_category_stats",
    "resolve_year_month",
]
