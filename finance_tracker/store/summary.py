"""
Month summary arithmetic.

Pure functions only: the store runs the SQL and hands the raw sums here.
Keeping this free of I/O means the rounding rules can be tested directly.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Optional, Union

from finance_tracker.models.finance import Category, MonthSummary

MonthTarget = Union[date, datetime, str, None]

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def resolve_year_month(target: MonthTarget = None) -> str:
    """
    Normalize a month target to "YYYY-MM".

    Accepts a date, a datetime, a "YYYY-MM" (or longer ISO) string,
    or None for the current month.
    """
    if target is None:
        target = date.today()

    if isinstance(target, (date, datetime)):
        return f"{target.year:04d}-{target.month:02d}"

    text = target.strip()
    try:
        parsed = datetime.strptime(text[:7], "%Y-%m")
    except ValueError:
        raise ValueError(f"Month must look like YYYY-MM, got {target!r}")
    return f"{parsed.year:04d}-{parsed.month:02d}"


def category_percentage(spent: Decimal, total_expense: Decimal) -> int:
    """
    Share of the month's expense, rounded half up to a whole percent.

    Returns 0 when there is no expense at all.
    """
    if total_expense <= _ZERO:
        return 0
    ratio = (Decimal(spent) / Decimal(total_expense)) * _HUNDRED
    percent = int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(0, min(100, percent))


def merge_category_stats(
    categories: list[Category],
    breakdown: Mapping[int, Decimal],
    total_expense: Decimal,
) -> list[Category]:
    """
    Attach total_spent and percentage to every category.

    Categories without expense this month get 0 / 0%.
    Returns new Category objects; the inputs are not modified.
    """
    merged = []
    for category in categories:
        spent = Decimal(breakdown.get(category.id, _ZERO))
        merged.append(
            category.model_copy(
                update={
                    "total_spent": spent,
                    "percentage": category_percentage(spent, total_expense),
                }
            )
        )
    return merged


def build_month_summary(
    month: str,
    total_income: Decimal,
    total_expense: Decimal,
    categories: list[Category],
    breakdown: Optional[Mapping[int, Decimal]] = None,
) -> MonthSummary:
    """Assemble the summary; balance is income minus expense."""
    total_income = Decimal(total_income)
    total_expense = Decimal(total_expense)
    return MonthSummary(
        month=month,
        total_income=total_income,
        total_expense=total_expense,
        balance=total_income - total_expense,
        categories=merge_category_stats(categories, breakdown or {}, total_expense),
    )
