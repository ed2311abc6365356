"""
Caller-side Validation

DESIGN DECISION: The store writes whatever it is given. Everything that
must hold before a write (positive amounts, an existing category of the
right kind, split shares adding up) is checked here, by the caller.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for the user to correct.
"""

from decimal import Decimal
from typing import Optional

from finance_tracker.models.finance import (
    Category,
    ParsedTransaction,
    SplitBillCreate,
    SplitBillMemberCreate,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)


class TransactionValidator:
    """
    Checks parsed transactions and split bills against the current categories.

    Category lookup is case-insensitive and restricted to categories
    of the parsed type. Categories with no type count as expense.
    """

    def __init__(self, categories: Optional[list[Category]] = None):
        self._categories = categories or []

    def resolve_category(self, parsed: ParsedTransaction) -> Optional[Category]:
        """Find the category the parsed text refers to, or None."""
        wanted = parsed.category.strip().lower()
        if not wanted:
            return None
        for category in self._categories:
            if category.category_type != parsed.type:
                continue
            if category.name.lower() == wanted:
                return category
        return None

    def validate(self, parsed: ParsedTransaction) -> ValidationResult:
        """
        Validate a parsed transaction.

        Checks, in order:
        - amount present and positive
        - name not empty
        - category exists among categories of the parsed type
        """
        issues = []

        if parsed.amount is None or parsed.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_amount",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Include the amount in the text, e.g. 'lunch 50000'",
            ))

        if not parsed.name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="empty_name",
                message="Item name is empty",
                severity="error",
                suggested_fix="Describe what the money was for",
            ))

        if self.resolve_category(parsed) is None:
            kind = "income" if parsed.type == TransactionType.INCOME else "expense"
            issues.append(ValidationIssue(
                field="category",
                issue_type="category_not_found",
                message=f'"{parsed.category}" is not an {kind} category',
                severity="error",
                suggested_fix=f"Use one of the existing {kind} categories",
            ))

        return ValidationResult(issues=issues)

    def validate_split_bill(
        self,
        bill: SplitBillCreate,
        members: list[SplitBillMemberCreate],
    ) -> ValidationResult:
        """
        Validate a split bill before saving.

        Mismatched shares are only a warning: people round.
        """
        issues = []

        if not members:
            issues.append(ValidationIssue(
                field="members",
                issue_type="no_members",
                message="A split bill needs at least one member",
                severity="error",
            ))
        elif not bill.shares_match(members):
            shares = sum((m.share_amount for m in members), Decimal("0"))
            issues.append(ValidationIssue(
                field="members",
                issue_type="shares_mismatch",
                message=f"Shares add up to {shares}, bill total is {bill.total_amount}",
                severity="warning",
                suggested_fix="Adjust the shares so they match the total",
            ))

        return ValidationResult(issues=issues)
