"""Validation of user and parser input before it reaches the store."""

from finance_tracker.validation.validator import TransactionValidator

__all__ = ["TransactionValidator"]
