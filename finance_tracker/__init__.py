"""
Finance Tracker - Source Package

A local-first personal finance tracker: expenses and incomes by
category, a monthly summary, split bills among friends and one-line
smart entry backed by Gemini.

DESIGN PRINCIPLES:
1. The store never raises; every action reports its outcome
2. Fail visibly, never half-apply a write
3. Parsed text is only a proposal until validated
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
