"""
Budget analysis for the finance tracker.

Quick Start:
    >>> from finance_tracker.budgets import BudgetAnalyzer
    >>>
    >>> summary = BudgetAnalyzer().summarize(allocations)
    >>> print(f"{summary.spending_progress:.1f}% spent, {len(summary.alerts)} alerts")
"""
from finance_tracker.budgets.analysis import (
    BudgetAnalyzer,
    CRITICAL_THRESHOLD,
    DEFAULT_ALERT_THRESHOLD,
    OVER_BUDGET_RATIO,
)

__all__ = [
    "BudgetAnalyzer",
    "CRITICAL_THRESHOLD",
    "DEFAULT_ALERT_THRESHOLD",
    "OVER_BUDGET_RATIO",
]
