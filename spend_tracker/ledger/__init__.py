"""Ledger aggregation and typed ledger access."""

from spend_tracker.ledger.aggregator import (
    BUDGET_MULTIPLIERS,
    UNCATEGORIZED,
    budget_status,
    by_category,
    compare_periods,
    derive_budget,
    derive_budgets,
    filter_by_period,
    percent_change,
    spending_history,
    top_categories,
    totals,
)
from spend_tracker.ledger.repository import LedgerRepository, format_budget_value, validate_budgets

__all__ = [
    "BUDGET_MULTIPLIERS",
    "UNCATEGORIZED",
    "LedgerRepository",
    "budget_status",
    "by_category",
    "compare_periods",
    "derive_budget",
    "derive_budgets",
    "filter_by_period",
    "format_budget_value",
    "validate_budgets",
    "percent_change",
    "spending_history",
    "top_categories",
    "totals",
]
