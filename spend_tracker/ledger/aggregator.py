"""
Ledger Aggregator

Deterministic spending math over typed transactions: period filtering,
totals, per-category sums, budget derivation and period-over-period change.

Budgets are stored per category as a WEEKLY amount. Every other cadence is
derived from it:

    weekly    x 1
    biweekly  x 2
    monthly   x 52 / 12
    yearly    x 52

NOTE: monthly and yearly figures are approximations (52 weeks is 364 days,
and months are not 52/12 weeks long). They are not calendar-exact and are
not meant to be.
"""

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Union

from spend_tracker.dates import YEAR_INFERENCE_WINDOW_DAYS, normalize_date
from spend_tracker.models.period import (
    Cadence,
    CategoryBudgetStatus,
    Period,
    PeriodComparison,
    PeriodSpending,
    SpendingTotals,
)
from spend_tracker.models.transaction import Transaction
from spend_tracker.periods import previous_period, recent_periods


ZERO = Decimal("0")
HUNDRED = Decimal("100")
UNCATEGORIZED = "Other"

BUDGET_MULTIPLIERS = {
    Cadence.WEEKLY: Decimal(1),
    Cadence.BIWEEKLY: Decimal(2),
    Cadence.MONTHLY: Decimal(52) / Decimal(12),
    Cadence.YEARLY: Decimal(52),
}


def filter_by_period(
    transactions: Iterable[Transaction],
    period: Period,
    today: Union[date, datetime, None] = None,
    window_days: int = YEAR_INFERENCE_WINDOW_DAYS,
) -> list[Transaction]:
    """
    Transactions whose date falls inside [period.start_date, period.end_date].

    Transactions with a date that cannot be normalized are left out.
    Order is preserved, and filtering twice by the same period is a no-op.
    """
    selected = []
    for transaction in transactions:
        parsed = normalize_date(transaction.date, today, window_days)
        if parsed is not None and period.contains(parsed):
            selected.append(transaction)
    return selected


def totals(transactions: Iterable[Transaction]) -> SpendingTotals:
    total = ZERO
    count = 0
    for transaction in transactions:
        total += transaction.amount
        count += 1
    average = total / count if count else ZERO
    return SpendingTotals(sum=total, count=count, average=average)


def by_category(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """Sum per category (unordered). Blank categories go under 'Other'."""
    sums: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for transaction in transactions:
        sums[transaction.category or UNCATEGORIZED] += transaction.amount
    return dict(sums)


def top_categories(
    sums: Mapping[str, Decimal],
    limit: Optional[int] = None,
) -> list[tuple[str, Decimal]]:
    """Categories by descending sum, ties broken by name."""
    ranked = sorted(sums.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:limit] if limit is not None else ranked


def derive_budget(weekly_amount: Union[Decimal, int, float, str], cadence: Union[Cadence, str]) -> Decimal:
    """Scale a weekly budget amount to `cadence`."""
    weekly = weekly_amount if isinstance(weekly_amount, Decimal) else Decimal(str(weekly_amount))
    return weekly * BUDGET_MULTIPLIERS[Cadence.parse(cadence)]


def derive_budgets(budget: Mapping[str, Decimal], cadence: Union[Cadence, str]) -> dict[str, Decimal]:
    return {category: derive_budget(amount, cadence) for category, amount in budget.items()}


def percent_change(current: Decimal, previous: Decimal) -> Decimal:
    """(current - previous) / previous * 100, defined as 0 when previous is 0."""
    if previous == 0:
        return ZERO
    return (current - previous) / previous * HUNDRED


def compare_periods(
    transactions: Iterable[Transaction],
    period: Period,
    today: Union[date, datetime, None] = None,
    window_days: int = YEAR_INFERENCE_WINDOW_DAYS,
) -> PeriodComparison:
    """Spending in `period` vs the equal-length window right before it."""
    transactions = list(transactions)
    earlier = previous_period(period)
    current_sum = totals(filter_by_period(transactions, period, today, window_days)).sum
    previous_sum = totals(filter_by_period(transactions, earlier, today, window_days)).sum
    return PeriodComparison(
        current=period,
        previous=earlier,
        current_sum=current_sum,
        previous_sum=previous_sum,
        percent_change=percent_change(current_sum, previous_sum),
    )


def budget_status(
    period_transactions: Iterable[Transaction],
    budget: Mapping[str, Decimal],
    cadence: Union[Cadence, str],
) -> list[CategoryBudgetStatus]:
    """
    Spent vs derived budget for every budgeted or spent-in category.

    `period_transactions` must already be filtered to the period. Sorted by
    amount spent, largest first.
    """
    spent = by_category(period_transactions)
    derived = derive_budgets(budget, cadence)

    statuses = []
    for category in set(spent) | set(derived):
        amount_spent = spent.get(category, ZERO)
        allowance = derived.get(category, ZERO)
        statuses.append(CategoryBudgetStatus(
            category=category,
            spent=amount_spent,
            budget=allowance,
            remaining=allowance - amount_spent,
            percent_used=amount_spent / allowance * HUNDRED if allowance > 0 else ZERO,
        ))
    statuses.sort(key=lambda s: (-s.spent, s.category))
    return statuses


def spending_history(
    transactions: Iterable[Transaction],
    cadence: Union[Cadence, str],
    now: Union[date, datetime],
    count: int,
    anchor: Union[date, datetime, None] = None,
    window_days: int = YEAR_INFERENCE_WINDOW_DAYS,
) -> list[PeriodSpending]:
    """Total spent in each of the last `count` windows, oldest first."""
    transactions = list(transactions)
    history = []
    for period in recent_periods(cadence, now, count, anchor):
        in_period = filter_by_period(transactions, period, now, window_days)
        summary = totals(in_period)
        history.append(PeriodSpending(period=period, total=summary.sum, count=summary.count))
    return history
