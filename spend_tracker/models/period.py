"""
Period and Aggregation Models

A Period is a closed date window [start_date, end_date]. Both ends are
plain dates (midnight-truncated), so membership checks never depend on
time of day.
"""

from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from spend_tracker.errors import InputError


class Cadence(str, Enum):
    """Aggregation period types."""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, value: "str | Cadence") -> "Cadence":
        """Accept the spellings the dashboard has historically sent."""
        if isinstance(value, Cadence):
            return value
        normalized = str(value).strip().lower().replace("-", "").replace("_", "")
        aliases = {"annual": "yearly", "annually": "yearly", "fortnightly": "biweekly"}
        try:
            return cls(aliases.get(normalized, normalized))
        except ValueError:
            raise InputError(f"Unknown cadence: {value}") from None


class Period(BaseModel):
    """A single aggregation window."""
    model_config = ConfigDict(frozen=True)

    cadence: Cadence
    start_date: date
    end_date: date = Field(..., description="Inclusive end of the window")
    label: str
    is_current: bool = False

    @model_validator(mode='after')
    def validate_bounds(self) -> 'Period':
        if self.end_date < self.start_date:
            raise ValueError("Period end cannot be before start")
        return self

    @property
    def length_days(self) -> int:
        """Number of days covered, both ends included."""
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def shifted(self, days: int, label: Optional[str] = None) -> 'Period':
        """Same-length window moved by `days` (never marked current)."""
        delta = timedelta(days=days)
        return Period(
            cadence=self.cadence,
            start_date=self.start_date + delta,
            end_date=self.end_date + delta,
            label=label if label is not None else self.label,
            is_current=False,
        )


# =============================================================================
# AGGREGATION RESULTS
# =============================================================================

class SpendingTotals(BaseModel):
    """Sum / count / average over a set of transactions."""

    sum: Decimal = Decimal("0")
    count: int = Field(default=0, ge=0)
    average: Decimal = Decimal("0")


class PeriodComparison(BaseModel):
    """Spending in a period vs the equal-length period right before it."""

    current: Period
    previous: Period
    current_sum: Decimal
    previous_sum: Decimal
    percent_change: Decimal = Field(
        ...,
        description="(current - previous) / previous * 100, or 0 when previous is 0"
    )


class CategoryBudgetStatus(BaseModel):
    """How much of a category's derived budget has been used."""

    category: str
    spent: Decimal
    budget: Decimal
    remaining: Decimal
    percent_used: Decimal = Field(
        ...,
        description="spent / budget * 100, or 0 when there is no budget"
    )

    @property
    def over_budget(self) -> bool:
        return self.budget > 0 and self.spent > self.budget


class PeriodSpending(BaseModel):
    """One bar of the spending history chart."""

    period: Period
    total: Decimal
    count: int = Field(ge=0)


class SpendingSummary(BaseModel):
    """Everything the dashboard shows for one cadence."""

    period: Period
    totals: SpendingTotals
    top_categories: list[tuple[str, Decimal]] = Field(default_factory=list)
    comparison: PeriodComparison
    budget_status: list[CategoryBudgetStatus] = Field(default_factory=list)
