"""Period windowing package."""

from spend_tracker.periods.engine import (
    DEFAULT_PAYDAY,
    current_period,
    format_range_label,
    period_containing,
    previous_period,
    recent_periods,
    window_origin,
)

__all__ = [
    "DEFAULT_PAYDAY",
    "current_period",
    "format_range_label",
    "period_containing",
    "previous_period",
    "recent_periods",
    "window_origin",
]
