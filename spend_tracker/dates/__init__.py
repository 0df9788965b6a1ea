"""Date normalization package."""

from spend_tracker.dates.normalizer import (
    YEAR_INFERENCE_WINDOW_DAYS,
    as_date,
    month_from_name,
    normalize_date,
    normalize_to_display,
    normalize_to_iso,
    to_display,
    to_iso,
)

__all__ = [
    "YEAR_INFERENCE_WINDOW_DAYS",
    "as_date",
    "month_from_name",
    "normalize_date",
    "normalize_to_display",
    "normalize_to_iso",
    "to_display",
    "to_iso",
]
