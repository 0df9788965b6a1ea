"""
Period Engine

Computes aggregation windows for the four cadences. Everything here is a
pure function of (cadence, now, anchor) - the selected cadence is never
stored anywhere, callers pass it in every time.

WINDOW RULES:
- biweekly: 14-day windows starting on the Saturday after the anchor payday
  (anchor + 1 when the anchor is a Friday, otherwise rounded forward to the
  next Saturday), stepping by 14 days in both directions
- weekly: 7-day windows on the same grid as biweekly, so Saturday-Friday
  with the default Friday payday; every biweekly window is exactly two
  weekly windows
- monthly: calendar month
- yearly: calendar year

DESIGN DECISION: Weekly windows follow the payday grid (Saturday start)
rather than a Sunday-Saturday calendar week. Generation and filtering both
use the Period bounds produced here, so a boundary day is counted in
exactly one window.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Optional, Union

from spend_tracker.dates import as_date
from spend_tracker.errors import InputError
from spend_tracker.models.period import Cadence, Period


DEFAULT_PAYDAY = date(2026, 1, 30)  # a Friday
SATURDAY = 5
EN_DASH = "–"
MONTH_ABBR = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

DateLike = Union[date, datetime]


def window_origin(anchor: Optional[DateLike] = None) -> date:
    """The Saturday that starts the pay cycle following `anchor`."""
    payday = as_date(anchor) or DEFAULT_PAYDAY
    return payday + timedelta(days=(SATURDAY - payday.weekday()) % 7)


def format_range_label(start: date, end: date) -> str:
    """'Jan 31 – 13' inside one month, 'Jan 31 – Feb 13' across months."""
    start_month = MONTH_ABBR[start.month - 1]
    if (start.year, start.month) == (end.year, end.month):
        return f"{start_month} {start.day} {EN_DASH} {end.day}"
    end_month = MONTH_ABBR[end.month - 1]
    return f"{start_month} {start.day} {EN_DASH} {end_month} {end.day}"


def _grid_window(origin: date, day: date, step_days: int) -> tuple[date, date]:
    offset = (day - origin).days // step_days
    start = origin + timedelta(days=offset * step_days)
    return start, start + timedelta(days=step_days - 1)


def _bounds(cadence: Cadence, day: date, anchor: Optional[DateLike]) -> tuple[date, date, str]:
    if cadence == Cadence.MONTHLY:
        start = day.replace(day=1)
        end = day.replace(day=calendar.monthrange(day.year, day.month)[1])
        return start, end, f"{MONTH_ABBR[day.month - 1]} {day.year}"

    if cadence == Cadence.YEARLY:
        return date(day.year, 1, 1), date(day.year, 12, 31), f"{day.year}"

    step = 14 if cadence == Cadence.BIWEEKLY else 7
    start, end = _grid_window(window_origin(anchor), day, step)
    return start, end, format_range_label(start, end)


def period_containing(
    cadence: Union[Cadence, str],
    day: DateLike,
    now: DateLike,
    anchor: Optional[DateLike] = None,
) -> Period:
    """The window of `cadence` that contains `day`; `now` decides is_current."""
    cadence = Cadence.parse(cadence)
    day = as_date(day)
    today = as_date(now)
    start, end, label = _bounds(cadence, day, anchor)
    return Period(
        cadence=cadence,
        start_date=start,
        end_date=end,
        label=label,
        is_current=start <= today <= end,
    )


def current_period(
    cadence: Union[Cadence, str],
    now: DateLike,
    anchor: Optional[DateLike] = None,
) -> Period:
    """The window containing `now`."""
    return period_containing(cadence, now, now, anchor)


def recent_periods(
    cadence: Union[Cadence, str],
    now: DateLike,
    count: int,
    anchor: Optional[DateLike] = None,
) -> list[Period]:
    """
    The current window and the `count - 1` windows before it.

    Returned oldest first, ready for charting. Windows are contiguous and
    never overlap.
    """
    if count < 1:
        raise InputError(f"History needs at least one period, got {count}")

    periods = [current_period(cadence, now, anchor)]
    while len(periods) < count:
        before = periods[-1].start_date - timedelta(days=1)
        periods.append(period_containing(cadence, before, now, anchor))
    periods.reverse()
    return periods


def previous_period(period: Period) -> Period:
    """
    The equal-length window immediately before `period`.

    For monthly/yearly windows this is a day-count shift, not the previous
    calendar month/year, so comparisons always use windows of equal length.
    """
    shift = -period.length_days
    start = period.start_date + timedelta(days=shift)
    end = period.end_date + timedelta(days=shift)
    return period.shifted(shift, label=format_range_label(start, end))
