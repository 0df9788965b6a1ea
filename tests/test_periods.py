"""Tests for the period engine."""

from datetime import date, datetime, timedelta

import pytest

from spend_tracker.errors import InputError
from spend_tracker.models.period import Cadence
from spend_tracker.periods import (
    current_period,
    format_range_label,
    previous_period,
    recent_periods,
    window_origin,
)


ANCHOR = date(2026, 1, 30)   # Friday payday
NOW = date(2026, 2, 10)


class TestBiweeklyWindows:
    """Biweekly windows anchored on payday."""

    def test_origin_is_saturday_after_friday_payday(self):
        assert window_origin(ANCHOR) == date(2026, 1, 31)

    def test_saturday_anchor_is_its_own_start(self):
        assert window_origin(date(2026, 1, 31)) == date(2026, 1, 31)

    def test_recent_periods_contain_anchor_window_once(self):
        """Exactly one window starts the day after payday, and it is current."""
        periods = recent_periods(Cadence.BIWEEKLY, NOW, 5, ANCHOR)
        starting = [p for p in periods if p.start_date == date(2026, 1, 31)]
        assert len(starting) == 1
        assert starting[0].is_current
        assert starting[0].end_date == date(2026, 2, 13)

    def test_recent_periods_are_chronological_and_contiguous(self):
        periods = recent_periods(Cadence.BIWEEKLY, NOW, 5, ANCHOR)
        assert len(periods) == 5
        assert periods[-1].is_current
        assert sum(p.is_current for p in periods) == 1
        for earlier, later in zip(periods, periods[1:]):
            assert later.start_date == earlier.end_date + timedelta(days=1)
        for period in periods:
            assert (period.end_date - period.start_date).days == 13

    def test_label_across_months(self):
        period = current_period(Cadence.BIWEEKLY, NOW, ANCHOR)
        assert period.label == "Jan 31 – Feb 13"

    def test_window_before_anchor(self):
        """Windows extend backwards from the anchor too."""
        period = current_period(Cadence.BIWEEKLY, date(2026, 1, 20), ANCHOR)
        assert period.start_date == date(2026, 1, 17)
        assert period.end_date == date(2026, 1, 30)

    def test_datetime_now_is_truncated(self):
        period = current_period(Cadence.BIWEEKLY, datetime(2026, 2, 13, 23, 59), ANCHOR)
        assert period.end_date == date(2026, 2, 13)
        assert period.is_current


class TestOtherCadences:
    """Weekly, monthly and yearly windows."""

    def test_weekly_is_saturday_to_friday(self):
        period = current_period(Cadence.WEEKLY, NOW, ANCHOR)
        assert period.start_date == date(2026, 2, 7)
        assert period.end_date == date(2026, 2, 13)
        assert period.start_date.weekday() == 5
        assert period.label == "Feb 7 – 13"

    def test_monthly(self):
        period = current_period(Cadence.MONTHLY, NOW)
        assert period.start_date == date(2026, 2, 1)
        assert period.end_date == date(2026, 2, 28)
        assert period.label == "Feb 2026"

    def test_yearly(self):
        period = current_period("yearly", NOW)
        assert period.start_date == date(2026, 1, 1)
        assert period.end_date == date(2026, 12, 31)
        assert period.label == "2026"

    def test_recent_monthly_periods(self):
        periods = recent_periods(Cadence.MONTHLY, NOW, 3)
        assert [p.label for p in periods] == ["Dec 2025", "Jan 2026", "Feb 2026"]

    def test_count_must_be_positive(self):
        with pytest.raises(InputError):
            recent_periods(Cadence.WEEKLY, NOW, 0)


class TestPreviousPeriod:
    """Equal-length previous windows."""

    def test_biweekly_previous(self):
        period = current_period(Cadence.BIWEEKLY, NOW, ANCHOR)
        earlier = previous_period(period)
        assert earlier.start_date == date(2026, 1, 17)
        assert earlier.end_date == date(2026, 1, 30)
        assert not earlier.is_current

    def test_monthly_previous_is_day_shift(self):
        """February (28 days) compares against the 28 days before it."""
        earlier = previous_period(current_period(Cadence.MONTHLY, NOW))
        assert earlier.start_date == date(2026, 1, 4)
        assert earlier.end_date == date(2026, 1, 31)

    def test_format_range_label_same_month(self):
        assert format_range_label(date(2026, 3, 7), date(2026, 3, 20)) == "Mar 7 – 20"
