"""Tests for the date normalizer."""

from datetime import date

import pytest

from spend_tracker.dates import (
    normalize_date,
    normalize_to_display,
    normalize_to_iso,
    to_display,
    to_iso,
)


class TestSlashDates:
    """Slash-separated dates."""

    def test_us_date(self):
        """M/D/YYYY is month first."""
        assert normalize_date("1/5/2026") == date(2026, 1, 5)

    def test_year_first_when_four_digits(self):
        """A four-digit first segment means YYYY/MM/DD."""
        assert normalize_date("2026/1/5") == date(2026, 1, 5)

    def test_two_digit_year(self):
        assert normalize_date("1/5/26") == date(2026, 1, 5)

    @pytest.mark.parametrize("month", range(1, 13))
    @pytest.mark.parametrize("day", range(1, 13))
    def test_display_round_trip_zero_pads(self, month, day):
        """M/D/YYYY comes back zero-padded, month first, for every ambiguous pair."""
        assert normalize_to_display(f"{month}/{day}/2026") == f"{month:02d}/{day:02d}/2026"
        assert normalize_to_iso(f"{month}/{day}/2026") == f"2026-{month:02d}-{day:02d}"
        assert to_display(date(2026, month, day)) == f"{month:02d}/{day:02d}/2026"

    def test_invalid_calendar_date(self):
        assert normalize_date("2/30/2026") is None
        assert normalize_date("13/45/2026") is None


class TestIsoAndFallbackDates:
    """ISO and the fallback formats."""

    def test_iso(self):
        assert normalize_date("2026-01-05") == date(2026, 1, 5)

    def test_invalid_iso(self):
        assert normalize_date("2026-02-30") is None

    def test_iso_datetime(self):
        assert normalize_date("2026-01-05T10:30:00") == date(2026, 1, 5)

    def test_dashed_us_date(self):
        assert normalize_date("01-05-2026") == date(2026, 1, 5)

    def test_date_objects_pass_through(self):
        assert normalize_date(date(2026, 1, 5)) == date(2026, 1, 5)


class TestMonthNameDates:
    """Month-name dates and year inference."""

    def test_yearless_date_uses_current_year(self):
        assert normalize_date("Jan 5", today=date(2026, 3, 1)) == date(2026, 1, 5)

    def test_yearless_date_too_far_ahead_uses_last_year(self):
        """A December date read in early January belongs to last year."""
        assert normalize_date("Dec 20", today=date(2026, 1, 2)) == date(2025, 12, 20)

    def test_day_first_with_year(self):
        assert normalize_date("5 Jan 2026") == date(2026, 1, 5)

    def test_full_month_name_with_ordinal(self):
        assert normalize_date("January 5th, 2026") == date(2026, 1, 5)

    def test_month_prefix_is_case_insensitive(self):
        assert normalize_date("SEPT 3, 2025") == date(2025, 9, 3)

    def test_custom_window(self):
        """With a larger window the future date stays in the current year."""
        assert normalize_date("Mar 20", today=date(2026, 1, 2), window_days=90) == date(2026, 3, 20)


class TestUnparsed:
    """Anything unrecognized is None, never a guess."""

    @pytest.mark.parametrize("raw", ["", "   ", None, "garbage", "Foo 5", "5/2026"])
    def test_unparsed(self, raw):
        assert normalize_date(raw) is None

    def test_renderers_return_none(self):
        assert normalize_to_iso("garbage") is None
        assert normalize_to_display("garbage") is None

    def test_renderers(self):
        assert to_iso(date(2026, 1, 5)) == "2026-01-05"
        assert normalize_to_iso("1/5/2026") == "2026-01-05"
        assert normalize_to_display("2026-01-05") == "01/05/2026"
