"""
Date Normalizer

Statement screenshots, hand-typed rows and parser output use every date
format imaginable. This module turns them into one canonical value: a
plain `datetime.date`. `None` means "unparsed" - the caller must surface the
record for manual correction, never drop it.

Accepted, in priority order:
1. Slash triples: YYYY/MM/DD when the first segment has 4 digits,
   otherwise US MM/DD/YYYY or MM/DD/YY (YY -> 2000 + YY)
2. ISO YYYY-MM-DD
3. Month names: "Jan 5", "Jan 5, 2026", "5 Jan", "5 January 2026".
   Without a year, the current year is assumed unless that puts the date
   more than 60 days in the future, in which case it is last year's
   (a December statement read in early January)
4. A short list of other calendar formats

DESIGN DECISION: Storage and sorting use ISO, display and write-back use
MM/DD/YYYY. Both are rendered from the same date, so an ambiguous string
is never written back.
"""

import re
from datetime import date, datetime
from typing import Optional, Union


YEAR_INFERENCE_WINDOW_DAYS = 60

MONTH_PREFIXES = [
    "jan", "feb", "mar", "apr", "may", "jun",
    "jul", "aug", "sep", "oct", "nov", "dec",
]

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_DAY_TOKEN = re.compile(r"^(\d{1,2})(?:st|nd|rd|th)?$", re.IGNORECASE)
_YEAR_TOKEN = re.compile(r"^(?:\d{2}|\d{4})$")

FALLBACK_FORMATS = [
    "%m-%d-%Y",
    "%m-%d-%y",
    "%Y.%m.%d",
    "%m.%d.%Y",
    "%Y%m%d",
    "%d-%b-%Y",
    "%b-%d-%Y",
    "%a %b %d %Y",
    "%A, %B %d, %Y",
]

DateInput = Union[str, date, datetime, None]


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _expand_year(token: str) -> Optional[int]:
    if len(token) == 2:
        return 2000 + int(token)
    if len(token) == 4:
        return int(token)
    return None


def _parse_slash(parts: list[str]) -> Optional[date]:
    first, second, third = parts
    if len(first) == 4:
        year, month, day = int(first), second, third
    else:
        month, day = first, second
        year = _expand_year(third)
        if year is None:
            return None
    if len(month) > 2 or len(day) > 2:
        return None
    return _safe_date(year, int(month), int(day))


def month_from_name(token: str) -> Optional[int]:
    """1-based month for a month name, matched on its first three letters."""
    token = token.strip().rstrip(".").lower()
    if len(token) < 3 or not token.isalpha():
        return None
    try:
        return MONTH_PREFIXES.index(token[:3]) + 1
    except ValueError:
        return None


def _infer_year(month: int, day: int, today: date, window_days: int) -> Optional[date]:
    candidate = _safe_date(today.year, month, day)
    if candidate is None:
        return None
    if (candidate - today).days > window_days:
        return _safe_date(today.year - 1, month, day)
    return candidate


def _parse_month_name(text: str, today: date, window_days: int) -> Optional[date]:
    parts = text.replace(",", " ").split()
    if len(parts) < 2 or len(parts) > 3:
        return None

    month = day = None
    # "Jan 5[, 2026]"
    month = month_from_name(parts[0])
    if month is not None:
        match = _DAY_TOKEN.match(parts[1])
        if match:
            day = int(match.group(1))
    else:
        # "5 Jan[ 2026]"
        match = _DAY_TOKEN.match(parts[0])
        if match:
            month = month_from_name(parts[1])
            day = int(match.group(1))

    if month is None or day is None:
        return None

    if len(parts) == 3:
        if not _YEAR_TOKEN.match(parts[2]):
            return None
        return _safe_date(_expand_year(parts[2]), month, day)

    return _infer_year(month, day, today, window_days)


def _parse_fallback(text: str) -> Optional[date]:
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def as_date(value: Union[date, datetime, None]) -> Optional[date]:
    """Truncate a datetime to its date (midnight), pass dates through."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def normalize_date(
    raw: DateInput,
    today: Union[date, datetime, None] = None,
    window_days: int = YEAR_INFERENCE_WINDOW_DAYS,
) -> Optional[date]:
    """
    Parse a free-form date.

    Args:
        raw: The date as found in a cell or parser output
        today: Reference "now" for yearless dates (defaults to today)
        window_days: How far in the future a yearless date may land

    Returns:
        The canonical date, or None when the input cannot be parsed
    """
    if raw is None:
        return None
    if isinstance(raw, (date, datetime)):
        return as_date(raw)

    text = str(raw).strip()
    if not text:
        return None
    reference = as_date(today) or date.today()

    if "/" in text:
        parts = [p.strip() for p in text.split("/")]
        if len(parts) == 3 and all(p.isdigit() for p in parts):
            return _parse_slash(parts)

    iso = _ISO_DATE.match(text)
    if iso:
        return _safe_date(*(int(g) for g in iso.groups()))

    named = _parse_month_name(text, reference, window_days)
    if named is not None:
        return named

    return _parse_fallback(text)


def to_iso(value: date) -> str:
    """YYYY-MM-DD, used for storage keys and sorting."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def to_display(value: date) -> str:
    """MM/DD/YYYY, used for display and ledger write-back."""
    return f"{value.month:02d}/{value.day:02d}/{value.year:04d}"


def normalize_to_iso(raw: DateInput, today=None, window_days: int = YEAR_INFERENCE_WINDOW_DAYS) -> Optional[str]:
    parsed = normalize_date(raw, today, window_days)
    return to_iso(parsed) if parsed else None


def normalize_to_display(raw: DateInput, today=None, window_days: int = YEAR_INFERENCE_WINDOW_DAYS) -> Optional[str]:
    parsed = normalize_date(raw, today, window_days)
    return to_display(parsed) if parsed else None
