"""
Transaction Ingestor

Everything that wants to write transactions to a ledger - manual entry or
parsed statements - comes through here first:

1. Coerce each candidate into a typed Transaction (amounts become finite numbers)
2. Normalize dates to MM/DD/YYYY, flag the ones that cannot be parsed
3. Drop duplicates
4. Neutralize spreadsheet formulas before anything is written

DESIGN DECISION: A write batch is all or nothing. `prepare_batch` either
returns a fully clean batch or raises ONE InputError listing every problem.
Normalizing for preview (`normalize`) is tolerant: problems become
per-record warnings.

KNOWN LIMITATION: Duplicates are detected on (date, description, amount).
Two genuinely separate purchases with the same date, description and
amount are indistinguishable and collapse into one. This is accepted.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError

from spend_tracker.dates import (
    YEAR_INFERENCE_WINDOW_DAYS,
    normalize_date,
    to_display,
    to_iso,
)
from spend_tracker.errors import InputError
from spend_tracker.models.transaction import IngestionResult, Transaction


FORMULA_PREFIXES = ("=", "+", "-", "@")
FORMULA_NEUTRALIZER = "'"

Candidate = Union[Transaction, dict[str, Any]]
DateLike = Union[date, datetime, None]


def sanitize_for_storage(value: Any) -> Any:
    """
    Make a cell value safe to write to a spreadsheet.

    Strings starting with = + - @ would be evaluated as formulas by the
    sheet, so they get a leading apostrophe. Numbers pass through unchanged.
    """
    if value is None:
        return ""
    if isinstance(value, (int, float, Decimal)):
        return value
    text = str(value)
    if text.startswith(FORMULA_PREFIXES):
        return FORMULA_NEUTRALIZER + text
    return text


def to_storage_row(transaction: Transaction) -> list:
    """Ledger row in header order: Range, Amount, Type, Desc, Card."""
    return [
        sanitize_for_storage(transaction.date),
        sanitize_for_storage(float(transaction.amount)),
        sanitize_for_storage(transaction.category),
        sanitize_for_storage(transaction.description),
        sanitize_for_storage(transaction.credit_card),
    ]


def dedupe_key(
    transaction: Transaction,
    today: DateLike = None,
    window_days: int = YEAR_INFERENCE_WINDOW_DAYS,
) -> tuple:
    parsed = normalize_date(transaction.date, today, window_days)
    day = to_iso(parsed) if parsed else transaction.date.strip()
    return (day, transaction.description, transaction.amount)


def dedupe(
    transactions: Iterable[Transaction],
    today: DateLike = None,
    window_days: int = YEAR_INFERENCE_WINDOW_DAYS,
) -> list[Transaction]:
    """First occurrence of each (date, description, amount) wins."""
    seen = set()
    unique = []
    for transaction in transactions:
        key = dedupe_key(transaction, today, window_days)
        if key in seen:
            continue
        seen.add(key)
        unique.append(transaction)
    return unique


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "record"
    return f"{field}: {first.get('msg', 'invalid value')}"


class TransactionIngestor:
    """
    Normalizes and deduplicates candidate transactions.

    `today` pins the reference date used to infer missing years
    ("Dec 20" read on Jan 2 is last December).
    """

    def __init__(
        self,
        today: DateLike = None,
        window_days: int = YEAR_INFERENCE_WINDOW_DAYS,
    ):
        self._today = today
        self._window_days = window_days

    def parse_date(self, raw: str) -> Optional[date]:
        return normalize_date(raw, self._today, self._window_days)

    def coerce(self, candidate: Candidate) -> Transaction:
        """Typed Transaction from a dict or Transaction (raises ValidationError)."""
        if isinstance(candidate, Transaction):
            return candidate
        return Transaction.model_validate(candidate)

    def _with_display_date(self, transaction: Transaction) -> tuple[Transaction, bool]:
        parsed = self.parse_date(transaction.date)
        if parsed is None:
            return transaction, False
        return transaction.model_copy(update={"date": to_display(parsed)}), True

    def dedupe(self, transactions: Iterable[Transaction]) -> list[Transaction]:
        return dedupe(transactions, self._today, self._window_days)

    def normalize(self, candidates: Iterable[Candidate]) -> IngestionResult:
        """
        Tolerant normalization for previews and document imports.

        Invalid records and unparsable dates become warnings. Records with
        unparsable dates are kept (raw date) and listed in `rejected`.
        """
        warnings = []
        normalized = []
        for number, candidate in enumerate(candidates, start=1):
            try:
                transaction = self.coerce(candidate)
            except ValidationError as e:
                warnings.append(f"Record {number}: invalid transaction ({_describe_validation_error(e)})")
                continue

            transaction, parsed = self._with_display_date(transaction)
            if not parsed:
                warnings.append(
                    f"Record {number}: could not parse date \"{transaction.date}\" - needs manual correction"
                )
            normalized.append(transaction)

        unique = self.dedupe(normalized)
        rejected = [t for t in unique if self.parse_date(t.date) is None]
        return IngestionResult(
            transactions=unique,
            warnings=warnings,
            rejected=rejected,
            duplicates_removed=len(normalized) - len(unique),
        )

    def validate_batch(self, candidates: Iterable[Candidate]) -> list[Transaction]:
        """
        Validate a batch for appending to a ledger.

        Returns:
            Normalized, deduplicated transactions

        Raises:
            InputError: If the batch is empty or ANY record is invalid.
                        Nothing from a rejected batch may be written.
        """
        candidates = list(candidates)
        if not candidates:
            raise InputError("Transaction batch is empty")

        problems = []
        normalized = []
        for number, candidate in enumerate(candidates, start=1):
            try:
                transaction = self.coerce(candidate)
            except ValidationError as e:
                problems.append(f"Record {number}: {_describe_validation_error(e)}")
                continue

            transaction, parsed = self._with_display_date(transaction)
            if not parsed:
                problems.append(f"Record {number}: could not parse date \"{transaction.date}\"")
                continue
            normalized.append(transaction)

        if problems:
            raise InputError(
                f"Transaction batch rejected: {len(problems)} of {len(candidates)} records need correction",
                details=problems,
            )

        return self.dedupe(normalized)

    def prepare_batch(self, candidates: Iterable[Candidate]) -> list[list]:
        """Validated batch as sanitized storage rows (same all-or-nothing rules)."""
        return [to_storage_row(t) for t in self.validate_batch(candidates)]

    def parse_cutoff(self, cutoff: Union[str, date, None]) -> Optional[date]:
        """None when no cutoff is given; InputError when one is given but unreadable."""
        if cutoff is None or cutoff == "":
            return None
        cutoff_date = self.parse_date(cutoff)
        if cutoff_date is None:
            raise InputError(f"Could not parse cutoff date \"{cutoff}\"")
        return cutoff_date

    def apply_cutoff(
        self,
        transactions: Iterable[Transaction],
        cutoff: Union[str, date, None],
    ) -> list[Transaction]:
        """
        Keep transactions dated on or after `cutoff`.

        Transactions with unparsable dates are kept so they still reach
        the user for correction.
        """
        cutoff_date = self.parse_cutoff(cutoff)
        if cutoff_date is None:
            return list(transactions)

        kept = []
        for transaction in transactions:
            parsed = self.parse_date(transaction.date)
            if parsed is None or parsed >= cutoff_date:
                kept.append(transaction)
        return kept
