"""
Ledger Schema Verification

A ledger is only registered (and re-checked on request) if it has exactly
one Spending tab and exactly one Weekly Budget tab, each with the expected
header row. Header cells are compared trimmed and case-insensitively, in
order; extra columns to the right are ignored.

verify_schema never raises: every failure, including the ledger not being
reachable, comes back as SchemaCheck(ok=False) with a reason naming the
section and column.
"""

from typing import Any, Optional

import structlog

from spend_tracker.errors import UpstreamError
from spend_tracker.models.layout import (
    BUDGET_HEADERS,
    TRANSACTION_HEADERS,
    SheetLayout,
    column_letter,
)
from spend_tracker.models.registry import SchemaCheck
from spend_tracker.services.storage.interface import LedgerStoreInterface


logger = structlog.get_logger(__name__)

TRANSACTIONS_SECTION = "transactions"
BUDGET_SECTION = "budget"


def _normalize(cell: Any) -> str:
    return str(cell if cell is not None else "").strip().lower()


def check_headers(section: str, sheet_name: str, expected: list[str], actual: list[Any]) -> SchemaCheck:
    """Compare one header row against the expected column names."""
    for index, name in enumerate(expected):
        found = actual[index] if index < len(actual) else ""
        if _normalize(found) != name.lower():
            shown = str(found).strip() if found not in (None, "") else "blank"
            return SchemaCheck(
                ok=False,
                section=section,
                reason=(
                    f"{section} section ('{sheet_name}'): column {column_letter(index + 1)} "
                    f"should be '{name}' but is {shown if shown == 'blank' else repr(shown)}"
                ),
            )
    return SchemaCheck(ok=True)


def _count_tabs(titles: list[str], sheet_name: str) -> int:
    wanted = sheet_name.strip().lower()
    return sum(1 for title in titles if title.strip().lower() == wanted)


async def verify_schema(
    store: LedgerStoreInterface,
    ledger_id: Optional[str],
    layout: Optional[SheetLayout] = None,
) -> SchemaCheck:
    """Check that `ledger_id` is a usable ledger."""
    layout = layout or SheetLayout()
    if not ledger_id:
        return SchemaCheck(ok=False, reason="No ledger id supplied")

    sections = [
        (TRANSACTIONS_SECTION, layout.transactions_sheet, TRANSACTION_HEADERS, layout.transactions_header_range),
        (BUDGET_SECTION, layout.budget_sheet, BUDGET_HEADERS, layout.budget_header_range),
    ]

    try:
        titles = await store.get_sheet_metadata(ledger_id)
        for section, sheet_name, expected, header_range in sections:
            count = _count_tabs(titles, sheet_name)
            if count == 0:
                return SchemaCheck(
                    ok=False,
                    section=section,
                    reason=f"{section} section: ledger has no '{sheet_name}' tab",
                )
            if count > 1:
                return SchemaCheck(
                    ok=False,
                    section=section,
                    reason=f"{section} section: ledger has {count} '{sheet_name}' tabs, expected exactly one",
                )

            rows = await store.read_range(ledger_id, header_range)
            check = check_headers(section, sheet_name, expected, rows[0] if rows else [])
            if not check.ok:
                logger.info("schema_mismatch", ledger_id=ledger_id, section=section, reason=check.reason)
                return check
    except UpstreamError as e:
        logger.warning("schema_check_failed", ledger_id=ledger_id, error=str(e))
        return SchemaCheck(ok=False, reason=f"Ledger could not be read: {e}")
    except Exception as e:
        logger.error("schema_check_crashed", ledger_id=ledger_id, error=str(e), error_type=type(e).__name__)
        return SchemaCheck(ok=False, reason=f"Ledger could not be verified: {type(e).__name__}: {e}")

    return SchemaCheck(ok=True)
