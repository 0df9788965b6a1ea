"""
Ledger Repository

Typed boundary between a user's ledger spreadsheet and the rest of the
application. Raw rows are parsed into Transaction / budget values here,
exactly once; nothing above this layer handles raw cells.

Ledger layout:
- Spending tab:      Range | Amount | Type | Desc | Card   (header on row 1)
- Weekly Budget tab: Budget Categories | Values           (header on row 1)
"""

from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

import structlog

from spend_tracker.dates import to_display
from spend_tracker.errors import InputError
from spend_tracker.ingestion import TransactionIngestor, sanitize_for_storage
from spend_tracker.models.layout import SheetLayout
from spend_tracker.models.transaction import Transaction, coerce_amount
from spend_tracker.services.storage.interface import LedgerStoreInterface


logger = structlog.get_logger(__name__)

HEADER_MARKERS = {"range", "date"}
BUDGET_HEADER_MARKERS = {"budget categories", "category"}


def _cell(row: list[Any], index: int) -> Any:
    return row[index] if index < len(row) else ""


def _is_blank(row: list[Any]) -> bool:
    return not any(str(cell).strip() for cell in row if cell is not None)


def format_budget_value(amount: Decimal) -> str:
    """Budget cells are written as currency text, e.g. '$125.00'."""
    return f"${amount:.2f}"


def validate_budgets(budgets: Mapping[str, Any]) -> dict[str, Decimal]:
    """
    Cleaned {category: weekly amount}.

    Raises:
        InputError: Listing every blank category name and negative amount
    """
    problems = []
    cleaned: dict[str, Decimal] = {}
    for name, value in budgets.items():
        category = str(name or "").strip()
        amount = coerce_amount(value)
        if not category:
            problems.append("Budget category name is blank")
        elif amount < 0:
            problems.append(f"Budget for {category} is negative")
        else:
            cleaned[category] = amount
    if problems:
        raise InputError("Budget update rejected", details=problems)
    return cleaned


class LedgerRepository:
    """
    Reads and writes one user's ledger through a LedgerStoreInterface.

    Args:
        store: Storage backend
        layout: Tab names (defaults match the ledger template)
        ingestor: Used for date normalization and the append gate
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        layout: Optional[SheetLayout] = None,
        ingestor: Optional[TransactionIngestor] = None,
    ):
        self._store = store
        self._layout = layout or SheetLayout()
        self._ingestor = ingestor or TransactionIngestor()

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def _row_to_transaction(self, row: list[Any]) -> Transaction:
        raw_date = str(_cell(row, 0)).strip()
        parsed = self._ingestor.parse_date(raw_date)
        return Transaction(
            date=to_display(parsed) if parsed else raw_date,
            amount=_cell(row, 1),
            category=_cell(row, 2),
            description=_cell(row, 3),
            credit_card=_cell(row, 4),
        )

    async def read_transactions(self, ledger_id: str) -> list[Transaction]:
        """
        All transactions in the ledger, in sheet order.

        Repeated header rows and blank rows are skipped. Dates that can be
        parsed are rewritten to MM/DD/YYYY; others keep their raw text.
        """
        rows = await self._store.read_range(ledger_id, self._layout.transactions_range)
        transactions = []
        for row in rows:
            if not row or _is_blank(row):
                continue
            if str(_cell(row, 0)).strip().lower() in HEADER_MARKERS:
                continue
            transactions.append(self._row_to_transaction(row))
        return transactions

    async def append_transactions(self, ledger_id: str, candidates: Iterable[Any]) -> int:
        """
        Append a batch to the Spending tab.

        Raises:
            InputError: If any record in the batch is invalid. Nothing is written.

        Returns:
            Number of rows appended
        """
        rows = self._ingestor.prepare_batch(candidates)
        appended = await self._store.append_rows(
            ledger_id,
            self._layout.transactions_append_range,
            rows,
        )
        logger.info("transactions_appended", ledger_id=ledger_id, count=appended)
        return appended

    # =========================================================================
    # BUDGETS
    # =========================================================================

    async def _read_budget_rows(self, ledger_id: str) -> list[tuple[int, str, Decimal]]:
        """(sheet row number, category, weekly amount) for each budget row."""
        rows = await self._store.read_range(ledger_id, self._layout.budget_range)
        parsed = []
        for offset, row in enumerate(rows):
            category = str(_cell(row, 0)).strip()
            if not category or category.lower() in BUDGET_HEADER_MARKERS:
                continue
            parsed.append((offset + 2, category, coerce_amount(_cell(row, 1))))
        return parsed

    async def read_budgets(self, ledger_id: str) -> dict[str, Decimal]:
        """Weekly budget per category. Rows without a category are skipped."""
        return {
            category: amount
            for _, category, amount in await self._read_budget_rows(ledger_id)
        }

    async def update_budgets(
        self,
        ledger_id: str,
        budgets: Mapping[str, Any],
    ) -> dict[str, list[str]]:
        """
        Write weekly budget amounts.

        Existing categories (matched case-insensitively) have their value
        cell overwritten; new categories are appended as new rows.

        Raises:
            InputError: On a blank category name or a negative amount.
                        Validation happens before anything is written.

        Returns:
            {"updated": [...], "added": [...]} category names
        """
        cleaned = validate_budgets(budgets)

        existing = {
            category.lower(): row_number
            for row_number, category, _ in await self._read_budget_rows(ledger_id)
        }

        updated = []
        new_rows = []
        added = []
        for category, amount in cleaned.items():
            row_number = existing.get(category.lower())
            if row_number is not None:
                await self._store.update_cell(
                    ledger_id,
                    self._layout.budget_value_cell(row_number),
                    format_budget_value(amount),
                )
                updated.append(category)
            else:
                new_rows.append([sanitize_for_storage(category), format_budget_value(amount)])
                added.append(category)

        if new_rows:
            await self._store.append_rows(ledger_id, self._layout.budget_append_range, new_rows)

        logger.info("budgets_updated", ledger_id=ledger_id, updated=len(updated), added=len(added))
        return {"updated": updated, "added": added}
