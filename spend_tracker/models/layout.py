"""
Spreadsheet Layout

Tab names, header rows and A1 ranges for both the per-user ledger and the
central registry. Header rows are a bit-exact contract with the ledger
template, so they live here and nowhere else.
"""

from typing import Optional

from pydantic import BaseModel


# Ledger tabs: header row is row 1, data starts on row 2
TRANSACTION_HEADERS = ["Range", "Amount", "Type", "Desc", "Card"]
BUDGET_HEADERS = ["Budget Categories", "Values"]

# Registry tabs
REGISTRY_COLUMNS = ["Email", "Sheet ID", "Status", "Access", "Created At", "Notes"]
REQUEST_COLUMNS = ["Email", "Status", "Requested At", "Notes"]
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "actor",
    "subject",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]


def column_letter(index: int) -> str:
    """1-based column index to A1 letters (1 -> A, 27 -> AA)."""
    letters = ""
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def quote_sheet(name: str) -> str:
    """Quote a tab name for use in an A1 range."""
    return "'" + name.replace("'", "''") + "'"


class SheetLayout(BaseModel):
    """Tab names used by the ledger and registry spreadsheets."""

    transactions_sheet: str = "Spending"
    budget_sheet: str = "Weekly Budget"
    registry_sheet: str = "registry"
    requests_sheet: str = "requests"
    audit_sheet: str = "audit"

    @classmethod
    def from_settings(cls, settings: Optional[object] = None) -> "SheetLayout":
        """Build from GoogleSheetsSettings (or defaults when not configured)."""
        if settings is None:
            return cls()
        return cls(
            transactions_sheet=settings.transactions_sheet_name,
            budget_sheet=settings.budget_sheet_name,
            registry_sheet=settings.registry_sheet_name,
            requests_sheet=settings.requests_sheet_name,
            audit_sheet=settings.audit_sheet_name,
        )

    def _range(self, sheet: str, a1: str) -> str:
        return f"{quote_sheet(sheet)}!{a1}"

    # Ledger ranges

    @property
    def transactions_header_range(self) -> str:
        return self._range(self.transactions_sheet, f"A1:{column_letter(len(TRANSACTION_HEADERS))}1")

    @property
    def transactions_range(self) -> str:
        return self._range(self.transactions_sheet, f"A2:{column_letter(len(TRANSACTION_HEADERS))}")

    @property
    def transactions_append_range(self) -> str:
        last = column_letter(len(TRANSACTION_HEADERS))
        return self._range(self.transactions_sheet, f"A:{last}")

    @property
    def budget_header_range(self) -> str:
        return self._range(self.budget_sheet, f"A1:{column_letter(len(BUDGET_HEADERS))}1")

    @property
    def budget_range(self) -> str:
        return self._range(self.budget_sheet, f"A2:{column_letter(len(BUDGET_HEADERS))}")

    @property
    def budget_append_range(self) -> str:
        return self._range(self.budget_sheet, f"A:{column_letter(len(BUDGET_HEADERS))}")

    def budget_value_cell(self, row_number: int) -> str:
        return self._range(self.budget_sheet, f"B{row_number}")

    # Registry ranges

    @property
    def registry_range(self) -> str:
        return self._range(self.registry_sheet, f"A2:{column_letter(len(REGISTRY_COLUMNS))}")

    @property
    def registry_append_range(self) -> str:
        return self._range(self.registry_sheet, f"A:{column_letter(len(REGISTRY_COLUMNS))}")

    def registry_cell(self, row_number: int, column: int) -> str:
        return self._range(self.registry_sheet, f"{column_letter(column)}{row_number}")

    @property
    def requests_range(self) -> str:
        return self._range(self.requests_sheet, f"A2:{column_letter(len(REQUEST_COLUMNS))}")

    @property
    def requests_append_range(self) -> str:
        return self._range(self.requests_sheet, f"A:{column_letter(len(REQUEST_COLUMNS))}")

    def requests_cell(self, row_number: int, column: int) -> str:
        return self._range(self.requests_sheet, f"{column_letter(column)}{row_number}")

    @property
    def audit_append_range(self) -> str:
        return self._range(self.audit_sheet, f"A:{column_letter(len(AUDIT_COLUMNS))}")
