"""
In-Memory Storage

A dict-of-grids implementation of LedgerStoreInterface used by the tests
and for local experiments. It understands the subset of A1 notation the
application produces: "'Tab'!A2:E", "'Tab'!A:E", "'Tab'!B4", "'Tab'!A1:E1".
"""

import re
from copy import deepcopy
from typing import Any, Optional

from spend_tracker.errors import UpstreamPermanentError
from spend_tracker.models.audit import AuditEvent
from spend_tracker.models.layout import AUDIT_COLUMNS
from spend_tracker.services.storage.interface import (
    AuditStorageInterface,
    LedgerStoreInterface,
)


_CELL = re.compile(r"^([A-Z]+)(\d*)$")


def _column_index(letters: str) -> int:
    index = 0
    for char in letters:
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index


def split_range(range_spec: str) -> tuple[str, str]:
    """"'Weekly Budget'!A2:B" -> ("Weekly Budget", "A2:B")."""
    if "!" not in range_spec:
        raise UpstreamPermanentError(f"Range has no sheet name: {range_spec}")
    sheet, _, cells = range_spec.rpartition("!")
    if sheet.startswith("'") and sheet.endswith("'"):
        sheet = sheet[1:-1].replace("''", "'")
    return sheet, cells.upper()


def parse_cells(cells: str) -> tuple[int, Optional[int], int, Optional[int]]:
    """
    A1 cell span as 1-based (first_col, first_row, last_col, last_row).

    Open-ended rows are None ("A2:E" has no last row, "A:E" neither bound).
    """
    start, _, end = cells.partition(":")
    end = end or start
    start_match = _CELL.match(start)
    end_match = _CELL.match(end)
    if not start_match or not end_match:
        raise UpstreamPermanentError(f"Unsupported range: {cells}")
    first_row = int(start_match.group(2)) if start_match.group(2) else None
    last_row = int(end_match.group(2)) if end_match.group(2) else None
    return (
        _column_index(start_match.group(1)),
        first_row,
        _column_index(end_match.group(1)),
        last_row,
    )


class InMemoryLedgerStore(LedgerStoreInterface):
    """
    Spreadsheets held as {document_id: {tab: [[cell, ...], ...]}}.

    Row 1 of a grid is index 0. Copies get ids "copy-1", "copy-2", ...
    """

    def __init__(self, documents: Optional[dict[str, dict[str, list[list[Any]]]]] = None):
        self.documents: dict[str, dict[str, list[list[Any]]]] = deepcopy(documents or {})
        self.shares: list[tuple[str, str, str]] = []
        self.calls: list[tuple[str, str]] = []
        self._copies = 0

    def add_document(self, document_id: str, sheets: dict[str, list[list[Any]]]) -> None:
        self.documents[document_id] = deepcopy(sheets)

    def _document(self, document_id: str) -> dict[str, list[list[Any]]]:
        if not document_id or document_id not in self.documents:
            raise UpstreamPermanentError(f"Spreadsheet not found: {document_id}")
        return self.documents[document_id]

    def _grid(self, document_id: str, sheet: str) -> list[list[Any]]:
        document = self._document(document_id)
        if sheet not in document:
            raise UpstreamPermanentError(f"Unable to parse range: sheet '{sheet}' not found")
        return document[sheet]

    async def read_range(self, document_id: str, range_spec: str) -> list[list[Any]]:
        self.calls.append(("read_range", range_spec))
        sheet, cells = split_range(range_spec)
        grid = self._grid(document_id, sheet)
        first_col, first_row, last_col, last_row = parse_cells(cells)

        top = (first_row or 1) - 1
        bottom = last_row if last_row is not None else len(grid)
        rows = []
        for row in grid[top:bottom]:
            rows.append(list(row[first_col - 1:last_col]))

        # Like the Sheets API, trailing empty rows are not returned
        while rows and not any(cell not in ("", None) for cell in rows[-1]):
            rows.pop()
        return rows

    async def append_rows(self, document_id: str, range_spec: str, rows: list[list[Any]]) -> int:
        self.calls.append(("append_rows", range_spec))
        sheet, _ = split_range(range_spec)
        grid = self._grid(document_id, sheet)
        while grid and not any(cell not in ("", None) for cell in grid[-1]):
            grid.pop()
        grid.extend(list(row) for row in rows)
        return len(rows)

    async def update_cell(self, document_id: str, cell_ref: str, value: Any) -> None:
        self.calls.append(("update_cell", cell_ref))
        sheet, cells = split_range(cell_ref)
        grid = self._grid(document_id, sheet)
        column, row, _, _ = parse_cells(cells)
        if row is None:
            raise UpstreamPermanentError(f"Not a single cell: {cell_ref}")
        while len(grid) < row:
            grid.append([])
        target = grid[row - 1]
        while len(target) < column:
            target.append("")
        target[column - 1] = value

    async def get_sheet_metadata(self, document_id: str) -> list[str]:
        self.calls.append(("get_sheet_metadata", document_id))
        return list(self._document(document_id).keys())

    async def copy_document(self, template_id: str, new_title: str) -> str:
        self.calls.append(("copy_document", template_id))
        template = self._document(template_id)
        self._copies += 1
        new_id = f"copy-{self._copies}"
        self.documents[new_id] = deepcopy(template)
        return new_id

    async def share_document(self, document_id: str, email: str, role: str = "writer") -> None:
        self.calls.append(("share_document", document_id))
        self._document(document_id)
        self.shares.append((document_id, email, role))


class InMemoryAuditStorage(AuditStorageInterface):
    """Collects audit rows in a list."""

    def __init__(self):
        self.rows: list[list[Any]] = [list(AUDIT_COLUMNS)]
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        self.rows.append(event.to_sheets_row())
        return True
