"""
Abstract Storage Interface

DESIGN DECISION: The core talks to spreadsheets through a small, range
based interface instead of a client library. This allows us to:
1. Use in-memory storage for testing
2. Keep business logic decoupled from gspread
3. Swap the backend without touching the flows

The interface is intentionally low level - A1 ranges in, rows of cell
values out. Typed parsing happens one layer up (LedgerRepository,
RegistryStore).

All methods are coroutines. Implementations NEVER retry; they raise
UpstreamTransientError or UpstreamPermanentError and let the caller decide.
"""

from abc import ABC, abstractmethod
from typing import Any

from spend_tracker.models.audit import AuditEvent


class LedgerStoreInterface(ABC):
    """
    Abstract interface for spreadsheet document storage.

    Used for both per-user ledgers and the central registry document.
    """

    @abstractmethod
    async def read_range(self, document_id: str, range_spec: str) -> list[list[Any]]:
        """
        Read the cell values of an A1 range.

        Args:
            document_id: Spreadsheet id
            range_spec: A1 range, e.g. "'Spending'!A2:E"

        Returns:
            Rows of cell values. Trailing empty rows/cells may be omitted.
        """
        pass

    @abstractmethod
    async def append_rows(self, document_id: str, range_spec: str, rows: list[list[Any]]) -> int:
        """
        Append rows after the last non-empty row of the range's table.

        Returns:
            Number of rows appended
        """
        pass

    @abstractmethod
    async def update_cell(self, document_id: str, cell_ref: str, value: Any) -> None:
        """Overwrite a single cell, e.g. "'Weekly Budget'!B4"."""
        pass

    @abstractmethod
    async def get_sheet_metadata(self, document_id: str) -> list[str]:
        """
        Tab titles of the document, in order.

        Raises:
            UpstreamPermanentError: If the document does not exist
        """
        pass

    @abstractmethod
    async def copy_document(self, template_id: str, new_title: str) -> str:
        """
        Copy a template spreadsheet.

        Returns:
            Id of the new document
        """
        pass

    @abstractmethod
    async def share_document(self, document_id: str, email: str, role: str = "writer") -> None:
        """Grant `email` access to the document without a notification email."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass
