"""
Registry Store

Typed access to the central registry spreadsheet. Both tabs are read ONCE
per instance and indexed by normalized email, so a request that checks
access, resolves the ledger and reads the request status costs two range
reads in total. Create one RegistryStore per request.

DESIGN DECISION: The registry is the only source of truth for which
ledger belongs to which user. Nothing caches ledger ids anywhere else.
"""

from datetime import datetime
from typing import Any, Optional

import structlog

from spend_tracker.errors import UpstreamPermanentError
from spend_tracker.ingestion import sanitize_for_storage
from spend_tracker.models.layout import SheetLayout
from spend_tracker.models.registry import (
    AccessRequest,
    RegistryEntry,
    RequestStatus,
    normalize_email,
)
from spend_tracker.services.storage.interface import LedgerStoreInterface


logger = structlog.get_logger(__name__)


def _cell(row: list[Any], index: int) -> str:
    return str(row[index]).strip() if index < len(row) and row[index] is not None else ""


def _parse_timestamp(raw: str) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def _format_timestamp(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def entry_to_row(entry: RegistryEntry) -> list:
    """Registry row: Email | Sheet ID | Status | Access | Created At | Notes."""
    return [
        sanitize_for_storage(entry.email),
        sanitize_for_storage(entry.ledger_id),
        entry.status.value,
        entry.access_level.value,
        _format_timestamp(entry.created_at),
        sanitize_for_storage(entry.notes),
    ]


def request_to_row(request: AccessRequest) -> list:
    """Requests row: Email | Status | Requested At | Notes."""
    return [
        sanitize_for_storage(request.email),
        request.status.value,
        _format_timestamp(request.requested_at),
        sanitize_for_storage(request.notes),
    ]


class RegistryStore:
    """
    Registry and access-request rows for one registry spreadsheet.

    Args:
        store: Storage backend
        registry_id: Spreadsheet id of the registry
        layout: Tab names
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        registry_id: Optional[str],
        layout: Optional[SheetLayout] = None,
    ):
        self._store = store
        self._registry_id = registry_id
        self._layout = layout or SheetLayout()
        self._loaded = False
        self._entries: dict[str, tuple[int, RegistryEntry]] = {}
        self._requests: dict[str, tuple[int, AccessRequest]] = {}
        self._next_entry_row = 2
        self._next_request_row = 2

    @property
    def registry_id(self) -> str:
        if not self._registry_id:
            raise UpstreamPermanentError("Registry spreadsheet id is not configured")
        return self._registry_id

    # =========================================================================
    # LOADING
    # =========================================================================

    async def _load(self) -> None:
        if self._loaded:
            return

        registry_rows = await self._store.read_range(self.registry_id, self._layout.registry_range)
        request_rows = await self._store.read_range(self.registry_id, self._layout.requests_range)

        self._entries = {}
        for offset, row in enumerate(registry_rows):
            email = _cell(row, 0)
            key = normalize_email(email)
            if not key or key == "email":
                continue
            if key in self._entries:
                logger.warning("duplicate_registry_row", email=key, row=offset + 2)
                continue
            self._entries[key] = (offset + 2, RegistryEntry(
                email=email,
                ledger_id=_cell(row, 1),
                status=_cell(row, 2),
                access_level=_cell(row, 3),
                created_at=_parse_timestamp(_cell(row, 4)),
                notes=_cell(row, 5),
            ))
        self._next_entry_row = len(registry_rows) + 2

        self._requests = {}
        for offset, row in enumerate(request_rows):
            email = _cell(row, 0)
            key = normalize_email(email)
            if not key or key == "email" or key in self._requests:
                continue
            self._requests[key] = (offset + 2, AccessRequest(
                email=email,
                status=_cell(row, 1),
                requested_at=_parse_timestamp(_cell(row, 2)),
                notes=_cell(row, 3),
            ))
        self._next_request_row = len(request_rows) + 2

        self._loaded = True
        logger.debug(
            "registry_loaded",
            entries=len(self._entries),
            requests=len(self._requests),
        )

    async def refresh(self) -> None:
        """Drop the cached view and read both tabs again."""
        self._loaded = False
        await self._load()

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def resolve(self, email: Optional[str]) -> Optional[RegistryEntry]:
        """Registry entry for `email`, or None if the user is not registered."""
        await self._load()
        found = self._entries.get(normalize_email(email))
        return found[1] if found else None

    async def get_request(self, email: Optional[str]) -> Optional[AccessRequest]:
        await self._load()
        found = self._requests.get(normalize_email(email))
        return found[1] if found else None

    async def entries(self) -> list[RegistryEntry]:
        await self._load()
        return [entry for _, entry in self._entries.values()]

    async def pending_requests(self) -> list[AccessRequest]:
        """Requests still waiting for an admin decision, oldest row first."""
        await self._load()
        rows = sorted(self._requests.values(), key=lambda item: item[0])
        return [request for _, request in rows if request.status == RequestStatus.PENDING]

    # =========================================================================
    # WRITES
    # =========================================================================

    async def _write_row(self, row_number: int, values: list, cell_ref) -> None:
        for column, value in enumerate(values, start=1):
            await self._store.update_cell(self.registry_id, cell_ref(row_number, column), value)

    async def save_entry(self, entry: RegistryEntry) -> RegistryEntry:
        """Overwrite the user's registry row, or append one if there is none."""
        await self._load()
        row = entry_to_row(entry)
        existing = self._entries.get(entry.key)
        if existing:
            row_number = existing[0]
            await self._write_row(row_number, row, self._layout.registry_cell)
        else:
            row_number = self._next_entry_row
            await self._store.append_rows(self.registry_id, self._layout.registry_append_range, [row])
            self._next_entry_row += 1
        self._entries[entry.key] = (row_number, entry)
        return entry

    async def add_request(self, request: AccessRequest) -> AccessRequest:
        """Append a request row. An existing request for the email is updated instead."""
        await self._load()
        if request.key in self._requests:
            return await self.update_request(request)
        await self._store.append_rows(
            self.registry_id,
            self._layout.requests_append_range,
            [request_to_row(request)],
        )
        self._requests[request.key] = (self._next_request_row, request)
        self._next_request_row += 1
        return request

    async def update_request(self, request: AccessRequest) -> AccessRequest:
        """
        Rewrite the status and notes of an existing request row.

        Raises:
            KeyError: If the email has no request row
        """
        await self._load()
        existing = self._requests.get(request.key)
        if existing is None:
            raise KeyError(request.email)
        row_number = existing[0]
        row = request_to_row(request)
        await self._store.update_cell(self.registry_id, self._layout.requests_cell(row_number, 2), row[1])
        await self._store.update_cell(self.registry_id, self._layout.requests_cell(row_number, 4), row[3])
        self._requests[request.key] = (row_number, request)
        return request
