"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. Users own their ledger and can edit it directly in Sheets
2. No database setup required
3. The registry is just another spreadsheet an admin can read

TRADEOFFS:
- No transactions across ranges (writes are last-write-wins)
- Limited query capabilities (we filter in Python)

Unlike a typical client wrapper, nothing here retries. Every gspread or
HTTP failure is mapped onto UpstreamTransientError (rate limits, 5xx,
dropped connections) or UpstreamPermanentError (bad ids, missing
credentials, permission problems) and raised. Callers who want retries
use spend_tracker.services.retry.
"""

from typing import Any, Optional

import gspread
import requests
import structlog
from google.auth import exceptions as auth_exceptions
from google.oauth2.service_account import Credentials

from spend_tracker.errors import (
    UpstreamError,
    UpstreamPermanentError,
    UpstreamTransientError,
)
from spend_tracker.models.audit import AuditEvent
from spend_tracker.models.layout import SheetLayout
from spend_tracker.services.storage.interface import (
    AuditStorageInterface,
    LedgerStoreInterface,
)


logger = structlog.get_logger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}

# Everything a gspread call can raise that classify_api_error understands
API_ERRORS = (
    gspread.exceptions.GSpreadException,
    requests.exceptions.RequestException,
    auth_exceptions.GoogleAuthError,
)


def classify_api_error(error: Exception, action: str) -> UpstreamError:
    """Map a gspread/requests failure onto the upstream error families."""
    if isinstance(error, gspread.exceptions.SpreadsheetNotFound):
        return UpstreamPermanentError(f"{action}: spreadsheet not found")

    if isinstance(error, gspread.exceptions.APIError):
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
        if status in TRANSIENT_STATUS_CODES:
            return UpstreamTransientError(f"{action}: Google API returned {status}")
        return UpstreamPermanentError(f"{action}: Google API returned {status}: {error}")

    if isinstance(error, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return UpstreamTransientError(f"{action}: connection failed: {error}")

    if isinstance(error, auth_exceptions.TransportError):
        return UpstreamTransientError(f"{action}: could not reach Google auth: {error}")

    if isinstance(error, auth_exceptions.GoogleAuthError):
        return UpstreamPermanentError(f"{action}: Google credentials rejected: {error}")

    return UpstreamPermanentError(f"{action}: {error}")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles service account authentication and caches opened spreadsheets
    for the lifetime of the instance (one request).
    """

    def __init__(self, credentials_path: Optional[str] = None):
        if credentials_path is None:
            from spend_tracker.config import get_settings
            credentials_path = get_settings().google_sheets.credentials_path
        self._credentials_path = credentials_path
        self._client: Optional[gspread.Client] = None
        self._spreadsheets: dict[str, gspread.Spreadsheet] = {}

    def connect(self) -> gspread.Client:
        """Establish connection to Google Sheets using service account credentials."""
        if self._client is None:
            if not self._credentials_path:
                raise UpstreamPermanentError("Google credentials path is not configured")
            try:
                credentials = Credentials.from_service_account_file(
                    self._credentials_path,
                    scopes=SCOPES,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise UpstreamPermanentError(
                    f"Google credentials file not found: {self._credentials_path}"
                )
            except ValueError as e:
                raise UpstreamPermanentError(f"Invalid Google credentials: {e}")
        return self._client

    def open(self, document_id: str) -> gspread.Spreadsheet:
        """Open (and cache) a spreadsheet by id."""
        if not document_id:
            raise UpstreamPermanentError("Spreadsheet id is missing")
        if document_id not in self._spreadsheets:
            client = self.connect()
            try:
                self._spreadsheets[document_id] = client.open_by_key(document_id)
            except API_ERRORS as e:
                raise classify_api_error(e, f"Opening spreadsheet {document_id}")
        return self._spreadsheets[document_id]


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """
    Google Sheets implementation of LedgerStoreInterface.

    Reads use values_get, appends use values_append with USER_ENTERED so
    dates and amounts are typed by Sheets the same way manual entry is.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def read_range(self, document_id: str, range_spec: str) -> list[list[Any]]:
        spreadsheet = self._client.open(document_id)
        try:
            response = spreadsheet.values_get(range_spec)
        except API_ERRORS as e:
            raise classify_api_error(e, f"Reading {range_spec}")
        return response.get("values", [])

    async def append_rows(self, document_id: str, range_spec: str, rows: list[list[Any]]) -> int:
        if not rows:
            return 0
        spreadsheet = self._client.open(document_id)
        try:
            spreadsheet.values_append(
                range_spec,
                {"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
                {"values": rows},
            )
        except API_ERRORS as e:
            raise classify_api_error(e, f"Appending to {range_spec}")
        logger.info("rows_appended", document_id=document_id, range=range_spec, count=len(rows))
        return len(rows)

    async def update_cell(self, document_id: str, cell_ref: str, value: Any) -> None:
        spreadsheet = self._client.open(document_id)
        try:
            spreadsheet.values_update(
                cell_ref,
                {"valueInputOption": "USER_ENTERED"},
                {"values": [[value]]},
            )
        except API_ERRORS as e:
            raise classify_api_error(e, f"Updating {cell_ref}")

    async def get_sheet_metadata(self, document_id: str) -> list[str]:
        spreadsheet = self._client.open(document_id)
        try:
            return [worksheet.title for worksheet in spreadsheet.worksheets()]
        except API_ERRORS as e:
            raise classify_api_error(e, f"Reading metadata of {document_id}")

    async def copy_document(self, template_id: str, new_title: str) -> str:
        if not template_id:
            raise UpstreamPermanentError("Template spreadsheet id is not configured")
        client = self._client.connect()
        try:
            copy = client.copy(template_id, title=new_title, copy_permissions=False)
        except API_ERRORS as e:
            raise classify_api_error(e, f"Copying template {template_id}")
        logger.info("document_copied", template_id=template_id, document_id=copy.id)
        return copy.id

    async def share_document(self, document_id: str, email: str, role: str = "writer") -> None:
        client = self._client.connect()
        try:
            client.insert_permission(
                document_id,
                email,
                perm_type="user",
                role=role,
                notify=False,
            )
        except API_ERRORS as e:
            raise classify_api_error(e, f"Sharing {document_id}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Appends audit events to the audit tab of the registry spreadsheet.

    Audit events are append-only. A failed append is logged and reported
    as False - audit logging should not break the main flow.
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

    async def append_event(self, event: AuditEvent) -> bool:
        if not self._registry_id:
            return False
        try:
            await self._store.append_rows(
                self._registry_id,
                self._layout.audit_append_range,
                [event.to_sheets_row()],
            )
            return True
        except UpstreamError as e:
            logger.warning(
                "audit_persist_failed",
                event_id=str(event.event_id),
                event_type=event.event_type.value,
                error=str(e),
            )
            return False
