"""
Storage Services Package

Provides the abstract range-based interface and concrete implementations.
Google Sheets is the production backend; the in-memory store backs tests.
"""

from spend_tracker.services.storage.interface import (
    AuditStorageInterface,
    LedgerStoreInterface,
)
from spend_tracker.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
)
from spend_tracker.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    classify_api_error,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStoreInterface",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "classify_api_error",
]
