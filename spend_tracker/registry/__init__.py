"""Central registry access and ledger schema verification."""

from spend_tracker.registry.schema import (
    BUDGET_SECTION,
    TRANSACTIONS_SECTION,
    check_headers,
    verify_schema,
)
from spend_tracker.registry.store import RegistryStore, entry_to_row, request_to_row

__all__ = [
    "BUDGET_SECTION",
    "TRANSACTIONS_SECTION",
    "RegistryStore",
    "check_headers",
    "entry_to_row",
    "request_to_row",
    "verify_schema",
]
