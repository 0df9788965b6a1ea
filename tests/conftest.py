"""
Shared fixtures for Spend Tracker tests.

Everything runs against InMemoryLedgerStore - no network, no credentials.
Async code is driven with asyncio.run.
"""

from datetime import datetime, timezone

import pytest

from spend_tracker.audit import AuditLogger
from spend_tracker.models.layout import (
    AUDIT_COLUMNS,
    BUDGET_HEADERS,
    REGISTRY_COLUMNS,
    REQUEST_COLUMNS,
    TRANSACTION_HEADERS,
)
from spend_tracker.orchestrator import FlowContext
from spend_tracker.services.storage import InMemoryAuditStorage, InMemoryLedgerStore


REGISTRY_ID = "registry-sheet"
LEDGER_ID = "ledger-user"
TEMPLATE_ID = "ledger-template"

ADMIN = "admin@example.com"
USER = "user@example.com"
NOW = datetime(2026, 2, 10, 12, 0, tzinfo=timezone.utc)


def ledger_sheets(transactions=None, budgets=None) -> dict:
    """A ledger document with the expected headers."""
    return {
        "Spending": [list(TRANSACTION_HEADERS)] + [list(r) for r in (transactions or [])],
        "Weekly Budget": [list(BUDGET_HEADERS)] + [list(r) for r in (budgets or [])],
    }


def registry_sheets(entries=None, requests=None) -> dict:
    return {
        "registry": [list(REGISTRY_COLUMNS)] + [list(r) for r in (entries or [])],
        "requests": [list(REQUEST_COLUMNS)] + [list(r) for r in (requests or [])],
        "audit": [list(AUDIT_COLUMNS)],
    }


@pytest.fixture
def store() -> InMemoryLedgerStore:
    """Registry with one admin and one active user, plus their ledger and the template."""
    store = InMemoryLedgerStore()
    store.add_document(REGISTRY_ID, registry_sheets(
        entries=[
            [ADMIN, "", "Inactive", "Admin", "2026-01-01T00:00:00+00:00", ""],
            [USER, LEDGER_ID, "Active", "User", "2026-01-02T00:00:00+00:00", ""],
        ],
    ))
    store.add_document(LEDGER_ID, ledger_sheets(
        transactions=[
            ["02/01/2026", "12.00", "Grocery", "Market", "Visa"],
            ["02/03/2026", "$30.00", "Restaurant", "Diner", "Visa"],
            ["01/20/2026", "20.00", "Grocery", "Market", "Visa"],
        ],
        budgets=[
            ["Grocery", "$50.00"],
            ["Restaurant", "$25.00"],
        ],
    ))
    store.add_document(TEMPLATE_ID, ledger_sheets())
    return store


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def context(store, audit_storage) -> FlowContext:
    return FlowContext(
        store,
        REGISTRY_ID,
        audit_logger=AuditLogger(audit_storage),
        template_id=TEMPLATE_ID,
        service_account_email="bot@project.iam.gserviceaccount.com",
        clock=lambda: NOW,
    )
