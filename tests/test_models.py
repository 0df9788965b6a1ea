"""
Tests for Spend Tracker models

Test strategy:
1. Unit tests for individual components (models, builders)
2. Integration tests for flows run against the in-memory store
3. No real API calls in tests
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from spend_tracker.errors import InputError
from spend_tracker.models import (
    AccessLevel,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Cadence,
    DocumentUpload,
    ParsedDocument,
    RegistryEntry,
    RegistryStatus,
    RequestStatus,
    Transaction,
    coerce_amount,
    normalize_email,
)
from spend_tracker.models.layout import AUDIT_COLUMNS, SheetLayout, column_letter


class TestTransactionModels:
    """Tests for transaction-related Pydantic models."""

    def test_transaction_creation(self):
        """Test Transaction model creation."""
        transaction = Transaction(
            date="02/01/2026",
            description="Coffee",
            amount="4.50",
            category="Restaurant",
            creditCard="Visa",
        )
        assert transaction.amount == Decimal("4.50")
        assert transaction.credit_card == "Visa"

    def test_transaction_strips_whitespace(self):
        """Test that whitespace is stripped from text fields."""
        transaction = Transaction(description="  Coffee  ", category=" Cafe ")
        assert transaction.description == "Coffee"
        assert transaction.category == "Cafe"

    def test_numeric_cells_become_text(self):
        transaction = Transaction(date=None, description=123, amount=None)
        assert transaction.date == ""
        assert transaction.description == "123"
        assert transaction.amount == 0

    @pytest.mark.parametrize("raw,expected", [
        ("$1,234.50", Decimal("1234.50")),
        ("(12.50)", Decimal("-12.50")),
        ("N/A", Decimal("0")),
        ("", Decimal("0")),
        ("NaN", Decimal("0")),
        (float("inf"), Decimal("0")),
        ("1e400", Decimal("0")),
        ("-1e400", Decimal("0")),
        (3, Decimal("3")),
    ])
    def test_coerce_amount(self, raw, expected):
        assert coerce_amount(raw) == expected

    def test_transactions_are_immutable(self):
        transaction = Transaction(description="Coffee")
        with pytest.raises(ValidationError):
            transaction.description = "Tea"

    def test_parsed_document_clamps_confidence(self):
        assert ParsedDocument(confidence=1.7).confidence == 1.0
        assert ParsedDocument(confidence="high").confidence == 0.0

    def test_document_upload_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            DocumentUpload(filename="notes.txt", content=b"x", mime_type="text/plain")


class TestRegistryModels:
    """Tests for registry rows."""

    def test_email_normalization(self):
        assert normalize_email("  Someone@Example.COM ") == "someone@example.com"
        assert normalize_email(None) == ""

    def test_entry_parses_status_and_level(self):
        entry = RegistryEntry(email="a@b.c", ledger_id="x", status="active", access_level="ADMIN")
        assert entry.status == RegistryStatus.ACTIVE
        assert entry.is_active
        assert entry.is_admin

    def test_active_without_ledger_is_not_active(self):
        entry = RegistryEntry(email="a@b.c", status="Active")
        assert not entry.is_active

    def test_unknown_values_fall_back(self):
        entry = RegistryEntry(email="a@b.c", status="???", access_level="")
        assert entry.status == RegistryStatus.NONE
        assert entry.access_level == AccessLevel.USER
        assert RequestStatus.parse("") == RequestStatus.PENDING

    def test_cadence_aliases(self):
        assert Cadence.parse("Bi-Weekly") == Cadence.BIWEEKLY
        assert Cadence.parse("annual") == Cadence.YEARLY
        with pytest.raises(InputError, match="Unknown cadence: daily"):
            Cadence.parse("daily")


class TestLayout:
    """Tests for A1 ranges."""

    def test_column_letters(self):
        assert column_letter(1) == "A"
        assert column_letter(26) == "Z"
        assert column_letter(27) == "AA"

    def test_ranges_quote_tab_names(self):
        layout = SheetLayout()
        assert layout.transactions_range == "'Spending'!A2:E"
        assert layout.budget_value_cell(4) == "'Weekly Budget'!B4"
        assert SheetLayout(budget_sheet="Bob's Budget").budget_range == "'Bob''s Budget'!A2:B"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ACCESS_REQUESTED,
            description="Access requested",
        )
        assert event.event_type == AuditEventType.ACCESS_REQUESTED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.BUDGETS_UPDATED,
            description="Budgets updated",
            details={"categories": ["Grocery"]},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "budgets_updated"
        assert log_dict["details"]["categories"] == ["Grocery"]

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.batch_rejected(
            "user@example.com", "ledger-1", ["Record 2: bad date"],
        )
        row = event.to_sheets_row()
        assert len(row) == len(AUDIT_COLUMNS)
        assert row[2] == "batch_rejected"
        assert row[3] == "warning"
        assert "Record 2" in row[8]

    def test_audit_event_builder_access_approved(self):
        """Test AuditEventBuilder.access_approved."""
        event = AuditEventBuilder.access_approved("admin@example.com", "user@example.com", "User")
        assert event.actor == "admin@example.com"
        assert event.subject == "user@example.com"
        assert event.details == {"access_level": "User"}

    def test_audit_event_builder_transactions_appended(self):
        """Test AuditEventBuilder.transactions_appended."""
        correlation_id = uuid4()
        event = AuditEventBuilder.transactions_appended(
            "user@example.com", "ledger-1", 3, correlation_id,
        )
        assert event.event_type == AuditEventType.TRANSACTIONS_APPENDED
        assert event.correlation_id == correlation_id
        assert event.details["count"] == 3

    def test_external_service_error_is_error_severity(self):
        event = AuditEventBuilder.external_service_error("gemini", "rate limited", transient=True)
        assert event.severity == AuditSeverity.ERROR
        assert event.details["transient"] is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
