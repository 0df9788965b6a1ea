"""
Data Models Package

This package contains all Pydantic models used in Spend Tracker.
All data flowing through the system must conform to these schemas.
"""

from spend_tracker.models.transaction import (
    DocumentUpload,
    IngestionResult,
    ParsedDocument,
    ParseHints,
    Transaction,
    coerce_amount,
)
from spend_tracker.models.period import (
    Cadence,
    CategoryBudgetStatus,
    Period,
    PeriodComparison,
    PeriodSpending,
    SpendingSummary,
    SpendingTotals,
)
from spend_tracker.models.registry import (
    AccessLevel,
    AccessRequest,
    AccessState,
    OnboardingStatus,
    RegistryEntry,
    RegistryStatus,
    RequestStatus,
    SchemaCheck,
    normalize_email,
)
from spend_tracker.models.layout import (
    BUDGET_HEADERS,
    TRANSACTION_HEADERS,
    SheetLayout,
)
from spend_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "DocumentUpload",
    "IngestionResult",
    "ParsedDocument",
    "ParseHints",
    "Transaction",
    "coerce_amount",
    # Period models
    "Cadence",
    "CategoryBudgetStatus",
    "Period",
    "PeriodComparison",
    "PeriodSpending",
    "SpendingSummary",
    "SpendingTotals",
    # Registry models
    "AccessLevel",
    "AccessRequest",
    "AccessState",
    "OnboardingStatus",
    "RegistryEntry",
    "RegistryStatus",
    "RequestStatus",
    "SchemaCheck",
    "normalize_email",
    # Layout
    "BUDGET_HEADERS",
    "TRANSACTION_HEADERS",
    "SheetLayout",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
