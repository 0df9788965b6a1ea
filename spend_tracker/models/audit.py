"""
Audit Models for Spend Tracker

Every decision about access and every write to a ledger is logged.
This provides:
1. Traceability of who approved whom, and when
2. Debugging information when an onboarding or import goes wrong
3. A record of each batch written to a user's ledger

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Access lifecycle
    ACCESS_REQUESTED = "access_requested"
    ACCESS_APPROVED = "access_approved"
    ACCESS_REJECTED = "access_rejected"
    ACCESS_DENIED = "access_denied"

    # Onboarding
    LEDGER_CREATED = "ledger_created"
    ONBOARDING_COMPLETED = "onboarding_completed"
    SCHEMA_VERIFICATION_FAILED = "schema_verification_failed"

    # Ledger writes
    TRANSACTIONS_APPENDED = "transactions_appended"
    BATCH_REJECTED = "batch_rejected"
    BUDGETS_UPDATED = "budgets_updated"

    # Document import
    DOCUMENTS_IMPORTED = "documents_imported"
    DOCUMENT_PARSE_FAILED = "document_parse_failed"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who did it, and to whom/what
    actor: Optional[str] = Field(
        default=None,
        description="Email of the user (or admin) who triggered the event"
    )
    subject: Optional[str] = Field(
        default=None,
        description="Email or ledger id the event is about"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one import request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "actor": self.actor,
            "subject": self.subject,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row for the audit tab.

        Columns follow models.layout.AUDIT_COLUMNS.
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.actor or "",
            self.subject or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.access_requested(email, notes)
        event = AuditEventBuilder.access_approved(admin, email, "User")
    """

    @staticmethod
    def access_requested(email: str, notes: str = "") -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_REQUESTED,
            actor=email,
            subject=email,
            description=f"Access requested by {email}",
            details={"notes": notes} if notes else {},
        )

    @staticmethod
    def access_approved(admin_email: str, email: str, access_level: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_APPROVED,
            actor=admin_email,
            subject=email,
            description=f"Access approved for {email} as {access_level}",
            details={"access_level": access_level},
        )

    @staticmethod
    def access_rejected(admin_email: str, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_REJECTED,
            actor=admin_email,
            subject=email,
            description=f"Access rejected for {email}",
        )

    @staticmethod
    def access_denied(email: Optional[str], reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_DENIED,
            severity=AuditSeverity.WARNING,
            actor=email,
            subject=email,
            description="Request denied",
            details={"reason": reason},
        )

    @staticmethod
    def ledger_created(email: str, ledger_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_CREATED,
            actor=email,
            subject=ledger_id,
            description=f"Ledger copied from template for {email}",
        )

    @staticmethod
    def onboarding_completed(email: str, ledger_id: str, replaced: Optional[str] = None) -> AuditEvent:
        details = {"previous_ledger_id": replaced} if replaced else {}
        return AuditEvent(
            event_type=AuditEventType.ONBOARDING_COMPLETED,
            actor=email,
            subject=ledger_id,
            description=f"Ledger registered and verified for {email}",
            details=details,
        )

    @staticmethod
    def schema_verification_failed(
        email: Optional[str],
        ledger_id: str,
        reason: str,
        section: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEMA_VERIFICATION_FAILED,
            severity=AuditSeverity.WARNING,
            actor=email,
            subject=ledger_id,
            description="Ledger failed schema verification",
            details={"section": section},
            error_message=reason,
        )

    @staticmethod
    def transactions_appended(
        email: str,
        ledger_id: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_APPENDED,
            actor=email,
            subject=ledger_id,
            correlation_id=correlation_id,
            description=f"Appended {count} transactions",
            details={"count": count},
        )

    @staticmethod
    def batch_rejected(
        email: Optional[str],
        ledger_id: Optional[str],
        problems: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_REJECTED,
            severity=AuditSeverity.WARNING,
            actor=email,
            subject=ledger_id,
            correlation_id=correlation_id,
            description=f"Transaction batch rejected with {len(problems)} problems",
            details={"problems": problems},
        )

    @staticmethod
    def budgets_updated(email: str, ledger_id: str, categories: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGETS_UPDATED,
            actor=email,
            subject=ledger_id,
            description=f"Updated {len(categories)} weekly budgets",
            details={"categories": categories},
        )

    @staticmethod
    def documents_imported(
        email: str,
        file_count: int,
        transaction_count: int,
        warning_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENTS_IMPORTED,
            actor=email,
            correlation_id=correlation_id,
            description=f"Parsed {file_count} documents into {transaction_count} transactions",
            details={
                "file_count": file_count,
                "transaction_count": transaction_count,
                "warning_count": warning_count,
            },
        )

    @staticmethod
    def document_parse_failed(
        email: str,
        filename: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_PARSE_FAILED,
            severity=AuditSeverity.WARNING,
            actor=email,
            correlation_id=correlation_id,
            description=f"Could not parse {filename}",
            details={"filename": filename},
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        transient: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
                "transient": transient,
            },
            correlation_id=correlation_id,
        )
