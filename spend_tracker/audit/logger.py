"""
Audit Logger

DESIGN DECISION: Every access decision and every ledger write is logged.
This provides:
1. Traceability of who approved whom
2. Debugging capability when onboarding or imports go wrong
3. A record of what was written to each ledger

The audit logger:
- Always logs locally through structlog
- Optionally persists events to the registry spreadsheet's audit tab
- Never raises: a failed audit write must not fail the user's request
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from spend_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from spend_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit tab of the registry (for persistence), if storage is given
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("spend_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # Access lifecycle

    async def log_access_requested(self, email: str, notes: str = "") -> None:
        await self.log(AuditEventBuilder.access_requested(email, notes))

    async def log_access_approved(self, admin_email: str, email: str, access_level: str) -> None:
        await self.log(AuditEventBuilder.access_approved(admin_email, email, access_level))

    async def log_access_rejected(self, admin_email: str, email: str) -> None:
        await self.log(AuditEventBuilder.access_rejected(admin_email, email))

    async def log_access_denied(self, email: Optional[str], reason: str) -> None:
        await self.log(AuditEventBuilder.access_denied(email, reason))

    # Onboarding

    async def log_ledger_created(self, email: str, ledger_id: str) -> None:
        await self.log(AuditEventBuilder.ledger_created(email, ledger_id))

    async def log_onboarding_completed(
        self,
        email: str,
        ledger_id: str,
        replaced: Optional[str] = None,
    ) -> None:
        """Log a verified ledger registration (`replaced` = previous ledger id)."""
        await self.log(AuditEventBuilder.onboarding_completed(email, ledger_id, replaced))

    async def log_schema_verification_failed(
        self,
        email: Optional[str],
        ledger_id: str,
        reason: str,
        section: Optional[str],
    ) -> None:
        await self.log(AuditEventBuilder.schema_verification_failed(email, ledger_id, reason, section))

    # Ledger writes

    async def log_transactions_appended(
        self,
        email: str,
        ledger_id: str,
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transactions_appended(email, ledger_id, count, correlation_id))

    async def log_batch_rejected(
        self,
        email: Optional[str],
        ledger_id: Optional[str],
        problems: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.batch_rejected(email, ledger_id, problems, correlation_id))

    async def log_budgets_updated(self, email: str, ledger_id: str, categories: list[str]) -> None:
        await self.log(AuditEventBuilder.budgets_updated(email, ledger_id, categories))

    # Document import

    async def log_documents_imported(
        self,
        email: str,
        file_count: int,
        transaction_count: int,
        warning_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.documents_imported(
            email, file_count, transaction_count, warning_count, correlation_id,
        ))

    async def log_document_parse_failed(
        self,
        email: str,
        filename: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.document_parse_failed(email, filename, error_message, correlation_id))

    # Errors

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        transient: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            transient=transient,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g. a document import) and
    pass it through all subsequent operations.
    """
    return uuid4()
