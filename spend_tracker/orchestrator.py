"""
Main Orchestrator for Spend Tracker

This module ties together all the components and defines the
request-level flows:
1. Transactions (list, add, period summary, history)
2. Budgets (read derived budgets, update weekly amounts)
3. Document import (files -> parser -> cutoff -> normalize -> dedupe -> optional save)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every ledger operation is admitted through the AccessStateMachine first
- A batch is written whole or not at all
- Every write and every access decision is audited

Each call builds a fresh RegistryStore, so registry data is read once per
request and never cached across requests.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping, Optional, Union
from uuid import UUID

import structlog

from spend_tracker.access import AccessStateMachine
from spend_tracker.audit import AuditLogger, create_correlation_id
from spend_tracker.config import get_settings
from spend_tracker.dates import YEAR_INFERENCE_WINDOW_DAYS
from spend_tracker.errors import InputError, UpstreamError, UpstreamPermanentError
from spend_tracker.ingestion import TransactionIngestor
from spend_tracker.ledger import (
    LedgerRepository,
    budget_status,
    by_category,
    compare_periods,
    derive_budgets,
    filter_by_period,
    spending_history,
    top_categories,
    totals,
    validate_budgets,
)
from spend_tracker.models.audit import utc_now
from spend_tracker.models.layout import SheetLayout
from spend_tracker.models.period import Cadence, PeriodSpending, SpendingSummary
from spend_tracker.models.registry import RegistryEntry, normalize_email
from spend_tracker.models.transaction import (
    DocumentUpload,
    IngestionResult,
    ParseHints,
    Transaction,
)
from spend_tracker.periods import DEFAULT_PAYDAY, current_period
from spend_tracker.registry import RegistryStore
from spend_tracker.services.parser import DocumentParserInterface, GeminiDocumentParser
from spend_tracker.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    LedgerStoreInterface,
)


logger = structlog.get_logger(__name__)

DateLike = Union[date, datetime]


class FlowContext:
    """
    Everything the flows share: storage, registry location and app options.

    Args:
        store: Storage backend for ledgers and the registry
        registry_id: Spreadsheet id of the registry
        layout: Tab names
        audit_logger: Audit logger (local-only when omitted)
        template_id: Ledger template for create_ledger
        service_account_email: Shown during manual onboarding
        allowed_emails: Optional allow-list for access requests
        default_payday: Biweekly anchor when a caller passes none
        window_days: Year inference window for dates without a year
        top_categories_limit: How many categories a summary lists
        max_upload_bytes: Larger uploads are skipped with a warning
        supported_formats: File extensions accepted for import (any when omitted)
        clock: Returns the current UTC time
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        registry_id: Optional[str],
        layout: Optional[SheetLayout] = None,
        audit_logger: Optional[AuditLogger] = None,
        template_id: Optional[str] = None,
        service_account_email: Optional[str] = None,
        allowed_emails: Optional[list[str]] = None,
        default_payday: date = DEFAULT_PAYDAY,
        window_days: int = YEAR_INFERENCE_WINDOW_DAYS,
        top_categories_limit: int = 5,
        max_upload_bytes: Optional[int] = None,
        supported_formats: Optional[list[str]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.registry_id = registry_id
        self.layout = layout or SheetLayout()
        self.audit = audit_logger or AuditLogger()
        self.template_id = template_id
        self.service_account_email = service_account_email
        self.allowed_emails = allowed_emails or []
        self.default_payday = default_payday
        self.window_days = window_days
        self.top_categories_limit = top_categories_limit
        self.max_upload_bytes = max_upload_bytes
        self.supported_formats = [f.lower().lstrip(".") for f in supported_formats or []]
        self.clock = clock

    def access(self) -> AccessStateMachine:
        """A state machine over a fresh (request-scoped) registry view."""
        registry = RegistryStore(self.store, self.registry_id, self.layout)
        return AccessStateMachine(
            registry,
            self.store,
            layout=self.layout,
            audit=self.audit,
            template_id=self.template_id,
            service_account_email=self.service_account_email,
            allowed_emails=self.allowed_emails,
            clock=self.clock,
        )

    def ingestor(self, today: Optional[DateLike] = None) -> TransactionIngestor:
        return TransactionIngestor(today, self.window_days)

    def repository(self, today: Optional[DateLike] = None) -> LedgerRepository:
        return LedgerRepository(self.store, self.layout, self.ingestor(today))

    async def admit(self, email: Optional[str], verify: bool = False) -> RegistryEntry:
        return await self.access().admit(email, verify=verify)

    async def report_upstream(self, error: UpstreamError, service: str, correlation_id: Optional[UUID] = None) -> None:
        await self.audit.log_external_service_error(service, str(error), error.transient, correlation_id)


class TransactionFlow:
    """
    Reading and appending transactions, and the dashboard summary.

    Flow for add_transactions:
    1. Validate → the whole batch, one InputError listing every problem
    2. Admit → resolve the caller's active ledger
    3. Append → sanitized rows at the end of the Spending tab
    4. Audit

    Payload problems (bad batch, unknown cadence, bad count) are raised as
    InputError before the registry or ledger is touched.
    """

    def __init__(self, context: FlowContext):
        self._context = context

    async def list_transactions(self, email: Optional[str]) -> list[Transaction]:
        entry = await self._context.admit(email)
        return await self._context.repository().read_transactions(entry.ledger_id)

    async def add_transactions(
        self,
        email: Optional[str],
        candidates: Iterable[Union[Transaction, Mapping[str, Any]]],
        today: Optional[DateLike] = None,
    ) -> int:
        """
        Append a batch to the caller's ledger.

        Returns:
            Number of rows written

        Raises:
            InputError: Batch empty or any record invalid (nothing written)
        """
        correlation_id = create_correlation_id()
        try:
            batch = self._context.ingestor(today).validate_batch(candidates)
        except InputError as e:
            await self._context.audit.log_batch_rejected(
                normalize_email(email) or None, None, e.details or [str(e)], correlation_id,
            )
            raise

        entry = await self._context.admit(email)
        try:
            count = await self._context.repository(today).append_transactions(entry.ledger_id, batch)
        except UpstreamError as e:
            await self._context.report_upstream(e, "ledger_store", correlation_id)
            raise

        await self._context.audit.log_transactions_appended(entry.key, entry.ledger_id, count, correlation_id)
        return count

    async def summary(
        self,
        email: Optional[str],
        cadence: Union[Cadence, str] = Cadence.BIWEEKLY,
        now: Optional[DateLike] = None,
        anchor: Optional[DateLike] = None,
    ) -> SpendingSummary:
        """
        Totals, top categories, previous-period comparison and budget meter
        for the window of `cadence` containing `now`.
        """
        cadence = Cadence.parse(cadence)
        now = now or self._context.clock()
        anchor = anchor or self._context.default_payday

        entry = await self._context.admit(email)
        repository = self._context.repository(now)
        transactions = await repository.read_transactions(entry.ledger_id)
        budgets = await repository.read_budgets(entry.ledger_id)

        period = current_period(cadence, now, anchor)
        in_period = filter_by_period(transactions, period, now, self._context.window_days)
        return SpendingSummary(
            period=period,
            totals=totals(in_period),
            top_categories=top_categories(by_category(in_period), self._context.top_categories_limit),
            comparison=compare_periods(transactions, period, now, self._context.window_days),
            budget_status=budget_status(in_period, budgets, cadence),
        )

    async def history(
        self,
        email: Optional[str],
        cadence: Union[Cadence, str] = Cadence.BIWEEKLY,
        count: int = 6,
        now: Optional[DateLike] = None,
        anchor: Optional[DateLike] = None,
    ) -> list[PeriodSpending]:
        """Spending per window for the last `count` windows, oldest first."""
        cadence = Cadence.parse(cadence)
        if count < 1:
            raise InputError(f"History needs at least one period, got {count}")
        now = now or self._context.clock()
        entry = await self._context.admit(email)
        transactions = await self._context.repository(now).read_transactions(entry.ledger_id)
        return spending_history(
            transactions,
            cadence,
            now,
            count,
            anchor or self._context.default_payday,
            self._context.window_days,
        )


class BudgetFlow:
    """Weekly budgets stored in the ledger, derived to any cadence on read."""

    def __init__(self, context: FlowContext):
        self._context = context

    async def get_budgets(
        self,
        email: Optional[str],
        cadence: Union[Cadence, str] = Cadence.WEEKLY,
    ) -> dict[str, Decimal]:
        cadence = Cadence.parse(cadence)
        entry = await self._context.admit(email)
        weekly = await self._context.repository().read_budgets(entry.ledger_id)
        return derive_budgets(weekly, cadence)

    async def update_budgets(
        self,
        email: Optional[str],
        budgets: Mapping[str, Any],
    ) -> dict[str, list[str]]:
        """
        Set weekly amounts. Existing categories are overwritten in place,
        new ones appended.
        """
        cleaned = validate_budgets(budgets)
        entry = await self._context.admit(email)
        try:
            result = await self._context.repository().update_budgets(entry.ledger_id, cleaned)
        except UpstreamError as e:
            await self._context.report_upstream(e, "ledger_store")
            raise
        await self._context.audit.log_budgets_updated(
            entry.key,
            entry.ledger_id,
            result["updated"] + result["added"],
        )
        return result


class DocumentImportFlow:
    """
    Orchestrates statement/receipt import.

    Flow:
    1. Check → files present, parser configured, cutoff date readable
    2. Admit → caller must have an active ledger
    3. Parse → each file independently; a failing file becomes a warning
    4. Cutoff → drop transactions before the hinted cutoff date
    5. Normalize → dates to MM/DD/YYYY, unparsable ones flagged
    6. Dedupe
    7. Save (optional) → only if nothing needs manual correction

    Confidence is the mean over every uploaded file; a file that was
    skipped or failed to parse counts as 0.
    """

    def __init__(self, context: FlowContext, parser: Optional[DocumentParserInterface] = None):
        self._context = context
        self._parser = parser

    async def import_documents(
        self,
        email: Optional[str],
        uploads: list[DocumentUpload],
        hints: Optional[ParseHints] = None,
        save: bool = False,
        today: Optional[DateLike] = None,
    ) -> IngestionResult:
        """
        Parse uploaded documents into one normalized, deduplicated batch.

        Raises:
            InputError: No files, an unreadable cutoff date, or `save`
                        requested while some records still need correction
            UpstreamPermanentError: No parser configured
        """
        if not uploads:
            raise InputError("No documents uploaded")
        if self._parser is None:
            raise UpstreamPermanentError("Document parser is not configured")
        hints = hints or ParseHints()
        ingestor = self._context.ingestor(today)
        ingestor.parse_cutoff(hints.cutoff_date)

        entry = await self._context.admit(email)
        correlation_id = create_correlation_id()
        warnings: list[str] = []
        candidates: list[Transaction] = []
        confidences: list[float] = []

        for upload in uploads:
            limit = self._context.max_upload_bytes
            if limit is not None and len(upload.content) > limit:
                warnings.append(f"Error processing {upload.filename}: file exceeds {limit} bytes")
                continue
            extension = upload.filename.rpartition(".")[2].lower()
            if self._context.supported_formats and extension not in self._context.supported_formats:
                warnings.append(f"Error processing {upload.filename}: unsupported file type")
                continue
            try:
                parsed = await self._parser.extract_transactions(upload.content, upload.mime_type, hints)
            except Exception as e:
                logger.warning("document_parse_failed", filename=upload.filename, error=str(e), error_type=type(e).__name__)
                warnings.append(f"Error processing {upload.filename}: {e}")
                await self._context.audit.log_document_parse_failed(
                    entry.key, upload.filename, str(e), correlation_id,
                )
                continue

            confidences.append(parsed.confidence)
            warnings.extend(parsed.warnings)
            for transaction in parsed.transactions:
                if hints.credit_card and not transaction.credit_card:
                    transaction = transaction.model_copy(update={"credit_card": hints.credit_card})
                candidates.append(transaction)

        kept = ingestor.apply_cutoff(candidates, hints.cutoff_date)
        normalized = ingestor.normalize(kept)
        result = normalized.model_copy(update={
            "warnings": warnings + normalized.warnings,
            "confidence": sum(confidences) / len(uploads),
        })

        await self._context.audit.log_documents_imported(
            entry.key,
            len(uploads),
            len(result.transactions),
            len(result.warnings),
            correlation_id,
        )

        if save and result.transactions:
            if result.rejected:
                raise InputError(
                    "Some imported transactions need correction before saving",
                    details=[f"Could not parse date \"{t.date}\" ({t.description})" for t in result.rejected],
                )
            count = await self._context.repository(today).append_transactions(entry.ledger_id, result.transactions)
            await self._context.audit.log_transactions_appended(entry.key, entry.ledger_id, count, correlation_id)

        return result


def create_app_components(
    use_parser: bool = True,
) -> tuple[FlowContext, TransactionFlow, BudgetFlow, DocumentImportFlow]:
    """
    Factory function to create all application components from settings.

    Args:
        use_parser: Whether to initialize the Gemini parser.
                    Set to False to run without a Gemini API key.

    Returns:
        (context, transaction_flow, budget_flow, document_import_flow)
    """
    settings = get_settings()
    sheets = settings.google_sheets
    app = settings.app

    layout = SheetLayout.from_settings(sheets)
    store = GoogleSheetsLedgerStore(GoogleSheetsClient(sheets.credentials_path))
    audit_storage = GoogleSheetsAuditStorage(store, sheets.registry_spreadsheet_id, layout)

    context = FlowContext(
        store,
        sheets.registry_spreadsheet_id,
        layout=layout,
        audit_logger=AuditLogger(audit_storage),
        template_id=sheets.template_spreadsheet_id,
        service_account_email=sheets.service_account_email,
        allowed_emails=app.allowed_emails_list,
        default_payday=app.default_payday,
        window_days=app.year_inference_window_days,
        top_categories_limit=app.top_categories_limit,
        max_upload_bytes=app.max_upload_size_bytes,
        supported_formats=app.supported_formats_list,
    )

    parser = GeminiDocumentParser() if use_parser else None
    logger.info(
        "app_components_created",
        environment=app.app_environment,
        parser=use_parser,
        debug=app.debug_mode,
    )

    return (
        context,
        TransactionFlow(context),
        BudgetFlow(context),
        DocumentImportFlow(context, parser),
    )
