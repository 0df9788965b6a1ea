"""
Access State Machine

Drives a user from "unknown email" to "active, verified ledger":

    unregistered --request_access--> request_pending
    request_pending --approve--> approved_inactive      (admin only)
    request_pending --reject--> rejected                (admin only)
    approved_inactive --complete_onboarding--> active   (schema verified)
    active --complete_onboarding--> active              (re-registration)

Every ledger operation goes through `admit`, which is the single gate
that turns an email into a trusted ledger id.

DESIGN DECISION: State is derived from the registry on every call, never
stored on this object. One AccessStateMachine (and one RegistryStore) is
created per request.
"""

from datetime import datetime
from typing import Callable, Optional, Union

import structlog

from spend_tracker.audit import AuditLogger
from spend_tracker.errors import (
    ForbiddenError,
    InputError,
    NotAuthenticatedError,
    NotOnboardedError,
    SchemaMismatchError,
    UpstreamPermanentError,
)
from spend_tracker.models.audit import utc_now
from spend_tracker.models.layout import SheetLayout
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
from spend_tracker.registry import RegistryStore, verify_schema
from spend_tracker.services.storage.interface import LedgerStoreInterface


logger = structlog.get_logger(__name__)

APPROVED_STATUSES = (RegistryStatus.INACTIVE, RegistryStatus.ACTIVE)
SPREADSHEET_URL = "https://docs.google.com/spreadsheets/d/{}"


def extract_ledger_id(value: Optional[str]) -> str:
    """Accept either a bare spreadsheet id or a full Google Sheets URL."""
    text = (value or "").strip()
    if "/d/" in text:
        text = text.split("/d/", 1)[1].split("/", 1)[0]
    return text.split("?", 1)[0].split("#", 1)[0]


class AccessStateMachine:
    """
    Access requests, admin decisions and ledger onboarding.

    Args:
        registry: Request-scoped registry view
        store: Storage backend used for ledger verification and copies
        layout: Tab names for schema verification
        audit: Audit logger (local-only when omitted)
        template_id: Ledger template copied by `create_ledger`
        service_account_email: Shown to users who share their own ledger
        allowed_emails: Optional allow-list for access requests
        clock: Returns the current UTC time
    """

    def __init__(
        self,
        registry: RegistryStore,
        store: LedgerStoreInterface,
        layout: Optional[SheetLayout] = None,
        audit: Optional[AuditLogger] = None,
        template_id: Optional[str] = None,
        service_account_email: Optional[str] = None,
        allowed_emails: Optional[list[str]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._registry = registry
        self._store = store
        self._layout = layout or SheetLayout()
        self._audit = audit or AuditLogger()
        self._template_id = template_id
        self._service_account_email = service_account_email
        self._allowed = {normalize_email(e) for e in (allowed_emails or []) if normalize_email(e)}
        self._clock = clock

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _require_identity(self, email: Optional[str]) -> str:
        key = normalize_email(email)
        if not key:
            await self._audit.log_access_denied(None, "unauthenticated")
            raise NotAuthenticatedError()
        return key

    async def _verify(self, email: Optional[str], ledger_id: str) -> SchemaCheck:
        check = await verify_schema(self._store, ledger_id, self._layout)
        if not check.ok:
            await self._audit.log_schema_verification_failed(
                email, ledger_id, check.reason or "", check.section,
            )
        return check

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def state(self, email: Optional[str]) -> AccessState:
        """Where `email` currently stands."""
        key = normalize_email(email)
        if not key:
            return AccessState.UNAUTHENTICATED

        entry = await self._registry.resolve(key)
        if entry is not None:
            if entry.is_active:
                return AccessState.ACTIVE
            if entry.status in APPROVED_STATUSES:
                return AccessState.APPROVED_INACTIVE
            if entry.status == RegistryStatus.REJECTED:
                return AccessState.REJECTED

        request = await self._registry.get_request(key)
        if request is not None:
            if request.status == RequestStatus.PENDING:
                return AccessState.REQUEST_PENDING
            if request.status == RequestStatus.REJECTED:
                return AccessState.REJECTED

        if entry is not None and entry.status == RegistryStatus.PENDING:
            return AccessState.REQUEST_PENDING
        return AccessState.UNREGISTERED

    async def onboarding_status(self, email: Optional[str], verify: bool = True) -> OnboardingStatus:
        """
        Summary for the onboarding screen.

        With `verify`, an active user's ledger is re-checked and the result
        is attached (a failing check does not change the state).
        """
        state = await self.state(email)
        entry = await self._registry.resolve(email) if state != AccessState.UNAUTHENTICATED else None
        check = None
        if verify and state == AccessState.ACTIVE and entry is not None:
            check = await self._verify(email, entry.ledger_id)
        return OnboardingStatus(
            email=normalize_email(email) or None,
            state=state,
            allowed=state in (AccessState.APPROVED_INACTIVE, AccessState.ACTIVE),
            onboarded=state == AccessState.ACTIVE,
            ledger_id=entry.ledger_id if entry is not None and entry.is_active else None,
            verify=check,
        )

    def onboarding_info(self) -> dict[str, Optional[str]]:
        """Template link and service account address for manual onboarding."""
        return {
            "template_url": SPREADSHEET_URL.format(self._template_id) if self._template_id else None,
            "service_account_email": self._service_account_email,
        }

    # =========================================================================
    # GATES
    # =========================================================================

    async def admit(self, email: Optional[str], verify: bool = False) -> RegistryEntry:
        """
        Resolve the caller's active registry entry.

        Raises:
            NotAuthenticatedError: No email
            ForbiddenError: Not approved (unknown, pending or rejected)
            NotOnboardedError: Approved but no active ledger yet
            SchemaMismatchError: With `verify`, the ledger failed verification
        """
        key = await self._require_identity(email)
        entry = await self._registry.resolve(key)
        if entry is None or entry.status not in APPROVED_STATUSES:
            await self._audit.log_access_denied(key, "not approved")
            raise ForbiddenError(f"{key} has not been approved for access")
        if not entry.is_active:
            raise NotOnboardedError(key)
        if verify:
            check = await self._verify(key, entry.ledger_id)
            if not check.ok:
                raise SchemaMismatchError(check.reason or "Ledger failed verification", check.section)
        return entry

    async def require_admin(self, email: Optional[str]) -> RegistryEntry:
        """
        Raises:
            ForbiddenError: Caller is not an approved admin
        """
        key = await self._require_identity(email)
        entry = await self._registry.resolve(key)
        if entry is None or not entry.is_admin or entry.status not in APPROVED_STATUSES:
            await self._audit.log_access_denied(key, "admin required")
            raise ForbiddenError(f"{key} is not an admin")
        return entry

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def request_access(self, email: Optional[str], notes: str = "") -> AccessRequest:
        """
        Ask for access. Idempotent.

        An existing request (pending, approved or rejected) is returned as
        is. An active user with no request row gets an unsaved Approved
        request back.
        """
        key = await self._require_identity(email)
        if self._allowed and key not in self._allowed:
            await self._audit.log_access_denied(key, "not on allow-list")
            raise ForbiddenError(f"{key} is not allowed to request access")

        existing = await self._registry.get_request(key)
        if existing is not None:
            return existing

        entry = await self._registry.resolve(key)
        if entry is not None and entry.is_active:
            return AccessRequest(
                email=entry.email,
                status=RequestStatus.APPROVED,
                requested_at=entry.created_at,
                notes=notes,
            )

        request = AccessRequest(
            email=email.strip(),
            status=RequestStatus.PENDING,
            requested_at=self._clock(),
            notes=notes,
        )
        await self._registry.add_request(request)
        await self._audit.log_access_requested(key, notes)
        logger.info("access_requested", email=key)
        return request

    async def approve(
        self,
        admin_email: Optional[str],
        email: Optional[str],
        level: Union[AccessLevel, str] = AccessLevel.USER,
    ) -> RegistryEntry:
        """
        Approve a user (admin only).

        The user's entry becomes Inactive with the given level; an already
        Active entry stays Active and only its level changes. The request
        row is marked Approved with a note naming the admin.
        """
        key = normalize_email(email)
        if not key:
            raise InputError("An email address is required")
        level = level if isinstance(level, AccessLevel) else AccessLevel.parse(level)
        admin = await self.require_admin(admin_email)
        now = self._clock()

        entry = await self._registry.resolve(key)
        if entry is not None and entry.status == RegistryStatus.ACTIVE:
            updated = entry.model_copy(update={"access_level": level})
        else:
            updated = RegistryEntry(
                email=entry.email if entry is not None else email.strip(),
                ledger_id=entry.ledger_id if entry is not None else "",
                status=RegistryStatus.INACTIVE,
                access_level=level,
                created_at=entry.created_at if entry is not None and entry.created_at else now,
                notes=entry.notes if entry is not None else "",
            )
        await self._registry.save_entry(updated)

        note = f"Approved by {admin.key} on {now.isoformat()}"
        request = await self._registry.get_request(key)
        if request is not None:
            await self._registry.update_request(
                request.model_copy(update={"status": RequestStatus.APPROVED, "notes": note})
            )
        else:
            await self._registry.add_request(AccessRequest(
                email=updated.email,
                status=RequestStatus.APPROVED,
                requested_at=now,
                notes=note,
            ))

        await self._audit.log_access_approved(admin.key, key, level.value)
        return updated

    async def reject(self, admin_email: Optional[str], email: Optional[str]) -> AccessRequest:
        """
        Reject a request (admin only). No registry entry is created.

        Raises:
            InputError: No email given, or the email has no access request
        """
        key = normalize_email(email)
        if not key:
            raise InputError("An email address is required")
        admin = await self.require_admin(admin_email)
        request = await self._registry.get_request(key)
        if request is None:
            raise InputError(f"No access request found for {key}")

        note = f"Rejected by {admin.key} on {self._clock().isoformat()}"
        rejected = request.model_copy(update={"status": RequestStatus.REJECTED, "notes": note})
        await self._registry.update_request(rejected)
        await self._audit.log_access_rejected(admin.key, key)
        return rejected

    async def pending_requests(self, admin_email: Optional[str]) -> list[AccessRequest]:
        await self.require_admin(admin_email)
        return await self._registry.pending_requests()

    async def complete_onboarding(self, email: Optional[str], ledger_id: Optional[str]) -> RegistryEntry:
        """
        Register a ledger for an approved user.

        The ledger must pass schema verification. Registering a different
        ledger for an active user replaces the old id.

        Raises:
            ForbiddenError: The user has not been approved
            InputError: No ledger id given
            SchemaMismatchError: The ledger failed verification
        """
        key = await self._require_identity(email)
        new_id = extract_ledger_id(ledger_id)
        if not new_id:
            raise InputError("A ledger spreadsheet id is required")

        entry = await self._registry.resolve(key)
        if entry is None or entry.status not in APPROVED_STATUSES:
            await self._audit.log_access_denied(key, "onboarding before approval")
            raise ForbiddenError(f"{key} has not been approved for access")

        check = await self._verify(key, new_id)
        if not check.ok:
            raise SchemaMismatchError(check.reason or "Ledger failed verification", check.section)

        replaced = entry.ledger_id if entry.ledger_id and entry.ledger_id != new_id else None
        active = entry.model_copy(update={"ledger_id": new_id, "status": RegistryStatus.ACTIVE})
        await self._registry.save_entry(active)
        await self._audit.log_onboarding_completed(key, new_id, replaced)
        return active

    async def create_ledger(self, email: Optional[str]) -> RegistryEntry:
        """
        Copy the ledger template for an approved user, share it, register it.

        A user who already has a verified active ledger gets it back unchanged.
        """
        key = await self._require_identity(email)
        entry = await self._registry.resolve(key)
        if entry is None or entry.status not in APPROVED_STATUSES:
            await self._audit.log_access_denied(key, "ledger creation before approval")
            raise ForbiddenError(f"{key} has not been approved for access")

        if entry.is_active and (await self._verify(key, entry.ledger_id)).ok:
            return entry

        if not self._template_id:
            raise UpstreamPermanentError("Ledger template spreadsheet id is not configured")

        ledger_id = await self._store.copy_document(self._template_id, f"Spending Tracker - {key}")
        await self._store.share_document(ledger_id, key)
        await self._audit.log_ledger_created(key, ledger_id)
        return await self.complete_onboarding(key, ledger_id)
