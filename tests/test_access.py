"""Tests for the registry store and the access state machine."""

import asyncio

import pytest

from spend_tracker.errors import (
    ForbiddenError,
    InputError,
    NotAuthenticatedError,
    NotOnboardedError,
    SchemaMismatchError,
    UpstreamPermanentError,
)
from spend_tracker.models import AccessLevel, AccessState, RegistryStatus, RequestStatus
from spend_tracker.access import extract_ledger_id
from spend_tracker.registry import RegistryStore

from conftest import ADMIN, LEDGER_ID, REGISTRY_ID, USER, ledger_sheets


NEWCOMER = "New.Person@Example.com"


def requests_rows(store):
    return store.documents[REGISTRY_ID]["requests"][1:]


def registry_rows(store):
    return store.documents[REGISTRY_ID]["registry"][1:]


class TestRegistryStore:
    """Indexed, load-once registry access."""

    def test_resolve_is_case_insensitive(self, store):
        registry = RegistryStore(store, REGISTRY_ID)
        entry = asyncio.run(registry.resolve("  USER@Example.com "))
        assert entry.ledger_id == LEDGER_ID
        assert entry.is_active

    def test_reads_each_tab_once(self, store):
        registry = RegistryStore(store, REGISTRY_ID)

        async def lookups():
            await registry.resolve(USER)
            await registry.resolve(ADMIN)
            await registry.get_request(USER)

        asyncio.run(lookups())
        reads = [call for call in store.calls if call[0] == "read_range"]
        assert len(reads) == 2

    def test_refresh_sees_outside_edits(self, store):
        registry = RegistryStore(store, REGISTRY_ID)
        assert asyncio.run(registry.resolve("late@example.com")) is None
        store.documents[REGISTRY_ID]["registry"].append(["late@example.com", "", "Inactive", "User", "", ""])
        assert asyncio.run(registry.resolve("late@example.com")) is None
        asyncio.run(registry.refresh())
        assert asyncio.run(registry.resolve("late@example.com")) is not None

    def test_missing_registry_id_is_permanent_error(self, store):
        with pytest.raises(UpstreamPermanentError):
            asyncio.run(RegistryStore(store, None).resolve(USER))

    def test_legacy_status_reads_as_inactive(self, store):
        store.documents[REGISTRY_ID]["registry"].append(["old@example.com", "x", "verified", "", "", ""])
        entry = asyncio.run(RegistryStore(store, REGISTRY_ID).resolve("old@example.com"))
        assert entry.status == RegistryStatus.INACTIVE


class TestRequestAccess:
    """Access requests."""

    def test_creates_pending_request(self, context, store):
        request = asyncio.run(context.access().request_access(NEWCOMER, "please"))
        assert request.status == RequestStatus.PENDING
        assert len(requests_rows(store)) == 1
        assert requests_rows(store)[0][1] == "Pending"

    def test_twice_is_idempotent(self, context, store):
        """Requesting twice gives the same pending request and one row."""
        first = asyncio.run(context.access().request_access(NEWCOMER))
        second = asyncio.run(context.access().request_access(NEWCOMER.lower()))
        assert first.status == second.status == RequestStatus.PENDING
        assert len(requests_rows(store)) == 1

    def test_active_user_gets_unsaved_approved_request(self, context, store):
        request = asyncio.run(context.access().request_access(USER))
        assert request.status == RequestStatus.APPROVED
        assert requests_rows(store) == []

    def test_unauthenticated(self, context):
        with pytest.raises(NotAuthenticatedError):
            asyncio.run(context.access().request_access(None))

    def test_allow_list(self, context):
        context.allowed_emails = ["someone@example.com"]
        with pytest.raises(ForbiddenError):
            asyncio.run(context.access().request_access(NEWCOMER))

    def test_state_progression(self, context):
        assert asyncio.run(context.access().state(None)) == AccessState.UNAUTHENTICATED
        assert asyncio.run(context.access().state(NEWCOMER)) == AccessState.UNREGISTERED
        asyncio.run(context.access().request_access(NEWCOMER))
        assert asyncio.run(context.access().state(NEWCOMER)) == AccessState.REQUEST_PENDING
        asyncio.run(context.access().approve(ADMIN, NEWCOMER))
        assert asyncio.run(context.access().state(NEWCOMER)) == AccessState.APPROVED_INACTIVE
        assert asyncio.run(context.access().state(USER)) == AccessState.ACTIVE


class TestAdminDecisions:
    """Approve / reject."""

    def test_approve_creates_inactive_entry(self, context, store):
        asyncio.run(context.access().request_access(NEWCOMER))
        entry = asyncio.run(context.access().approve(ADMIN, NEWCOMER, "User"))
        assert entry.status == RegistryStatus.INACTIVE
        assert entry.access_level == AccessLevel.USER

        request_row = requests_rows(store)[0]
        assert request_row[1] == "Approved"
        assert request_row[3].startswith(f"Approved by {ADMIN} on ")
        assert registry_rows(store)[-1][2] == "Inactive"

    def test_approve_active_user_keeps_active(self, context):
        entry = asyncio.run(context.access().approve(ADMIN, USER, AccessLevel.ADMIN))
        assert entry.status == RegistryStatus.ACTIVE
        assert entry.is_admin
        assert entry.ledger_id == LEDGER_ID

    def test_non_admin_cannot_approve(self, context):
        with pytest.raises(ForbiddenError):
            asyncio.run(context.access().approve(USER, NEWCOMER))

    def test_reject(self, context, store):
        asyncio.run(context.access().request_access(NEWCOMER))
        rejected = asyncio.run(context.access().reject(ADMIN, NEWCOMER))
        assert rejected.status == RequestStatus.REJECTED
        assert asyncio.run(context.access().state(NEWCOMER)) == AccessState.REJECTED
        assert len(registry_rows(store)) == 2

    def test_reject_without_request(self, context):
        with pytest.raises(InputError):
            asyncio.run(context.access().reject(ADMIN, NEWCOMER))

    def test_rejected_request_returned_idempotently(self, context):
        asyncio.run(context.access().request_access(NEWCOMER))
        asyncio.run(context.access().reject(ADMIN, NEWCOMER))
        again = asyncio.run(context.access().request_access(NEWCOMER))
        assert again.status == RequestStatus.REJECTED

    def test_missing_target_email_checked_first(self, context, store):
        with pytest.raises(InputError):
            asyncio.run(context.access().approve(ADMIN, ""))
        with pytest.raises(InputError):
            asyncio.run(context.access().reject(ADMIN, "   "))
        assert store.calls == []

    def test_pending_requests_admin_only(self, context):
        asyncio.run(context.access().request_access(NEWCOMER))
        pending = asyncio.run(context.access().pending_requests(ADMIN))
        assert [r.email for r in pending] == [NEWCOMER]
        with pytest.raises(ForbiddenError):
            asyncio.run(context.access().pending_requests(USER))


class TestOnboarding:
    """Ledger registration and the admission gate."""

    def _approve(self, context):
        asyncio.run(context.access().request_access(NEWCOMER))
        asyncio.run(context.access().approve(ADMIN, NEWCOMER))

    def test_complete_onboarding(self, context, store):
        self._approve(context)
        store.add_document("new-ledger", ledger_sheets())
        entry = asyncio.run(context.access().complete_onboarding(
            NEWCOMER, "https://docs.google.com/spreadsheets/d/new-ledger/edit#gid=0",
        ))
        assert entry.status == RegistryStatus.ACTIVE
        assert entry.ledger_id == "new-ledger"
        admitted = asyncio.run(context.access().admit(NEWCOMER, verify=True))
        assert admitted.ledger_id == "new-ledger"

    def test_onboarding_rejects_bad_ledger(self, context, store):
        self._approve(context)
        sheets = ledger_sheets()
        sheets["Weekly Budget"][0] = ["Category", "Values"]
        store.add_document("bad-ledger", sheets)
        with pytest.raises(SchemaMismatchError) as exc:
            asyncio.run(context.access().complete_onboarding(NEWCOMER, "bad-ledger"))
        assert exc.value.section == "budget"
        assert asyncio.run(context.access().state(NEWCOMER)) == AccessState.APPROVED_INACTIVE

    def test_onboarding_requires_approval(self, context, store):
        store.add_document("new-ledger", ledger_sheets())
        with pytest.raises(ForbiddenError):
            asyncio.run(context.access().complete_onboarding(NEWCOMER, "new-ledger"))

    def test_onboarding_requires_ledger_id(self, context, store):
        self._approve(context)
        store.calls.clear()
        with pytest.raises(InputError):
            asyncio.run(context.access().complete_onboarding(NEWCOMER, "  "))
        assert store.calls == []

    def test_create_ledger_copies_and_shares_template(self, context, store):
        self._approve(context)
        entry = asyncio.run(context.access().create_ledger(NEWCOMER))
        assert entry.is_active
        assert entry.ledger_id.startswith("copy-")
        assert store.shares == [(entry.ledger_id, NEWCOMER.lower(), "writer")]

    def test_create_ledger_returns_existing(self, context, store):
        entry = asyncio.run(context.access().create_ledger(USER))
        assert entry.ledger_id == LEDGER_ID
        assert store.shares == []

    def test_admit_errors(self, context):
        with pytest.raises(NotAuthenticatedError):
            asyncio.run(context.access().admit(""))
        with pytest.raises(ForbiddenError):
            asyncio.run(context.access().admit(NEWCOMER))
        self._approve(context)
        with pytest.raises(NotOnboardedError):
            asyncio.run(context.access().admit(NEWCOMER))

    def test_onboarding_status(self, context):
        status = asyncio.run(context.access().onboarding_status(USER))
        assert status.onboarded and status.allowed
        assert status.verify.ok
        status = asyncio.run(context.access().onboarding_status(NEWCOMER))
        assert not status.allowed
        assert status.state == AccessState.UNREGISTERED

    def test_onboarding_info(self, context):
        info = context.access().onboarding_info()
        assert info["template_url"] == "https://docs.google.com/spreadsheets/d/ledger-template"
        assert info["service_account_email"].endswith("iam.gserviceaccount.com")

    def test_extract_ledger_id(self):
        assert extract_ledger_id(" abc123 ") == "abc123"
        assert extract_ledger_id("https://docs.google.com/spreadsheets/d/abc123/edit") == "abc123"
