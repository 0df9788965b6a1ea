"""Tests for the storage, parser and retry services (no network)."""

import asyncio
from datetime import date

import gspread
import pytest
import requests
from google.auth import exceptions as auth_exceptions

from spend_tracker.errors import (
    UpstreamPermanentError,
    UpstreamTransientError,
)
from spend_tracker.models import AuditEventBuilder, ParseHints
from spend_tracker.services.parser import build_prompt, parse_response_text
from spend_tracker.services.retry import retry_transient
from spend_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStore,
    classify_api_error,
)
from spend_tracker.services.storage.memory import parse_cells, split_range


class FakeResponse:
    """Just enough of requests.Response for gspread.exceptions.APIError."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        self.text = "error"

    def json(self):
        return {"error": {"code": self.status_code, "message": "error", "status": "ERROR"}}


class TestErrorClassification:
    """Google API failures map onto transient / permanent."""

    def test_rate_limit_is_transient(self):
        error = gspread.exceptions.APIError(FakeResponse(429))
        assert isinstance(classify_api_error(error, "read"), UpstreamTransientError)

    def test_forbidden_is_permanent(self):
        error = gspread.exceptions.APIError(FakeResponse(403))
        assert isinstance(classify_api_error(error, "read"), UpstreamPermanentError)

    def test_not_found_is_permanent(self):
        error = gspread.exceptions.SpreadsheetNotFound()
        assert isinstance(classify_api_error(error, "open"), UpstreamPermanentError)

    def test_connection_drop_is_transient(self):
        error = requests.exceptions.ConnectionError("reset")
        assert isinstance(classify_api_error(error, "append"), UpstreamTransientError)

    def test_expired_credentials_are_permanent(self):
        error = auth_exceptions.RefreshError("invalid_grant: token expired")
        classified = classify_api_error(error, "Reading metadata of ledger")
        assert isinstance(classified, UpstreamPermanentError)
        assert "invalid_grant" in str(classified)

    def test_auth_transport_failure_is_transient(self):
        error = auth_exceptions.TransportError("connection reset")
        assert isinstance(classify_api_error(error, "open"), UpstreamTransientError)

    def test_anything_else_is_permanent(self):
        assert isinstance(classify_api_error(RuntimeError("?"), "x"), UpstreamPermanentError)


class TestInMemoryStore:
    """A1 handling of the in-memory backend."""

    def test_split_range(self):
        assert split_range("'Weekly Budget'!A2:B") == ("Weekly Budget", "A2:B")
        assert split_range("'Bob''s'!b4") == ("Bob's", "B4")

    def test_parse_cells(self):
        assert parse_cells("A2:E") == (1, 2, 5, None)
        assert parse_cells("A:E") == (1, None, 5, None)
        assert parse_cells("B4") == (2, 4, 2, 4)

    def test_read_trims_trailing_blank_rows(self):
        store = InMemoryLedgerStore({"doc": {"Tab": [["h"], ["a", "b"], ["", ""]]}})
        assert asyncio.run(store.read_range("doc", "'Tab'!A2:B")) == [["a", "b"]]

    def test_missing_sheet_is_permanent(self):
        store = InMemoryLedgerStore({"doc": {"Tab": []}})
        with pytest.raises(UpstreamPermanentError):
            asyncio.run(store.read_range("doc", "'Other'!A1:B1"))

    def test_audit_storage_rows(self):
        storage = InMemoryAuditStorage()
        event = AuditEventBuilder.access_requested("user@example.com")
        assert asyncio.run(storage.append_event(event))
        assert storage.rows[-1][2] == "access_requested"


class TestParserResponse:
    """Turning model replies into ParsedDocument."""

    def test_json_inside_prose(self):
        text = 'Here you go:\n```json\n{"transactions": [{"date": "1/2", "description": "Cafe", ' \
               '"amount": "4.50", "creditCard": "Visa"}], "confidence": 0.9}\n```'
        parsed = parse_response_text(text)
        assert parsed.transactions[0].credit_card == "Visa"
        assert parsed.confidence == 0.9

    def test_no_json(self):
        with pytest.raises(UpstreamPermanentError):
            parse_response_text("I could not read this image")

    def test_malformed_json(self):
        with pytest.raises(UpstreamPermanentError):
            parse_response_text('{"transactions": [}')

    def test_prompt_includes_hints(self):
        prompt = build_prompt(ParseHints(credit_card="Amex", cutoff_date="02/01/2026"), date(2026, 2, 10))
        assert "Amex" in prompt
        assert "from 02/01/2026 onwards" in prompt
        assert "assume it is 2026" in prompt

    def test_prompt_without_hints(self):
        assert "onwards" not in build_prompt(today=date(2026, 2, 10))


class TestRetryTransient:
    """Caller-side retries."""

    def test_transient_failure_is_retried(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise UpstreamTransientError("429")
            return "ok"

        result = asyncio.run(retry_transient(flaky, attempts=3, min_wait=0, max_wait=0))
        assert result == "ok"
        assert len(calls) == 3

    def test_permanent_failure_is_not_retried(self):
        calls = []

        async def broken():
            calls.append(1)
            raise UpstreamPermanentError("bad id")

        with pytest.raises(UpstreamPermanentError):
            asyncio.run(retry_transient(broken, min_wait=0, max_wait=0))
        assert len(calls) == 1

    def test_last_error_reraised(self):
        async def down():
            raise UpstreamTransientError("503")

        with pytest.raises(UpstreamTransientError):
            asyncio.run(retry_transient(down, attempts=2, min_wait=0, max_wait=0))
