"""
Error Taxonomy

Every error the core raises belongs to one of these families, so a caller
can decide what to do without inspecting messages:

- InputError: malformed payload, rejected before any external call
- NotOnboardedError: registry has no active ledger for the user
- ForbiddenError: caller lacks the required access level
- SchemaMismatchError: ledger exists but fails verification
- UpstreamTransientError: store/parser failure that may succeed on retry
- UpstreamPermanentError: misconfiguration or a failure retrying won't fix

DESIGN DECISION: The core never retries. It only makes the transient vs
permanent distinction visible. Retrying is the caller's job.
"""

from typing import Optional


class SpendTrackerError(Exception):
    """Base exception for all spend tracker errors."""
    pass


class InputError(SpendTrackerError):
    """Request payload is malformed."""

    def __init__(self, message: str, details: Optional[list[str]] = None):
        self.details = details or []
        super().__init__(message)


class NotOnboardedError(SpendTrackerError):
    """User is approved (or unknown) but has no active ledger."""

    def __init__(self, email: str, message: Optional[str] = None):
        self.email = email
        super().__init__(message or f"No active ledger registered for {email}")


class ForbiddenError(SpendTrackerError):
    """Caller is not allowed to perform this action."""
    pass


class NotAuthenticatedError(ForbiddenError):
    """No identity was supplied with the request."""

    def __init__(self, message: str = "Request has no authenticated user"):
        super().__init__(message)


class SchemaMismatchError(SpendTrackerError):
    """Ledger spreadsheet does not have the required sections/headers."""

    def __init__(self, reason: str, section: Optional[str] = None):
        self.reason = reason
        self.section = section
        super().__init__(reason)


class UpstreamError(SpendTrackerError):
    """An external collaborator (store, parser) failed."""

    transient: bool = False


class UpstreamTransientError(UpstreamError):
    """External call failed in a way that may succeed on retry."""

    transient = True


class UpstreamPermanentError(UpstreamError):
    """External call failed in a way that retrying will not fix."""

    transient = False
