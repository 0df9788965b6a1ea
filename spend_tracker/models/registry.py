"""
Registry Models

The registry spreadsheet is the single source of truth for "who may use
the app, and where is their ledger". Two tabs:

- registry: one row per approved user (email, ledger id, status, access level)
- requests: one row per email that asked for access

DESIGN DECISION: Emails are compared case-insensitively and trimmed.
`normalize_email` is the only place that rule lives.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_email(email: Optional[str]) -> str:
    """Registry key for an email address."""
    return (email or "").strip().lower()


class RegistryStatus(str, Enum):
    """
    Lifecycle of a registry entry.

    The ledger id of an entry is only trusted once the status is ACTIVE.
    """
    NONE = ""
    PENDING = "Pending"
    INACTIVE = "Inactive"   # Approved by an admin, ledger not verified yet
    ACTIVE = "Active"       # Ledger registered and schema verified
    REJECTED = "Rejected"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RegistryStatus":
        text = (value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        # Rows written by the first onboarding flow
        if text in {"created", "registered", "verified", "approved"}:
            return cls.INACTIVE
        return cls.NONE


class AccessLevel(str, Enum):
    USER = "User"
    ADMIN = "Admin"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AccessLevel":
        text = (value or "").strip().lower()
        if text == cls.ADMIN.value.lower():
            return cls.ADMIN
        return cls.USER


class RequestStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @classmethod
    def parse(cls, value: Optional[str]) -> "RequestStatus":
        text = (value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.PENDING

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


class RegistryEntry(BaseModel):
    """One user's row in the registry tab."""
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., min_length=3, description="User email (unique, case-insensitive)")
    ledger_id: str = Field(default="", description="Spreadsheet id of the user's ledger")
    status: RegistryStatus = RegistryStatus.NONE
    access_level: AccessLevel = AccessLevel.USER
    created_at: Optional[datetime] = None
    notes: str = ""

    @field_validator('status', mode='before')
    @classmethod
    def parse_status(cls, v):
        return v if isinstance(v, RegistryStatus) else RegistryStatus.parse(v)

    @field_validator('access_level', mode='before')
    @classmethod
    def parse_access_level(cls, v):
        return v if isinstance(v, AccessLevel) else AccessLevel.parse(v)

    @property
    def key(self) -> str:
        return normalize_email(self.email)

    @property
    def is_active(self) -> bool:
        return self.status == RegistryStatus.ACTIVE and bool(self.ledger_id)

    @property
    def is_admin(self) -> bool:
        return self.access_level == AccessLevel.ADMIN


class AccessRequest(BaseModel):
    """One row in the requests tab."""
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., min_length=3)
    status: RequestStatus = RequestStatus.PENDING
    requested_at: Optional[datetime] = None
    notes: str = ""

    @field_validator('status', mode='before')
    @classmethod
    def parse_status(cls, v):
        return v if isinstance(v, RequestStatus) else RequestStatus.parse(v)

    @property
    def key(self) -> str:
        return normalize_email(self.email)


class SchemaCheck(BaseModel):
    """Result of verifying a ledger's structure."""

    ok: bool
    reason: Optional[str] = None
    section: Optional[str] = Field(
        default=None,
        description="Which section failed: 'transactions', 'budget' or None"
    )


class AccessState(str, Enum):
    """Where a user stands in the access/onboarding lifecycle."""
    UNAUTHENTICATED = "unauthenticated"
    UNREGISTERED = "unregistered"
    REQUEST_PENDING = "request_pending"
    REJECTED = "rejected"
    APPROVED_INACTIVE = "approved_inactive"
    ACTIVE = "active"


class OnboardingStatus(BaseModel):
    """What the onboarding screen needs to know about a user."""

    email: Optional[str] = None
    state: AccessState
    allowed: bool = Field(..., description="User has been approved")
    onboarded: bool = Field(..., description="User has an active, verified ledger")
    ledger_id: Optional[str] = None
    verify: Optional[SchemaCheck] = None
