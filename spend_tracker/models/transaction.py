"""
Core Data Models for Spend Tracker

These models define the schemas for all data flowing through the system.
They are designed to:
1. Parse raw spreadsheet cells and parser output exactly once, at the boundary
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Money is Decimal everywhere. Raw cells are messy
("$1,234.50", "", "N/A") so the amount is coerced rather than rejected:
anything that is not a finite number becomes 0.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


ZERO = Decimal("0")


def coerce_amount(value: Any) -> Decimal:
    """
    Coerce a raw amount into a finite Decimal.

    Strips currency symbols, thousands separators and whitespace.
    Accounting-style negatives "(12.50)" become -12.50.
    Unparsable, NaN and infinite values become 0.
    """
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        text = str(value).strip().replace("$", "").replace(",", "").replace(" ", "")
        negative = text.startswith("(") and text.endswith(")")
        if negative:
            text = text[1:-1]
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return ZERO
        if negative:
            amount = -amount

    if not amount.is_finite() or not math.isfinite(float(amount)):
        return ZERO
    return amount


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A single spending record.

    The date is kept as a string: canonical MM/DD/YYYY once normalized,
    otherwise the raw text so a human can correct it. Transactions are
    never mutated in place, edits replace the whole batch.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        frozen=True,
        populate_by_name=True,
    )

    date: str = Field(
        default="",
        description="Canonical MM/DD/YYYY date, or the raw string if unparsable"
    )
    description: str = Field(
        default="",
        max_length=500,
        description="Merchant or free-text description"
    )
    amount: Decimal = Field(
        default=ZERO,
        description="Signed amount, positive = expense"
    )
    category: str = Field(
        default="",
        max_length=100,
        description="Spending category (matches a budget category)"
    )
    credit_card: str = Field(
        default="",
        alias="creditCard",
        max_length=100,
        description="Card or account the purchase was made with"
    )
    status: str = ""
    notes: str = ""

    @field_validator('amount', mode='before')
    @classmethod
    def validate_amount(cls, v: Any) -> Decimal:
        return coerce_amount(v)

    @field_validator(
        'date', 'description', 'category', 'credit_card', 'status', 'notes',
        mode='before',
    )
    @classmethod
    def validate_text(cls, v: Any) -> str:
        """Spreadsheet cells come back as numbers or None as often as strings."""
        if v is None:
            return ""
        return str(v)


class IngestionResult(BaseModel):
    """
    Outcome of normalizing a batch of candidate transactions.

    Records with unparsable dates stay in `transactions` (with their raw
    date) and are listed in `rejected` so the caller can ask for a fix.
    """

    transactions: list[Transaction] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="One human-readable warning per problem record or file"
    )
    rejected: list[Transaction] = Field(
        default_factory=list,
        description="Records that need manual correction before they can be stored"
    )
    duplicates_removed: int = Field(default=0, ge=0)
    confidence: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Average parser confidence when the batch came from documents"
    )

    @property
    def is_clean(self) -> bool:
        return not self.rejected


# =============================================================================
# DOCUMENT PARSING MODELS
# =============================================================================

class ParseHints(BaseModel):
    """Optional hints passed to the document parser."""

    credit_card: Optional[str] = None
    cutoff_date: Optional[str] = Field(
        default=None,
        description="Only keep transactions on or after this date (any supported format)"
    )


class DocumentUpload(BaseModel):
    """A statement or receipt uploaded for parsing."""

    filename: str
    content: bytes
    mime_type: str = "image/jpeg"

    @field_validator('mime_type')
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        allowed = {'image/jpeg', 'image/png', 'image/webp', 'application/pdf'}
        if v.lower() not in allowed:
            raise ValueError(f"Unsupported document type: {v}. Allowed: {allowed}")
        return v.lower()


class ParsedDocument(BaseModel):
    """
    What the document parser proposes for one file.

    CRITICAL: This is PROPOSED data, NOT verified.
    Dates and amounts go through the normalizer and ingestor before use.
    """

    transactions: list[Transaction] = Field(default_factory=list)
    confidence: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Parser's overall confidence (0-1)"
    )
    warnings: list[str] = Field(default_factory=list)

    @field_validator('confidence', mode='before')
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        return min(max(value, 0.0), 1.0)

