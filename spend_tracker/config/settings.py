"""
Spend Tracker settings

Read from the environment (and .env) with pydantic-settings. Each external
system gets its own settings class and env prefix:

- GOOGLE_SHEETS_*  registry/template spreadsheets, tab names, credentials
- GEMINI_*         statement parser
- (no prefix)      period windows, upload limits, onboarding allow-list

DESIGN DECISION: Sub-settings are built on first access, not at import.
The admin CLI never needs a Gemini key, and tests never need any of it:
every component takes explicit ids and options, and only falls back to
these settings when none are passed.
"""

from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# EXTERNAL SERVICES
# =============================================================================

class GoogleSheetsSettings(BaseSettings):
    """Where the registry lives and how ledgers are laid out."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file used for every Sheets and Drive call"
    )
    registry_spreadsheet_id: Optional[str] = Field(
        default=None,
        description="ID of the central registry spreadsheet"
    )
    template_spreadsheet_id: Optional[str] = Field(
        default=None,
        description="ID of the ledger template copied during onboarding"
    )
    service_account_email: Optional[str] = Field(
        default=None,
        description="Service account email users must share their ledger with"
    )

    # Tab names inside a user's ledger
    transactions_sheet_name: str = Field(
        default="Spending",
        description="Name of the transactions tab in a ledger"
    )
    budget_sheet_name: str = Field(
        default="Weekly Budget",
        description="Name of the weekly budget tab in a ledger"
    )

    # Tab names inside the registry spreadsheet
    registry_sheet_name: str = Field(default="registry")
    requests_sheet_name: str = Field(default="requests")
    audit_sheet_name: str = Field(default="audit")

    @field_validator('credentials_path')
    @classmethod
    def check_credentials_file(cls, v: str) -> str:
        """Missing key files only warn: in containers they are mounted at start."""
        if not Path(v).exists():
            import warnings
            warnings.warn(f"Service account key not found at {v}; Sheets calls will fail until it exists.")
        return v


class GeminiSettings(BaseSettings):
    """Gemini model used to read statements and receipts."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(..., description="Google AI Studio key")
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Multimodal model that accepts images and PDFs"
    )
    max_tokens: int = Field(
        default=4096,
        ge=100,
        le=8192,
        description="Upper bound on the JSON reply length"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Kept low so the same statement parses the same way twice"
    )


# =============================================================================
# APPLICATION
# =============================================================================

class AppSettings(BaseSettings):
    """Behavioural knobs with no external system behind them."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(default="development")
    debug_mode: bool = Field(
        default=False,
        description="Log at DEBUG level"
    )

    # Period windows
    default_payday: date = Field(
        default=date(2026, 1, 30),
        description="Reference payday (a Friday) that anchors biweekly windows"
    )
    year_inference_window_days: int = Field(
        default=60,
        ge=0,
        le=366,
        description="A yearless date further than this in the future is assumed to be last year"
    )
    top_categories_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="How many categories the spending summary shows"
    )

    # Statement uploads
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Statements larger than this are skipped with a warning"
    )
    supported_document_formats: str = Field(
        default="jpg,jpeg,png,webp,pdf",
        description="Comma-separated file extensions accepted for import"
    )

    # Onboarding
    allowed_emails: str = Field(
        default="",
        description="Optional comma-separated allow-list for access requests (empty = anyone may ask)"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        return [fmt.strip().lower().lstrip(".") for fmt in self.supported_document_formats.split(",") if fmt.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def allowed_emails_list(self) -> list[str]:
        return [e.strip().lower() for e in self.allowed_emails.split(",") if e.strip()]


class Settings(BaseSettings):
    """Entry point: `get_settings().google_sheets.registry_spreadsheet_id`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings; `get_settings.cache_clear()` forces a reload."""
    return Settings()


def validate_all_settings(require_parser: bool = True) -> dict[str, bool]:
    """
    Startup check.

    Returns {section: ok} plus "<section>_error" messages for sections that
    failed to load, and whether the registry and template ids are set.
    """
    settings = get_settings()
    results: dict = {}

    sections = [("google_sheets", lambda: settings.google_sheets), ("app", lambda: settings.app)]
    if require_parser:
        sections.append(("gemini", lambda: settings.gemini))

    for name, load in sections:
        try:
            loaded = load()
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
            continue
        results[name] = True
        if name == "google_sheets":
            results["registry_configured"] = bool(loaded.registry_spreadsheet_id)
            results["template_configured"] = bool(loaded.template_spreadsheet_id)

    return results
