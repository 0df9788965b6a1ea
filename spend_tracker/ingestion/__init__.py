"""Transaction ingestion package."""

from spend_tracker.ingestion.ingestor import (
    FORMULA_NEUTRALIZER,
    TransactionIngestor,
    dedupe,
    dedupe_key,
    sanitize_for_storage,
    to_storage_row,
)

__all__ = [
    "FORMULA_NEUTRALIZER",
    "TransactionIngestor",
    "dedupe",
    "dedupe_key",
    "sanitize_for_storage",
    "to_storage_row",
]
