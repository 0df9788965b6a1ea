"""External service adapters (storage, document parsing) and retry helpers."""
