"""Document parsing services."""

from spend_tracker.services.parser.interface import DocumentParserInterface
from spend_tracker.services.parser.gemini_parser import (
    GeminiDocumentParser,
    build_prompt,
    parse_response_text,
)

__all__ = [
    "DocumentParserInterface",
    "GeminiDocumentParser",
    "build_prompt",
    "parse_response_text",
]
