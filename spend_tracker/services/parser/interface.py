"""
Abstract Document Parser Interface

DESIGN DECISION: The parser only PROPOSES transactions. Whatever it
returns is normalized, filtered and deduplicated by the ingestor before a
user sees it, and nothing is written until the user saves.
"""

from abc import ABC, abstractmethod
from typing import Optional

from spend_tracker.models.transaction import ParsedDocument, ParseHints


class DocumentParserInterface(ABC):
    """Turns one statement/receipt file into candidate transactions."""

    @abstractmethod
    async def extract_transactions(
        self,
        content: bytes,
        mime_type: str,
        hints: Optional[ParseHints] = None,
    ) -> ParsedDocument:
        """
        Extract candidate transactions from a document.

        Args:
            content: Raw file bytes
            mime_type: image/jpeg, image/png, image/webp or application/pdf
            hints: Card name and cutoff date to pass along to the parser

        Raises:
            UpstreamTransientError: Parser unavailable or rate limited
            UpstreamPermanentError: Misconfiguration or unusable response
        """
        pass
