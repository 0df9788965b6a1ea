"""
Gemini Document Parser

Sends a statement screenshot or PDF to Gemini and asks for the visible
transactions as JSON.

BOUNDARIES:
- NEVER persists data
- NEVER normalizes dates or filters by cutoff itself; the ingestor does
- Dates may come back in any format; unparsable ones are flagged later
"""

import json
from datetime import date
from typing import Optional

import google.generativeai as genai
import structlog
from google.api_core import exceptions as google_exceptions
from pydantic import ValidationError

from spend_tracker.errors import UpstreamPermanentError, UpstreamTransientError
from spend_tracker.models.transaction import ParsedDocument, ParseHints
from spend_tracker.services.parser.interface import DocumentParserInterface


logger = structlog.get_logger(__name__)

DEFAULT_CATEGORIES = ["Discretionary", "Restaurant", "Grocery"]

TRANSIENT_ERRORS = (
    google_exceptions.ResourceExhausted,
    google_exceptions.ServiceUnavailable,
    google_exceptions.InternalServerError,
    google_exceptions.DeadlineExceeded,
)


def build_prompt(hints: Optional[ParseHints] = None, today: Optional[date] = None) -> str:
    """Extraction prompt, including the card/cutoff hints when given."""
    hints = hints or ParseHints()
    year = (today or date.today()).year
    card = hints.credit_card or "not specified"
    cutoff = ""
    if hints.cutoff_date:
        cutoff = (
            f"Only include transactions from {hints.cutoff_date} onwards. "
            f"If a year is not explicitly written assume it is {year}.\n"
        )

    return f"""You are an expert at parsing financial documents and bank statements.

Analyze this bank statement or transaction screenshot and extract all transactions. For each transaction, extract:
- Date (as written on the statement, including the year if visible)
- Description/Merchant name
- Amount (as a positive number for purchases)
- Category (choose from: {', '.join(DEFAULT_CATEGORIES)}; default to Discretionary if unclear)
- Credit Card (if provided or visible: {card})

{cutoff}
Respond with ONLY a JSON object in this exact format:
{{"transactions": [{{"date": "MM/DD/YYYY", "description": "merchant name", "amount": 0.00, "category": "category", "creditCard": "card name", "status": "completed"}}], "confidence": 0.95, "warnings": ["any unclear entries"]}}

Be thorough and extract ALL transactions visible. If amounts are unclear, note them in warnings."""


def parse_response_text(text: str) -> ParsedDocument:
    """
    Pull the JSON object out of a model response.

    Raises:
        UpstreamPermanentError: No JSON object, or it does not match the schema
    """
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise UpstreamPermanentError("Could not parse JSON from parser response")
    try:
        data = json.loads(text[start:end])
        return ParsedDocument.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise UpstreamPermanentError(f"Parser returned malformed data: {e}")


class GeminiDocumentParser(DocumentParserInterface):
    """
    Document parser backed by a Gemini multimodal model.

    Args:
        api_key / model_name / max_tokens / temperature: default to GeminiSettings
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        if api_key is None:
            from spend_tracker.config import get_settings
            settings = get_settings().gemini
            api_key = settings.api_key
            model_name = model_name or settings.model_name
            max_tokens = max_tokens or settings.max_tokens
            temperature = settings.temperature if temperature is None else temperature

        self._model_name = model_name or "gemini-1.5-flash"
        genai.configure(api_key=api_key)
        self._model = genai.GenerativeModel(
            model_name=self._model_name,
            generation_config={
                "temperature": 0.1 if temperature is None else temperature,
                "max_output_tokens": max_tokens or 4096,
            }
        )

    async def extract_transactions(
        self,
        content: bytes,
        mime_type: str,
        hints: Optional[ParseHints] = None,
    ) -> ParsedDocument:
        if not content:
            raise UpstreamPermanentError("Document is empty")

        prompt = build_prompt(hints)
        try:
            response = await self._model.generate_content_async([
                {"mime_type": mime_type, "data": content},
                prompt,
            ])
            text = response.text.strip()
        except TRANSIENT_ERRORS as e:
            raise UpstreamTransientError(f"Gemini unavailable: {e}")
        except google_exceptions.GoogleAPIError as e:
            raise UpstreamPermanentError(f"Gemini request failed: {e}")
        except ValueError as e:
            # response.text raises ValueError when the reply was blocked or empty
            raise UpstreamPermanentError(f"Gemini returned no text: {e}")

        parsed = parse_response_text(text)
        logger.info(
            "document_parsed",
            model=self._model_name,
            transactions=len(parsed.transactions),
            confidence=parsed.confidence,
        )
        return parsed
