"""
Groq LLM Client.

Extracts invoice fields through Groq's OpenAI-compatible chat completions API
using ``requests``.

Request contract:
    - single-turn chat (system + user message) at temperature 0.1
    - ``response_format: {"type": "json_object"}``
    - hard timeout from settings (default 30s)

Author: ML Engineering Team
"""

from typing import Any, Dict, Optional

import requests

from config.settings import LlmSettings
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import (
    LlmApiError,
    LlmInvalidResponseError,
    LlmTimeoutError,
)
from .extracted_fields import ExtractedFields
from .llm_client import LlmExtractionClient
from .prompt import SYSTEM_PROMPT, build_extraction_prompt
from .response_parser import parse_chat_completion

# Initialize module logger
logger = get_logger(__name__)

PROVIDER_NAME = "Groq"


class GroqLlmClient(LlmExtractionClient):
    """
    Groq implementation of ``LlmExtractionClient``.

    Attributes:
        settings: Endpoint, credential, model and sampling options
        session: HTTP session reused across requests

    Example:
        >>> client = GroqLlmClient(LlmSettings(api_key="gsk_..."))
        >>> fields = client.extract("Invoice #1001 Total: $250.00 Bill To: Jane Roe")
        >>> fields.invoice_number
        '1001'
    """

    def __init__(
        self,
        settings: Optional[LlmSettings] = None,
        session: Optional[requests.Session] = None
    ) -> None:
        self.settings = settings or LlmSettings()
        self.session = session or requests.Session()

        if self.is_available():
            logger.info(f"Groq client initialized (model={self.settings.model})")
        else:
            logger.warning(
                "Groq client not configured (missing API key or model); "
                "structured extraction will return empty fields"
            )

    def is_available(self) -> bool:
        return self.settings.is_configured

    def provider_name(self) -> str:
        return PROVIDER_NAME

    def build_request(self, ocr_text: str) -> Dict[str, Any]:
        """Chat completion request body for one OCR text."""
        return {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_extraction_prompt(ocr_text)},
            ],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
            "response_format": {"type": "json_object"},
        }

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def extract(self, ocr_text: str) -> ExtractedFields:
        """
        Send OCR text to Groq and parse the structured reply.

        Args:
            ocr_text: Text produced by the OCR stage.

        Returns:
            Parsed fields; all-absent with zero confidence when the client
            is not configured.

        Raises:
            LlmTimeoutError: When the request exceeds the timeout.
            LlmApiError: On transport failure or a non-2xx status.
            LlmInvalidResponseError: When the body cannot be used.
        """
        if not self.is_available():
            logger.warning("Groq not configured, skipping structured extraction")
            return ExtractedFields.empty()

        logger.info(
            f"Requesting field extraction from {PROVIDER_NAME} "
            f"({len(ocr_text)} chars, model={self.settings.model})"
        )

        try:
            response = self.session.post(
                self.settings.api_url,
                headers=self._headers(),
                json=self.build_request(ocr_text),
                timeout=self.settings.timeout_seconds,
            )
        except requests.Timeout as e:
            logger.error(f"Groq request timed out after {self.settings.timeout_seconds}s")
            raise LlmTimeoutError(self.settings.timeout_seconds) from e
        except requests.RequestException as e:
            logger.error(f"Groq request failed: {e}")
            raise LlmApiError(str(e)) from e

        if not 200 <= response.status_code < 300:
            logger.error(f"Groq API returned {response.status_code}: {response.text[:200]}")
            raise LlmApiError(
                f"unexpected status {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise LlmInvalidResponseError("response body is not JSON", response.text) from e

        fields = parse_chat_completion(payload, self.settings.default_confidence)
        logger.info(
            f"Extracted fields: invoice_number={fields.invoice_number or 'N/A'}, "
            f"amount={fields.amount if fields.amount is not None else 'N/A'}, "
            f"party_name={fields.party_name or 'N/A'}, "
            f"confidence={fields.confidence:.2f}"
        )
        return fields
