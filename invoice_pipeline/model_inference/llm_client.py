"""
LLM Extraction Client Interface.

Providers turn OCR text into ``ExtractedFields``. A provider that is not
configured must not fail: ``extract`` returns all-absent fields with zero
confidence, and the pipeline falls back to default values.

Author: ML Engineering Team
"""

from abc import ABC, abstractmethod

from .extracted_fields import ExtractedFields


class LlmExtractionClient(ABC):
    """Contract for hosted-LLM field extraction."""

    @abstractmethod
    def extract(self, ocr_text: str) -> ExtractedFields:
        """
        Extract invoice fields from OCR text.

        Raises:
            LlmApiError: On a non-2xx response or transport failure.
            LlmTimeoutError: When the request times out.
            LlmInvalidResponseError: When the reply cannot be used.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """True when credentials and model are configured."""

    @abstractmethod
    def provider_name(self) -> str:
        """Human-readable provider name."""
