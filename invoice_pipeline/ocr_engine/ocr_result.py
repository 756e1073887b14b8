"""
OCR Result Data Class.

Immutable output of one OCR run over a document (all pages).

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class OcrOutcome:
    """
    Text and quality estimate produced by an OCR engine.

    Attributes:
        extracted_text: Page texts joined with page-boundary markers
        confidence_score: Heuristic quality estimate, clamped to [0, 1]
        page_count: Number of pages (1 for a bare image)
        processing_time_ms: Wall-clock OCR time
        engine_identifier: Engine name and version
        language: OCR language code
        captured_at: When OCR finished

    Example:
        >>> outcome = OcrOutcome("Invoice #1001", 0.7, 1, 850, "Tesseract 5.3.0", "eng")
        >>> outcome.has_text
        True
    """
    extracted_text: str
    confidence_score: float
    page_count: int = 1
    processing_time_ms: int = 0
    engine_identifier: str = "unknown"
    language: str = "eng"
    captured_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'confidence_score', clamp_confidence(self.confidence_score))
        object.__setattr__(self, 'extracted_text', self.extracted_text or "")

    @property
    def has_text(self) -> bool:
        return bool(self.extracted_text.strip())

    @property
    def text_length(self) -> int:
        return len(self.extracted_text)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'extracted_text': self.extracted_text,
            'confidence_score': self.confidence_score,
            'page_count': self.page_count,
            'processing_time_ms': self.processing_time_ms,
            'engine_identifier': self.engine_identifier,
            'language': self.language,
            'captured_at': self.captured_at.isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"OcrOutcome(engine='{self.engine_identifier}', "
            f"pages={self.page_count}, chars={self.text_length}, "
            f"confidence={self.confidence_score:.2f})"
        )
