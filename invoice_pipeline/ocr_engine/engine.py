"""
OCR Engine Interface and Registry.

Every OCR provider implements ``OcrEngine``. ``OcrEngineRegistry`` holds the
configured engines and picks, for each document, the highest-priority engine
that supports its MIME type. New providers plug in by registering an
instance; the orchestrator only ever talks to the registry.

Usage:
    from invoice_pipeline.ocr_engine import OcrEngineRegistry, TesseractOcrEngine

    registry = OcrEngineRegistry([TesseractOcrEngine(settings)])
    engine = registry.select("application/pdf")
    outcome = engine.extract(pdf_bytes, "invoice.pdf", "application/pdf")

Author: ML Engineering Team
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Set

from invoice_pipeline.input_handler.handler import normalize_mime_type
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import UnsupportedFileTypeError
from .ocr_result import OcrOutcome

# Initialize module logger
logger = get_logger(__name__)


class OcrEngine(ABC):
    """
    Contract for OCR providers.

    Subclasses declare the MIME types they accept, turn raw document bytes
    into an ``OcrOutcome``, and may override ``priority`` to win selection
    over other engines supporting the same type.
    """

    @abstractmethod
    def supported_mime_types(self) -> Set[str]:
        """MIME types this engine accepts, lowercase."""

    @abstractmethod
    def extract(self, file_bytes: bytes, file_name: str, mime_type: str) -> OcrOutcome:
        """
        Run OCR over a whole document.

        Raises:
            InvalidFileFormatError: If the document cannot be decoded.
            ExtractionFailedError: If the OCR backend fails.
        """

    @abstractmethod
    def engine_identifier(self) -> str:
        """Name (and version, when known) recorded with each outcome."""

    def supports(self, mime_type: Optional[str]) -> bool:
        mime = normalize_mime_type(mime_type)
        return mime is not None and mime in self.supported_mime_types()

    def priority(self) -> int:
        return 0

    def is_available(self) -> bool:
        return True


class OcrEngineRegistry:
    """
    Selects the OCR engine for a document.

    Example:
        >>> registry = OcrEngineRegistry([tesseract_engine])
        >>> registry.select("image/png") is tesseract_engine
        True
        >>> registry.select("application/msword")
        Traceback (most recent call last):
        ...
        UnsupportedFileTypeError: [INV-001] Unsupported file type: 'application/msword' ...
    """

    def __init__(self, engines: Iterable[OcrEngine] = ()) -> None:
        self._engines: List[OcrEngine] = []
        for engine in engines:
            self.register(engine)

    def register(self, engine: OcrEngine) -> None:
        self._engines.append(engine)
        logger.info(
            f"Registered OCR engine {engine.engine_identifier()} "
            f"(priority={engine.priority()})"
        )

    @property
    def engines(self) -> List[OcrEngine]:
        return list(self._engines)

    def supported_mime_types(self) -> Set[str]:
        supported: Set[str] = set()
        for engine in self._engines:
            supported |= set(engine.supported_mime_types())
        return supported

    def supports(self, mime_type: Optional[str]) -> bool:
        return any(engine.supports(mime_type) for engine in self._engines)

    def select(self, mime_type: Optional[str]) -> OcrEngine:
        """
        Return the highest-priority engine supporting the MIME type.

        Registration order breaks priority ties.

        Raises:
            UnsupportedFileTypeError: If no engine supports the type.
        """
        best: Optional[OcrEngine] = None
        for engine in self._engines:
            if not engine.supports(mime_type):
                continue
            if best is None or engine.priority() > best.priority():
                best = engine

        if best is None:
            logger.warning(f"No OCR engine supports MIME type '{mime_type}'")
            raise UnsupportedFileTypeError(mime_type, self.supported_mime_types())

        logger.debug(f"Selected {best.engine_identifier()} for '{mime_type}'")
        return best
