"""
Tesseract OCR Backend.

OCR engine backed by the Tesseract binary through pytesseract.

Features:
    - PNG, JPEG and TIFF images, multi-page PDFs rendered at a configurable DPI
    - Optional Otsu binarization before recognition
    - Pages recognized sequentially and joined with page-boundary markers
    - Heuristic confidence averaged over pages

Requirements:
    - Tesseract OCR installed on the system
    - pytesseract Python package

Author: ML Engineering Team
"""

import time
from typing import List, Optional, Set

import pytesseract
from PIL import Image

from config.settings import OcrSettings
from invoice_pipeline.input_handler.handler import InputHandler, SUPPORTED_MIME_TYPES
from invoice_pipeline.input_handler.image_processor import ImagePreprocessor
from invoice_pipeline.input_handler.pdf_processor import PdfPageRenderer
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import (
    ErrorCodes,
    ExtractionFailedError,
    UnsupportedFileTypeError,
)
from .confidence import mean_confidence, score_text_confidence
from .engine import OcrEngine
from .ocr_result import OcrOutcome

# Initialize module logger
logger = get_logger(__name__)

ENGINE_NAME = "Tesseract"


def page_marker(page_number: int) -> str:
    """Separator placed before page ``page_number`` (2, 3, ...)."""
    return f"\n\n=== PAGE {page_number} ===\n\n"


def join_pages(page_texts: List[str]) -> str:
    """
    Concatenate page texts in order with page-boundary markers.

    Example:
        >>> join_pages(["first", "second"])
        'first\\n\\n=== PAGE 2 ===\\n\\nsecond'
    """
    if not page_texts:
        return ""
    parts = [page_texts[0]]
    for page_number, text in enumerate(page_texts[1:], start=2):
        parts.append(page_marker(page_number))
        parts.append(text)
    return "".join(parts)


class TesseractOcrEngine(OcrEngine):
    """
    Tesseract implementation of ``OcrEngine``.

    Attributes:
        settings: Tesseract and rendering options
        input_handler: Decodes uploads into page images
        preprocessor: Otsu binarizer applied when settings.preprocess is set

    Example:
        >>> engine = TesseractOcrEngine(OcrSettings(language="eng"))
        >>> outcome = engine.extract(png_bytes, "invoice.png", "image/png")
        >>> print(outcome.extracted_text)
    """

    def __init__(
        self,
        settings: Optional[OcrSettings] = None,
        input_handler: Optional[InputHandler] = None,
        preprocessor: Optional[ImagePreprocessor] = None
    ) -> None:
        self.settings = settings or OcrSettings()
        self.input_handler = input_handler or InputHandler(
            PdfPageRenderer(dpi=self.settings.pdf_dpi)
        )
        self.preprocessor = preprocessor or ImagePreprocessor()
        self._version: Optional[str] = None

        logger.debug(
            f"TesseractOcrEngine initialized (lang={self.settings.language}, "
            f"psm={self.settings.psm}, oem={self.settings.oem}, "
            f"dpi={self.settings.pdf_dpi}, preprocess={self.settings.preprocess})"
        )

    def supported_mime_types(self) -> Set[str]:
        return set(SUPPORTED_MIME_TYPES)

    def priority(self) -> int:
        return self.settings.priority

    def _tesseract_version(self) -> Optional[str]:
        if self._version is None:
            try:
                self._version = str(pytesseract.get_tesseract_version())
            except (pytesseract.TesseractNotFoundError, OSError) as e:
                logger.debug(f"Could not read Tesseract version: {e}")
                return None
        return self._version

    def engine_identifier(self) -> str:
        version = self._tesseract_version()
        return f"{ENGINE_NAME} {version}" if version else ENGINE_NAME

    def is_available(self) -> bool:
        return self._tesseract_version() is not None

    def build_config(self) -> str:
        """
        Build the Tesseract command-line configuration string.

        Returns:
            Configuration string for pytesseract.
        """
        config_parts = [
            f"--oem {self.settings.oem}",
            f"--psm {self.settings.psm}",
        ]

        if self.settings.tessdata_dir:
            config_parts.append(f'--tessdata-dir "{self.settings.tessdata_dir}"')
        if self.settings.preserve_interword_spaces:
            config_parts.append(
                f"-c preserve_interword_spaces={self.settings.preserve_interword_spaces}"
            )
        if self.settings.char_whitelist:
            config_parts.append(f"-c tessedit_char_whitelist={self.settings.char_whitelist}")

        return ' '.join(config_parts)

    def recognize(self, image: Image.Image, file_name: str = "image", page_number: int = 1) -> str:
        """
        Recognize the text of one page image.

        Args:
            image: Page image.
            file_name: Name used in log and error messages.
            page_number: 1-based page number for messages.

        Returns:
            Recognized text with surrounding whitespace removed.

        Raises:
            ExtractionFailedError: If Tesseract fails or is not installed.
        """
        if self.settings.preprocess:
            image = self.preprocessor.preprocess(image)

        try:
            text = pytesseract.image_to_string(
                image,
                lang=self.settings.language,
                config=self.build_config()
            )
        except pytesseract.TesseractNotFoundError as e:
            logger.error(f"Tesseract binary not found: {e}")
            raise ExtractionFailedError(
                f"Tesseract is not installed or not in PATH: {e}",
                file_name,
                ErrorCodes.OCR_SERVICE_UNAVAILABLE
            ) from e
        except Exception as e:
            logger.error(f"Tesseract OCR failed for {file_name} page {page_number}: {e}")
            raise ExtractionFailedError(
                f"Tesseract OCR failed on page {page_number}: {e}", file_name
            ) from e

        return (text or "").strip()

    def extract(self, file_bytes: bytes, file_name: str, mime_type: str) -> OcrOutcome:
        """
        Run OCR over an image or every page of a PDF.

        Args:
            file_bytes: Raw document content.
            file_name: Original filename.
            mime_type: Document MIME type.

        Returns:
            OcrOutcome with the joined text and mean page confidence.

        Raises:
            UnsupportedFileTypeError: If the MIME type is not supported.
            InvalidFileFormatError: If the document cannot be decoded.
            ExtractionFailedError: If recognition fails.
        """
        if not self.supports(mime_type):
            raise UnsupportedFileTypeError(mime_type, self.supported_mime_types())

        start_time = time.perf_counter()
        document = self.input_handler.load(file_bytes, file_name, mime_type)

        page_texts = []
        for page_number, image in enumerate(document.images, start=1):
            logger.debug(f"Recognizing page {page_number}/{document.page_count} of {file_name}")
            page_texts.append(self.recognize(image, file_name, page_number))

        confidence = mean_confidence(score_text_confidence(text) for text in page_texts)
        processing_time_ms = int((time.perf_counter() - start_time) * 1000)

        outcome = OcrOutcome(
            extracted_text=join_pages(page_texts),
            confidence_score=confidence,
            page_count=document.page_count,
            processing_time_ms=processing_time_ms,
            engine_identifier=self.engine_identifier(),
            language=self.settings.language,
        )

        logger.info(
            f"OCR completed for {file_name}: {outcome.page_count} page(s), "
            f"{outcome.text_length} chars, confidence {outcome.confidence_score:.2f} "
            f"({processing_time_ms}ms)"
        )
        return outcome
