"""
OCR Engine Module.

Text extraction from invoice images and PDFs:
    - OcrEngine interface and priority-based OcrEngineRegistry
    - Tesseract implementation
    - Deterministic text-based confidence heuristic

Author: ML Engineering Team
"""

from .engine import OcrEngine, OcrEngineRegistry
from .tesseract_backend import TesseractOcrEngine, join_pages
from .ocr_result import OcrOutcome
from .confidence import score_text_confidence

__all__ = [
    'OcrEngine',
    'OcrEngineRegistry',
    'TesseractOcrEngine',
    'join_pages',
    'OcrOutcome',
    'score_text_confidence',
]
