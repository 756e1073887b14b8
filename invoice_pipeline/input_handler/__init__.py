"""
Input Handler Module.

Upload validation, page decoding and image preprocessing for OCR.
"""

from .handler import (
    InputHandler,
    InputResult,
    SUPPORTED_MIME_TYPES,
    detect_mime_type,
    normalize_mime_type,
    is_pdf,
)
from .image_processor import ImagePreprocessor, otsu_threshold, compute_histogram
from .pdf_processor import PdfPageRenderer

__all__ = [
    'InputHandler',
    'InputResult',
    'SUPPORTED_MIME_TYPES',
    'detect_mime_type',
    'normalize_mime_type',
    'is_pdf',
    'ImagePreprocessor',
    'otsu_threshold',
    'compute_histogram',
    'PdfPageRenderer',
]
