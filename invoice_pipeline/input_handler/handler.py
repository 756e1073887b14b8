"""
Main Input Handler Module.

Validates uploads and decodes them into page images for OCR. PDFs go through
``PdfPageRenderer``; raster images are decoded with Pillow and normalized
(EXIF orientation, RGB).

Usage:
    from invoice_pipeline.input_handler import InputHandler

    handler = InputHandler()
    handler.validate(file_bytes, "invoice.pdf", "application/pdf")
    result = handler.load(file_bytes, "invoice.pdf", "application/pdf")

Classes:
    InputResult: Decoded pages of one upload
    InputHandler: Upload validation and decoding
"""

import io
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from PIL import Image

from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.helpers import format_file_size, get_file_extension
from invoice_pipeline.utils.exceptions import (
    FileTooLargeError,
    InvalidFileFormatError,
    InvalidRequestError,
)

from .image_processor import normalize_image
from .pdf_processor import PdfPageRenderer


# Initialize module logger
logger = get_logger(__name__)

PDF_MIME_TYPE = "application/pdf"

SUPPORTED_MIME_TYPES = frozenset({
    PDF_MIME_TYPE,
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/tiff",
})

EXTENSION_MIME_TYPES: Dict[str, str] = {
    '.pdf': PDF_MIME_TYPE,
    '.png': "image/png",
    '.jpg': "image/jpeg",
    '.jpeg': "image/jpeg",
    '.tif': "image/tiff",
    '.tiff': "image/tiff",
}

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024


def normalize_mime_type(mime_type: Optional[str]) -> Optional[str]:
    """
    Lowercase a MIME type and drop any parameters.

    Example:
        >>> normalize_mime_type("Image/PNG; charset=binary")
        'image/png'
    """
    if not mime_type:
        return None
    return mime_type.split(';', 1)[0].strip().lower() or None


def detect_mime_type(file_name: str) -> Optional[str]:
    """
    Guess a supported MIME type from a file extension.

    Returns:
        MIME type, or None for extensions the pipeline does not handle.
    """
    return EXTENSION_MIME_TYPES.get(get_file_extension(file_name))


def is_pdf(mime_type: Optional[str]) -> bool:
    return normalize_mime_type(mime_type) == PDF_MIME_TYPE


@dataclass
class InputResult:
    """
    Decoded pages of one upload.

    Attributes:
        file_name: Original filename
        mime_type: Normalized MIME type
        images: One RGB PIL image per page
        page_count: Number of pages
    """
    file_name: str
    mime_type: str
    images: List[Image.Image] = field(default_factory=list)
    page_count: int = 0

    def __repr__(self) -> str:
        return (
            f"InputResult(file_name='{self.file_name}', "
            f"mime_type='{self.mime_type}', pages={self.page_count})"
        )


class InputHandler:
    """
    Upload validation and decoding into page images.

    Attributes:
        pdf_renderer: Renderer used for PDF uploads
        max_file_size_bytes: Upper bound on accepted uploads

    Example:
        >>> handler = InputHandler(PdfPageRenderer(dpi=300))
        >>> result = handler.load(png_bytes, "scan.png", "image/png")
        >>> result.page_count
        1
    """

    def __init__(
        self,
        pdf_renderer: Optional[PdfPageRenderer] = None,
        max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE
    ) -> None:
        self.pdf_renderer = pdf_renderer or PdfPageRenderer()
        self.max_file_size_bytes = max_file_size_bytes

    def validate(self, file_bytes: Optional[bytes], file_name: Optional[str]) -> None:
        """
        Reject empty or oversized uploads.

        Raises:
            InvalidRequestError: If the file is empty or unnamed.
            FileTooLargeError: If the file exceeds the size limit.
        """
        if not file_name or not file_name.strip():
            raise InvalidRequestError("file name is required")
        if not file_bytes:
            raise InvalidRequestError(f"file '{file_name}' is empty")

        size = len(file_bytes)
        if size > self.max_file_size_bytes:
            logger.warning(
                f"Rejected {file_name}: {format_file_size(size)} exceeds "
                f"{format_file_size(self.max_file_size_bytes)}"
            )
            raise FileTooLargeError(file_name, size, self.max_file_size_bytes)

    def load_image(self, file_bytes: bytes, file_name: str) -> Image.Image:
        """
        Decode a raster image.

        Raises:
            InvalidFileFormatError: If Pillow cannot decode the bytes.
        """
        try:
            image = Image.open(io.BytesIO(file_bytes))
            image.load()
        except Exception as e:
            logger.error(f"Failed to decode image {file_name}: {e}")
            raise InvalidFileFormatError(file_name, str(e)) from e

        return normalize_image(image)

    def load(self, file_bytes: bytes, file_name: str, mime_type: str) -> InputResult:
        """
        Decode an upload into page images.

        Args:
            file_bytes: Raw upload content.
            file_name: Original filename.
            mime_type: Declared MIME type.

        Returns:
            InputResult with one image per page.

        Raises:
            InvalidFileFormatError: If the content cannot be decoded.
        """
        mime = normalize_mime_type(mime_type) or ""

        if is_pdf(mime):
            images = self.pdf_renderer.render(file_bytes, file_name)
        else:
            images = [self.load_image(file_bytes, file_name)]

        result = InputResult(
            file_name=file_name,
            mime_type=mime,
            images=images,
            page_count=len(images),
        )
        logger.debug(f"Loaded {result}")
        return result
