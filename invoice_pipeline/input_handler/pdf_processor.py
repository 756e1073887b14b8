"""
PDF Processor Module.

Rasterizes PDF pages for OCR with PyMuPDF. Pages are rendered in order at a
configurable DPI (default 300) and returned as RGB PIL images.

Author: ML Engineering Team
"""

import io
from typing import Iterator, List

import fitz  # PyMuPDF
from PIL import Image

from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import InvalidFileFormatError

# Initialize module logger
logger = get_logger(__name__)

# PDF user space is 72 points per inch
PDF_BASE_DPI = 72.0


class PdfPageRenderer:
    """
    Renders PDF bytes to page images.

    Attributes:
        dpi: Rendering resolution.

    Example:
        >>> renderer = PdfPageRenderer(dpi=300)
        >>> pages = renderer.render(pdf_bytes, "invoice.pdf")
        >>> print(f"Rendered {len(pages)} pages")
    """

    def __init__(self, dpi: int = 300) -> None:
        if dpi <= 0:
            raise ValueError(f"DPI must be positive, got {dpi}")
        self.dpi = dpi
        logger.debug(f"PdfPageRenderer initialized (DPI={self.dpi})")

    def _open(self, pdf_bytes: bytes, file_name: str) -> fitz.Document:
        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as e:
            logger.error(f"Cannot open PDF {file_name}: {e}")
            raise InvalidFileFormatError(file_name, str(e)) from e

        if doc.page_count == 0:
            doc.close()
            raise InvalidFileFormatError(file_name, "PDF has no pages")
        return doc

    def page_count(self, pdf_bytes: bytes, file_name: str = "document.pdf") -> int:
        """
        Count the pages of a PDF.

        Raises:
            InvalidFileFormatError: If the bytes are not a readable PDF.
        """
        with self._open(pdf_bytes, file_name) as doc:
            return doc.page_count

    def iter_pages(self, pdf_bytes: bytes, file_name: str = "document.pdf") -> Iterator[Image.Image]:
        """
        Yield page images one at a time, in page order.

        Args:
            pdf_bytes: Raw PDF content.
            file_name: Name used in log and error messages.

        Yields:
            RGB PIL image per page.

        Raises:
            InvalidFileFormatError: If the PDF cannot be opened or a page
                cannot be rendered.
        """
        zoom = self.dpi / PDF_BASE_DPI
        matrix = fitz.Matrix(zoom, zoom)

        with self._open(pdf_bytes, file_name) as doc:
            for page_index in range(doc.page_count):
                try:
                    page = doc.load_page(page_index)
                    pixmap = page.get_pixmap(matrix=matrix)
                    image = Image.open(io.BytesIO(pixmap.tobytes("png")))
                    image.load()
                except Exception as e:
                    logger.error(
                        f"Rendering page {page_index + 1} of {file_name} failed: {e}"
                    )
                    raise InvalidFileFormatError(
                        file_name, f"page {page_index + 1}: {e}"
                    ) from e

                if image.mode != 'RGB':
                    image = image.convert('RGB')

                logger.debug(
                    f"Rendered page {page_index + 1}/{doc.page_count} "
                    f"({image.width}x{image.height})"
                )
                yield image

    def render(self, pdf_bytes: bytes, file_name: str = "document.pdf") -> List[Image.Image]:
        """
        Render every page of a PDF.

        Returns:
            List of RGB PIL images, one per page.
        """
        images = list(self.iter_pages(pdf_bytes, file_name))
        logger.info(f"Converted {file_name} to {len(images)} image(s) at {self.dpi} DPI")
        return images
