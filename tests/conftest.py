"""
Shared pytest fixtures.

External services are never reached: OCR engines and LLM clients are stubs,
pytesseract is monkeypatched, and HTTP goes through a fake session.
"""

import io
import sys
from decimal import Decimal
from pathlib import Path
from typing import Callable, List, Optional, Set

import pytest
from PIL import Image, ImageDraw

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import PipelineSettings
from invoice_pipeline.input_handler import SUPPORTED_MIME_TYPES
from invoice_pipeline.model_inference import ExtractedFields, LlmExtractionClient
from invoice_pipeline.ocr_engine import OcrEngine, OcrEngineRegistry, OcrOutcome
from invoice_pipeline.output_handler import InMemoryPersistenceGateway
from invoice_pipeline.pipeline import ExtractionOrchestrator, InMemoryProgressPublisher

SAMPLE_OCR_TEXT = "Invoice #1001 Total: $250.00 Bill To: Jane Roe"


# =============================================================================
# Images and documents
# =============================================================================

def make_png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def two_level_image() -> Image.Image:
    """Grayscale image with a dark block (40) on a light background (200)."""
    image = Image.new('L', (64, 64), 200)
    ImageDraw.Draw(image).rectangle([8, 8, 40, 40], fill=40)
    return image


@pytest.fixture
def uniform_image() -> Image.Image:
    return Image.new('L', (32, 32), 128)


@pytest.fixture
def invoice_image() -> Image.Image:
    image = Image.new('RGB', (400, 200), 'white')
    ImageDraw.Draw(image).text((10, 10), SAMPLE_OCR_TEXT, fill='black')
    return image


@pytest.fixture
def png_bytes(invoice_image) -> bytes:
    return make_png_bytes(invoice_image)


@pytest.fixture
def pdf_bytes_factory() -> Callable[[int], bytes]:
    """Build an in-memory PDF with the given number of text pages."""
    import fitz

    def build(pages: int = 2) -> bytes:
        doc = fitz.open()
        for number in range(1, pages + 1):
            page = doc.new_page(width=300, height=200)
            page.insert_text((20, 40), f"Page {number} Invoice 100{number}")
        data = doc.tobytes()
        doc.close()
        return data

    return build


# =============================================================================
# Stub engines and clients
# =============================================================================

class StubOcrEngine(OcrEngine):
    """OCR engine returning fixed text, or raising a configured error."""

    def __init__(
        self,
        text: str = SAMPLE_OCR_TEXT,
        mime_types: Optional[Set[str]] = None,
        engine_priority: int = 0,
        name: str = "stub-ocr",
        error: Optional[Exception] = None,
        delay: float = 0.0
    ) -> None:
        self.text = text
        self.mime_types = set(mime_types or SUPPORTED_MIME_TYPES)
        self.engine_priority = engine_priority
        self.name = name
        self.error = error
        self.delay = delay
        self.calls: List[str] = []

    def supported_mime_types(self) -> Set[str]:
        return self.mime_types

    def priority(self) -> int:
        return self.engine_priority

    def engine_identifier(self) -> str:
        return self.name

    def extract(self, file_bytes: bytes, file_name: str, mime_type: str) -> OcrOutcome:
        self.calls.append(file_name)
        if self.delay:
            import time
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return OcrOutcome(
            extracted_text=self.text,
            confidence_score=0.8 if self.text else 0.0,
            page_count=1,
            processing_time_ms=5,
            engine_identifier=self.name,
        )


class StubLlmClient(LlmExtractionClient):
    """LLM client returning fixed fields, or raising a configured error."""

    def __init__(
        self,
        fields: Optional[ExtractedFields] = None,
        available: bool = True,
        error: Optional[Exception] = None,
        delay: float = 0.0
    ) -> None:
        self.fields = fields if fields is not None else ExtractedFields(
            invoice_number="1001",
            amount=Decimal("250.00"),
            party_name="Jane Roe",
            currency="USD",
            confidence=0.9,
        )
        self.available = available
        self.error = error
        self.delay = delay
        self.texts: List[str] = []

    def extract(self, ocr_text: str) -> ExtractedFields:
        self.texts.append(ocr_text)
        if self.delay:
            import time
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.fields

    def is_available(self) -> bool:
        return self.available

    def provider_name(self) -> str:
        return "stub-llm"


class FailingPublisher(InMemoryProgressPublisher):
    """Records events, then raises on every publish."""

    def publish(self, extraction_key, event) -> None:
        super().publish(extraction_key, event)
        raise RuntimeError("transport down")


@pytest.fixture
def stub_ocr() -> StubOcrEngine:
    return StubOcrEngine()


@pytest.fixture
def stub_llm() -> StubLlmClient:
    return StubLlmClient()


@pytest.fixture
def gateway() -> InMemoryPersistenceGateway:
    return InMemoryPersistenceGateway()


@pytest.fixture
def publisher() -> InMemoryProgressPublisher:
    return InMemoryProgressPublisher()


@pytest.fixture
def pipeline_settings() -> PipelineSettings:
    return PipelineSettings(
        max_concurrent_extractions=2,
        stage_workers=2,
        ocr_timeout_seconds=5,
        llm_timeout_seconds=5,
        max_file_size_bytes=1024 * 1024,
    )


@pytest.fixture
def orchestrator_factory(gateway, publisher, pipeline_settings):
    """Build orchestrators over the shared gateway and publisher; shut down after the test."""
    created: List[ExtractionOrchestrator] = []

    def build(
        ocr: Optional[OcrEngine] = None,
        llm: Optional[LlmExtractionClient] = None,
        settings: Optional[PipelineSettings] = None,
        **kwargs
    ) -> ExtractionOrchestrator:
        kwargs.setdefault('gateway', gateway)
        kwargs.setdefault('publisher', publisher)
        orchestrator = ExtractionOrchestrator(
            registry=OcrEngineRegistry([ocr or StubOcrEngine()]),
            llm_client=llm or StubLlmClient(),
            settings=settings or pipeline_settings,
            **kwargs
        )
        created.append(orchestrator)
        return orchestrator

    yield build

    for orchestrator in created:
        orchestrator.shutdown()
