"""
Extraction Orchestrator Module.

Coordinates one extraction end to end:

    1. Intake validation and engine selection (synchronous)
    2. OCR on the stage pool, bounded by ``ocr_timeout_seconds``
    3. LLM field extraction on the stage pool, bounded by ``llm_timeout_seconds``
    4. Invoice assembly and persistence
    5. Extraction metadata finalization

A progress event is published after each step. Any stage failure is
terminal: the metadata is finalized as FAILED and linked to one invoice (the
one already saved, now EXTRACTION_FAILED, or else a ``-FAILED``
placeholder), one EXTRACTION_FAILED event is published and the returned
future raises the typed error.

Stage timeouts start when a stage begins running, not when it is queued.
Uploads kept in the file store are deleted once their extraction succeeds;
failed ones stay available to ``retry_extraction``.

Author: ML Engineering Team
"""

import threading
from concurrent import futures
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar
from uuid import UUID

from config.settings import AppSettings, PipelineSettings
from invoice_pipeline.input_handler import (
    InputHandler,
    PdfPageRenderer,
    detect_mime_type,
    normalize_mime_type,
)
from invoice_pipeline.model_inference import ExtractedFields, GroqLlmClient, LlmExtractionClient
from invoice_pipeline.ocr_engine import OcrEngine, OcrEngineRegistry, OcrOutcome, TesseractOcrEngine
from invoice_pipeline.output_handler import (
    FileStore,
    InMemoryPersistenceGateway,
    LocalFileStore,
    PersistenceGateway,
    SqlitePersistenceGateway,
)
from invoice_pipeline.postprocessor import ExtractionMetadataFactory, InvoiceAssembler
from invoice_pipeline.records import (
    ExtractionMetadataRecord,
    ExtractionStatus,
    InvoiceRecord,
    InvoiceStatus,
)
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import (
    ErrorCodes,
    ExtractionFailedError,
    ExtractionNotFoundError,
    InternalError,
    InvalidRequestError,
    InvoiceNotFoundError,
    InvoicePipelineError,
    LlmServiceUnavailableError,
    LlmTimeoutError,
)
from .progress import PipelineStage, ProgressEvent, ProgressTracker
from .publishers import (
    CompositeProgressPublisher,
    LoggingProgressPublisher,
    MetricsProgressPublisher,
    ProgressPublisher,
)

# Initialize module logger
logger = get_logger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class ExtractionOutcome:
    """Result of a successful extraction."""
    invoice: InvoiceRecord
    metadata: ExtractionMetadataRecord
    fields: ExtractedFields
    ocr: OcrOutcome

    @property
    def extraction_key(self) -> UUID:
        return self.metadata.extraction_key

    def to_dict(self) -> Dict[str, Any]:
        return {
            'invoice': self.invoice.to_dict(),
            'extraction': {
                k: v for k, v in self.metadata.to_dict().items()
                if k != 'raw_extraction_payload'
            },
            'llm_confidence': self.fields.confidence,
        }


class ExtractionOrchestrator:
    """
    Runs the OCR -> LLM -> persistence pipeline.

    Attributes:
        registry: OCR engine registry
        llm_client: Structured field extractor
        gateway: Record persistence
        publisher: Progress event sink
        settings: Pool sizes, timeouts and intake limits

    Example:
        >>> orchestrator = build_orchestrator(load_settings())
        >>> future = orchestrator.run_extraction(pdf_bytes, "invoice.pdf", "application/pdf")
        >>> outcome = future.result()
        >>> outcome.invoice.invoice_number
        'INV-2024-001'
    """

    def __init__(
        self,
        registry: OcrEngineRegistry,
        llm_client: LlmExtractionClient,
        gateway: PersistenceGateway,
        publisher: Optional[ProgressPublisher] = None,
        settings: Optional[PipelineSettings] = None,
        assembler: Optional[InvoiceAssembler] = None,
        metadata_factory: Optional[ExtractionMetadataFactory] = None,
        file_store: Optional[FileStore] = None
    ) -> None:
        self.registry = registry
        self.llm_client = llm_client
        self.gateway = gateway
        self.publisher = publisher or LoggingProgressPublisher()
        self.settings = settings or PipelineSettings()
        self.assembler = assembler or InvoiceAssembler()
        self.metadata_factory = metadata_factory or ExtractionMetadataFactory()
        self.file_store = file_store

        self.intake = InputHandler(max_file_size_bytes=self.settings.max_file_size_bytes)
        # Uploads kept for retry, keyed by extraction; dropped once an extraction succeeds
        self._file_keys: Dict[UUID, str] = {}
        self._file_keys_lock = threading.Lock()

        self._pipeline_pool = ThreadPoolExecutor(
            max_workers=self.settings.max_concurrent_extractions,
            thread_name_prefix="extraction",
        )
        self._stage_pool = ThreadPoolExecutor(
            max_workers=self.settings.stage_workers,
            thread_name_prefix="extraction-stage",
        )

        logger.info(
            f"ExtractionOrchestrator initialized "
            f"(pipelines={self.settings.max_concurrent_extractions}, "
            f"stage workers={self.settings.stage_workers}, "
            f"llm={self.llm_client.provider_name()})"
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def run_extraction(
        self,
        file_bytes: bytes,
        file_name: str,
        mime_type: Optional[str] = None
    ) -> 'Future[ExtractionOutcome]':
        """
        Start an extraction.

        Intake problems are raised immediately; everything after that is
        reported through the returned future and the progress publisher.

        Args:
            file_bytes: Raw document content.
            file_name: Original filename.
            mime_type: Declared MIME type; guessed from the name when omitted.

        Returns:
            Future resolving to an ExtractionOutcome.

        Raises:
            InvalidRequestError: If the file or its name is empty.
            FileTooLargeError: If the file exceeds the size limit.
            UnsupportedFileTypeError: If no OCR engine supports the type.
            DatabaseError: If the PROCESSING record cannot be saved.
        """
        self.intake.validate(file_bytes, file_name)
        mime = normalize_mime_type(mime_type) or detect_mime_type(file_name)
        engine = self.registry.select(mime)

        file_key = None
        if self.file_store is not None:
            file_key = self.file_store.store(file_bytes, file_name, mime)

        metadata = self.metadata_factory.create_processing(file_name)
        self.gateway.save_extraction(metadata)
        extraction_key = metadata.extraction_key
        if file_key is not None:
            with self._file_keys_lock:
                self._file_keys[extraction_key] = file_key

        tracker = ProgressTracker(extraction_key)
        self._publish(ProgressEvent.for_stage(
            PipelineStage.STARTED, extraction_key, f"Extraction started for {file_name}"
        ))

        return self._pipeline_pool.submit(
            self._run_pipeline, tracker, metadata, engine, file_bytes, file_name, mime
        )

    def retry_extraction(
        self,
        extraction_key: UUID,
        file_bytes: Optional[bytes] = None
    ) -> 'Future[ExtractionOutcome]':
        """
        Re-run a FAILED extraction under a new extraction key.

        Args:
            extraction_key: Key of the failed extraction.
            file_bytes: Original content; read from the file store when omitted.

        Raises:
            ExtractionNotFoundError: If no such extraction exists.
            InvalidRequestError: If it did not fail or its file is unavailable.
        """
        previous = self.gateway.find_extraction(extraction_key)
        if previous is None:
            raise ExtractionNotFoundError(extraction_key)
        if previous.status is not ExtractionStatus.FAILED:
            raise InvalidRequestError(
                f"extraction {extraction_key} is {previous.status.value}, only FAILED can be retried"
            )

        mime_type = None
        if file_bytes is None:
            with self._file_keys_lock:
                file_key = self._file_keys.get(extraction_key)
            if file_key is None or self.file_store is None:
                raise InvalidRequestError(f"original file for {extraction_key} is not available")
            stored = self.file_store.retrieve(file_key)
            file_bytes, mime_type = stored.content, stored.mime_type

        logger.info(f"Retrying extraction {extraction_key} ({previous.source_file_name})")
        future = self.run_extraction(file_bytes, previous.source_file_name, mime_type)
        # The new attempt stored its own copy
        self._discard_upload(extraction_key)
        return future

    def get_extraction_for_invoice(self, invoice_key: UUID) -> ExtractionMetadataRecord:
        """
        Most recent extraction linked to an invoice.

        Raises:
            ExtractionNotFoundError: If the invoice has no active extraction.
        """
        records = self.gateway.find_extractions_by_invoice(invoice_key)
        if not records:
            raise ExtractionNotFoundError(invoice_key, key_name="invoice_key")
        return records[0]

    def get_invoice(self, invoice_key: UUID) -> InvoiceRecord:
        record = self.gateway.find_invoice(invoice_key)
        if record is None:
            raise InvoiceNotFoundError(invoice_key)
        return record

    def low_confidence_extractions(self) -> List[ExtractionMetadataRecord]:
        """Extractions below ``low_confidence_threshold``, for manual review."""
        return self.gateway.find_low_confidence_extractions(
            self.settings.low_confidence_threshold
        )

    def shutdown(self, wait: bool = True) -> None:
        self._pipeline_pool.shutdown(wait=wait)
        self._stage_pool.shutdown(wait=wait)
        logger.debug("ExtractionOrchestrator shut down")

    def __enter__(self) -> 'ExtractionOrchestrator':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _run_pipeline(
        self,
        tracker: ProgressTracker,
        metadata: ExtractionMetadataRecord,
        engine: OcrEngine,
        file_bytes: bytes,
        file_name: str,
        mime_type: str
    ) -> ExtractionOutcome:
        extraction_key = tracker.extraction_key
        ocr: Optional[OcrOutcome] = None
        invoice: Optional[InvoiceRecord] = None

        try:
            ocr = self._run_ocr(engine, file_bytes, file_name, mime_type)
            self._advance(tracker, PipelineStage.OCR_DONE, "OCR completed", {
                'pageCount': ocr.page_count,
                'confidenceScore': ocr.confidence_score,
                'processingTimeMs': ocr.processing_time_ms,
            })

            fields, llm_used = self._run_llm(ocr.extracted_text)
            self._advance(
                tracker, PipelineStage.LLM_DONE, "Field extraction completed", fields.preview()
            )

            if llm_used:
                assembled = self.assembler.from_extracted_fields(fields, file_name)
            else:
                assembled = self.assembler.create_pending(fields, file_name)
            invoice = self.gateway.save_invoice(assembled)
            self._advance(tracker, PipelineStage.PERSISTED, "Invoice saved", {
                'invoiceKey': str(invoice.invoice_key),
            })

            if not llm_used:
                final = self.metadata_factory.partial(
                    metadata, invoice.invoice_key, ocr, "LLM extraction unavailable", fields
                )
            elif not fields.has_any_field:
                final = self.metadata_factory.partial(
                    metadata, invoice.invoice_key, ocr, "LLM returned no invoice fields", fields
                )
            else:
                final = self.metadata_factory.completed(metadata, invoice.invoice_key, ocr, fields)
            self.gateway.update_extraction(final)
            self._discard_upload(extraction_key)

            self._advance(tracker, PipelineStage.COMPLETED, "Extraction completed", {
                'invoiceKey': str(invoice.invoice_key),
                'confidenceScore': fields.confidence,
            })
            return ExtractionOutcome(invoice=invoice, metadata=final, fields=fields, ocr=ocr)

        except InvoicePipelineError as e:
            e.add_detail('extraction_key', str(extraction_key))
            self._fail(tracker, metadata, e, file_name, ocr, invoice)
            raise
        except Exception as e:
            error = InternalError(str(e)).add_detail('extraction_key', str(extraction_key))
            logger.exception(f"Unexpected error in extraction {extraction_key}")
            self._fail(tracker, metadata, error, file_name, ocr, invoice)
            raise error from e

    def _run_stage(self, work: Callable[..., T], timeout: float, *args: Any) -> T:
        """
        Run ``work`` on the stage pool and wait at most ``timeout`` seconds
        once it has started.

        Time spent queued behind other requests' stages does not count.

        Raises:
            concurrent.futures.TimeoutError: If the work outlives the timeout.
        """
        started = threading.Event()

        def job() -> T:
            started.set()
            return work(*args)

        future = self._stage_pool.submit(job)
        started.wait()
        return future.result(timeout=timeout)

    def _run_ocr(
        self,
        engine: OcrEngine,
        file_bytes: bytes,
        file_name: str,
        mime_type: str
    ) -> OcrOutcome:
        timeout = self.settings.ocr_timeout_seconds
        try:
            ocr = self._run_stage(engine.extract, timeout, file_bytes, file_name, mime_type)
        except futures.TimeoutError as e:
            raise ExtractionFailedError(
                f"OCR timed out after {timeout:g}s", file_name, ErrorCodes.OCR_TIMEOUT
            ) from e

        if not ocr.has_text:
            raise ExtractionFailedError("OCR produced no text", file_name)
        return ocr

    def _run_llm(self, ocr_text: str) -> Tuple[ExtractedFields, bool]:
        """Return the extracted fields and whether the LLM was actually used."""
        if not self.llm_client.is_available():
            logger.warning(
                f"{self.llm_client.provider_name()} unavailable, continuing with OCR text only"
            )
            return ExtractedFields.empty(), False

        timeout = self.settings.llm_timeout_seconds
        try:
            return self._run_stage(self.llm_client.extract, timeout, ocr_text), True
        except futures.TimeoutError as e:
            raise LlmTimeoutError(timeout) from e
        except LlmServiceUnavailableError as e:
            logger.warning(f"{e.message}, continuing with OCR text only")
            return ExtractedFields.empty(), False

    def _fail(
        self,
        tracker: ProgressTracker,
        metadata: ExtractionMetadataRecord,
        error: InvoicePipelineError,
        file_name: str,
        ocr: Optional[OcrOutcome],
        invoice: Optional[InvoiceRecord] = None
    ) -> None:
        """
        Finalize a failed extraction.

        An invoice already saved by this extraction is marked
        EXTRACTION_FAILED; otherwise a ``-FAILED`` placeholder is saved. Either
        way the extraction ends up linked to exactly one invoice.
        """
        logger.error(f"Extraction {tracker.extraction_key} failed: {error}")

        invoice_key = None
        try:
            if invoice is not None:
                self.gateway.update_invoice(invoice.with_status(InvoiceStatus.EXTRACTION_FAILED))
                invoice_key = invoice.invoice_key
            else:
                placeholder = self.assembler.create_failed(file_name)
                self.gateway.save_invoice(placeholder)
                invoice_key = placeholder.invoice_key
        except InvoicePipelineError as e:
            logger.error(f"Could not record failed invoice for {tracker.extraction_key}: {e}")
            if invoice is not None:
                invoice_key = invoice.invoice_key

        try:
            self.gateway.update_extraction(self.metadata_factory.failed(
                metadata,
                error.message,
                invoice_key=invoice_key,
                engine_identifier=ocr.engine_identifier if ocr else None,
            ))
        except InvoicePipelineError as e:
            logger.error(f"Could not finalize extraction {tracker.extraction_key}: {e}")

        self._advance(tracker, PipelineStage.FAILED, error.message, {
            'errorMessage': error.message,
            'errorCode': error.error_code,
        })

    def _discard_upload(self, extraction_key: UUID) -> None:
        """Delete the stored upload of an extraction that no longer needs it."""
        with self._file_keys_lock:
            file_key = self._file_keys.pop(extraction_key, None)
        if file_key is None or self.file_store is None:
            return
        try:
            self.file_store.delete(file_key)
        except InvoicePipelineError as e:
            logger.warning(f"Could not delete stored upload {file_key}: {e}")

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def _advance(
        self,
        tracker: ProgressTracker,
        stage: PipelineStage,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        if not tracker.advance(stage):
            logger.warning(
                f"Ignoring {stage.name} for {tracker.extraction_key}: "
                f"already at {tracker.stage.name}"
            )
            return
        self._publish(ProgressEvent.for_stage(stage, tracker.extraction_key, message, metadata))

    def _publish(self, event: ProgressEvent) -> None:
        try:
            self.publisher.publish(event.extraction_key, event)
        except Exception as e:
            logger.warning(f"Failed to publish {event.type.value} for {event.extraction_key}: {e}")


def build_orchestrator(
    settings: AppSettings,
    gateway: Optional[PersistenceGateway] = None,
    publisher: Optional[ProgressPublisher] = None,
    llm_client: Optional[LlmExtractionClient] = None
) -> ExtractionOrchestrator:
    """
    Wire a production orchestrator from settings.

    Args:
        settings: Loaded application settings.
        gateway: Overrides the gateway chosen by ``storage.database_enabled``.
        publisher: Overrides the default logging + metrics publisher.
        llm_client: Overrides the Groq client.

    Returns:
        Ready-to-use ExtractionOrchestrator.
    """
    input_handler = InputHandler(
        PdfPageRenderer(dpi=settings.ocr.pdf_dpi),
        max_file_size_bytes=settings.pipeline.max_file_size_bytes,
    )
    registry = OcrEngineRegistry([TesseractOcrEngine(settings.ocr, input_handler)])

    if gateway is None:
        if settings.storage.database_enabled:
            gateway = SqlitePersistenceGateway(settings.storage.database_path)
        else:
            gateway = InMemoryPersistenceGateway()

    if publisher is None:
        publisher = CompositeProgressPublisher([
            LoggingProgressPublisher(),
            MetricsProgressPublisher(),
        ])

    return ExtractionOrchestrator(
        registry=registry,
        llm_client=llm_client or GroqLlmClient(settings.llm),
        gateway=gateway,
        publisher=publisher,
        settings=settings.pipeline,
        file_store=LocalFileStore(settings.storage.upload_dir),
    )
