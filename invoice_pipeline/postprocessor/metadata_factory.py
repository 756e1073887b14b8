"""
Extraction Metadata Factory.

Creates the PROCESSING record at pipeline start and the single terminal
copy (COMPLETED, PARTIAL or FAILED) that finalizes it.

Author: ML Engineering Team
"""

import json
import uuid
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from invoice_pipeline.model_inference.extracted_fields import ExtractedFields
from invoice_pipeline.ocr_engine.ocr_result import OcrOutcome
from invoice_pipeline.records import ExtractionMetadataRecord, ExtractionStatus


def build_raw_payload(outcome: OcrOutcome, fields: Optional[ExtractedFields] = None) -> str:
    """JSON document stored as the raw extraction payload."""
    payload = {
        'text': outcome.extracted_text,
        'length': outcome.text_length,
        'pageCount': outcome.page_count,
    }
    if fields is not None:
        payload['fields'] = fields.to_dict()
    return json.dumps(payload, ensure_ascii=False)


class ExtractionMetadataFactory:
    """Builds metadata records for each stage of an extraction."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self.clock = clock

    def create_processing(self, file_name: str) -> ExtractionMetadataRecord:
        now = self.clock()
        return ExtractionMetadataRecord(
            extraction_key=uuid.uuid4(),
            source_file_name=file_name,
            status=ExtractionStatus.PROCESSING,
            extraction_timestamp=now,
            created_at=now,
        )

    def completed(
        self,
        record: ExtractionMetadataRecord,
        invoice_key: UUID,
        outcome: OcrOutcome,
        fields: Optional[ExtractedFields] = None
    ) -> ExtractionMetadataRecord:
        return record.with_changes(
            status=ExtractionStatus.COMPLETED,
            invoice_key=invoice_key,
            confidence_score=outcome.confidence_score,
            engine_identifier=outcome.engine_identifier,
            raw_extraction_payload=build_raw_payload(outcome, fields),
            extraction_timestamp=self.clock(),
        )

    def partial(
        self,
        record: ExtractionMetadataRecord,
        invoice_key: UUID,
        outcome: OcrOutcome,
        reason: str,
        fields: Optional[ExtractedFields] = None
    ) -> ExtractionMetadataRecord:
        """OCR text delivered, structured fields incomplete or missing."""
        return record.with_changes(
            status=ExtractionStatus.PARTIAL,
            invoice_key=invoice_key,
            confidence_score=outcome.confidence_score,
            engine_identifier=outcome.engine_identifier,
            raw_extraction_payload=build_raw_payload(outcome, fields),
            error_message=reason,
            extraction_timestamp=self.clock(),
        )

    def failed(
        self,
        record: ExtractionMetadataRecord,
        error_message: str,
        invoice_key: Optional[UUID] = None,
        engine_identifier: Optional[str] = None
    ) -> ExtractionMetadataRecord:
        return record.with_changes(
            status=ExtractionStatus.FAILED,
            invoice_key=invoice_key,
            confidence_score=0.0,
            engine_identifier=engine_identifier or record.engine_identifier,
            error_message=error_message,
            extraction_timestamp=self.clock(),
        )
