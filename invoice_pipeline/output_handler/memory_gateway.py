"""
In-Memory Persistence Gateway.

Dictionary-backed gateway for tests and ``--no-database`` runs. A single
lock guards both tables.
"""

import threading
from typing import Dict, List, Optional
from uuid import UUID

from invoice_pipeline.records import (
    ExtractionMetadataRecord,
    ExtractionStatus,
    InvoiceRecord,
    InvoiceStatus,
)
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import (
    DatabaseError,
    ExtractionNotFoundError,
    InvoiceNotFoundError,
)
from .gateway import PersistenceGateway

# Initialize module logger
logger = get_logger(__name__)


class InMemoryPersistenceGateway(PersistenceGateway):
    """Thread-safe in-memory implementation of ``PersistenceGateway``."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._invoices: Dict[UUID, InvoiceRecord] = {}
        self._extractions: Dict[UUID, ExtractionMetadataRecord] = {}

    # Invoices -----------------------------------------------------------------

    def save_invoice(self, record: InvoiceRecord) -> InvoiceRecord:
        with self._lock:
            if record.invoice_key in self._invoices:
                raise DatabaseError("save_invoice", f"duplicate key {record.invoice_key}")
            self._invoices[record.invoice_key] = record
        logger.debug(f"Saved invoice {record.invoice_key} ({record.invoice_number})")
        return record

    def update_invoice(self, record: InvoiceRecord) -> InvoiceRecord:
        with self._lock:
            if record.invoice_key not in self._invoices:
                raise InvoiceNotFoundError(record.invoice_key)
            self._invoices[record.invoice_key] = record
        return record

    def find_invoice(self, invoice_key: UUID, include_deleted: bool = False) -> Optional[InvoiceRecord]:
        with self._lock:
            record = self._invoices.get(invoice_key)
        if record is None or (record.is_deleted and not include_deleted):
            return None
        return record

    def _active_invoices(self) -> List[InvoiceRecord]:
        with self._lock:
            records = [r for r in self._invoices.values() if not r.is_deleted]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def find_all_active_invoices(self) -> List[InvoiceRecord]:
        return self._active_invoices()

    def find_invoice_by_number(self, invoice_number: str) -> Optional[InvoiceRecord]:
        for record in self._active_invoices():
            if record.invoice_number == invoice_number:
                return record
        return None

    def search_invoices_by_party_name(self, fragment: str) -> List[InvoiceRecord]:
        needle = (fragment or "").lower()
        return [r for r in self._active_invoices() if needle in r.party_name.lower()]

    def find_invoices_by_status(self, status: InvoiceStatus) -> List[InvoiceRecord]:
        return [r for r in self._active_invoices() if r.status == status]

    def soft_delete_invoice(self, invoice_key: UUID) -> bool:
        with self._lock:
            record = self._invoices.get(invoice_key)
            if record is None or record.is_deleted:
                return False
            self._invoices[invoice_key] = record.soft_deleted()
        logger.info(f"Soft-deleted invoice {invoice_key}")
        return True

    def restore_invoice(self, invoice_key: UUID) -> bool:
        with self._lock:
            record = self._invoices.get(invoice_key)
            if record is None or not record.is_deleted:
                return False
            self._invoices[invoice_key] = record.restored()
        logger.info(f"Restored invoice {invoice_key}")
        return True

    # Extractions --------------------------------------------------------------

    def save_extraction(self, record: ExtractionMetadataRecord) -> ExtractionMetadataRecord:
        with self._lock:
            if record.extraction_key in self._extractions:
                raise DatabaseError("save_extraction", f"duplicate key {record.extraction_key}")
            self._extractions[record.extraction_key] = record
        return record

    def update_extraction(self, record: ExtractionMetadataRecord) -> ExtractionMetadataRecord:
        with self._lock:
            if record.extraction_key not in self._extractions:
                raise ExtractionNotFoundError(record.extraction_key)
            self._extractions[record.extraction_key] = record
        return record

    def find_extraction(
        self, extraction_key: UUID, include_deleted: bool = False
    ) -> Optional[ExtractionMetadataRecord]:
        with self._lock:
            record = self._extractions.get(extraction_key)
        if record is None or (record.is_deleted and not include_deleted):
            return None
        return record

    def _active_extractions(self) -> List[ExtractionMetadataRecord]:
        with self._lock:
            records = [r for r in self._extractions.values() if not r.is_deleted]
        return sorted(records, key=lambda r: r.extraction_timestamp, reverse=True)

    def find_extractions_by_invoice(self, invoice_key: UUID) -> List[ExtractionMetadataRecord]:
        return [r for r in self._active_extractions() if r.invoice_key == invoice_key]

    def find_extractions_by_status(self, status: ExtractionStatus) -> List[ExtractionMetadataRecord]:
        return [r for r in self._active_extractions() if r.status == status]

    def find_all_active_extractions(self) -> List[ExtractionMetadataRecord]:
        return self._active_extractions()

    def find_low_confidence_extractions(self, threshold: float) -> List[ExtractionMetadataRecord]:
        return [r for r in self._active_extractions() if r.is_low_confidence(threshold)]

    def soft_delete_extraction(self, extraction_key: UUID) -> bool:
        with self._lock:
            record = self._extractions.get(extraction_key)
            if record is None or record.is_deleted:
                return False
            self._extractions[extraction_key] = record.soft_deleted()
        return True
