"""
Persistence Gateway Interface.

Storage contract for invoice and extraction records. Implementations must
serialize writes so a record is always replaced as a whole, and must treat
deletion as a soft delete: deleted records disappear from "active" queries
but stay retrievable with ``include_deleted=True`` and can be restored.

Author: ML Engineering Team
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from invoice_pipeline.records import (
    ExtractionMetadataRecord,
    ExtractionStatus,
    InvoiceRecord,
    InvoiceStatus,
)


class PersistenceGateway(ABC):
    """CRUD for InvoiceRecord and ExtractionMetadataRecord keyed by UUID."""

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    @abstractmethod
    def save_invoice(self, record: InvoiceRecord) -> InvoiceRecord:
        """Insert a new invoice. Raises DatabaseError on a duplicate key."""

    @abstractmethod
    def update_invoice(self, record: InvoiceRecord) -> InvoiceRecord:
        """Replace a stored invoice. Raises InvoiceNotFoundError if absent."""

    @abstractmethod
    def find_invoice(self, invoice_key: UUID, include_deleted: bool = False) -> Optional[InvoiceRecord]:
        """Invoice by key, or None."""

    @abstractmethod
    def find_all_active_invoices(self) -> List[InvoiceRecord]:
        """Non-deleted invoices, newest first."""

    @abstractmethod
    def find_invoice_by_number(self, invoice_number: str) -> Optional[InvoiceRecord]:
        """Most recent active invoice with this exact number."""

    @abstractmethod
    def search_invoices_by_party_name(self, fragment: str) -> List[InvoiceRecord]:
        """Active invoices whose party name contains fragment, ignoring case."""

    @abstractmethod
    def find_invoices_by_status(self, status: InvoiceStatus) -> List[InvoiceRecord]:
        """Active invoices in the given status."""

    @abstractmethod
    def soft_delete_invoice(self, invoice_key: UUID) -> bool:
        """Flag an invoice deleted. False if no active invoice has the key."""

    @abstractmethod
    def restore_invoice(self, invoice_key: UUID) -> bool:
        """Clear the deleted flag. False if no deleted invoice has the key."""

    # -------------------------------------------------------------------------
    # Extraction metadata
    # -------------------------------------------------------------------------

    @abstractmethod
    def save_extraction(self, record: ExtractionMetadataRecord) -> ExtractionMetadataRecord:
        """Insert a new extraction record."""

    @abstractmethod
    def update_extraction(self, record: ExtractionMetadataRecord) -> ExtractionMetadataRecord:
        """Replace a stored extraction. Raises ExtractionNotFoundError if absent."""

    @abstractmethod
    def find_extraction(
        self, extraction_key: UUID, include_deleted: bool = False
    ) -> Optional[ExtractionMetadataRecord]:
        """Extraction by key, or None."""

    @abstractmethod
    def find_extractions_by_invoice(self, invoice_key: UUID) -> List[ExtractionMetadataRecord]:
        """Active extractions linked to an invoice, newest first."""

    @abstractmethod
    def find_extractions_by_status(self, status: ExtractionStatus) -> List[ExtractionMetadataRecord]:
        """Active extractions in the given status."""

    @abstractmethod
    def find_all_active_extractions(self) -> List[ExtractionMetadataRecord]:
        """Non-deleted extractions, newest first."""

    @abstractmethod
    def find_low_confidence_extractions(self, threshold: float) -> List[ExtractionMetadataRecord]:
        """Active extractions scored below threshold."""

    @abstractmethod
    def soft_delete_extraction(self, extraction_key: UUID) -> bool:
        """Flag an extraction deleted. False if no active extraction has the key."""
