"""
Persisted Record Types.

``InvoiceRecord`` and ``ExtractionMetadataRecord`` are frozen dataclasses.
A record changes only by building a whole new copy (``with_changes``,
``soft_deleted``, ...), which also refreshes ``updated_at``; persistence
gateways then replace the stored record in one write.

Author: ML Engineering Team
"""

import dataclasses
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

_CURRENCY_PATTERN = re.compile(r'^[A-Z]{3}$')


class InvoiceStatus(str, Enum):
    """Lifecycle of an invoice record."""
    PROCESSING = "PROCESSING"
    EXTRACTED = "EXTRACTED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    PENDING = "PENDING"


class ExtractionStatus(str, Enum):
    """Lifecycle of an extraction attempt."""
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    PARTIAL = "PARTIAL"

    @property
    def is_terminal(self) -> bool:
        return self is not ExtractionStatus.PROCESSING


@dataclass(frozen=True)
class InvoiceRecord:
    """
    One invoice extracted from one uploaded document.

    Attributes:
        invoice_key: Public identifier
        invoice_number: Printed or generated invoice number
        amount: Final payable total (0 when unknown)
        party_name: Billed party
        party_address: Billed party address, if found
        currency: ISO 4217 code
        status: InvoiceStatus
        source_file_name: Uploaded file name
        created_at: Creation time
        updated_at: Time of the last whole-record replacement
        is_deleted: Soft-delete flag
    """
    invoice_key: UUID
    invoice_number: str
    amount: Decimal
    party_name: str
    party_address: Optional[str]
    currency: str
    status: InvoiceStatus
    source_file_name: str
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    is_deleted: bool = False

    def __post_init__(self) -> None:
        if not self.invoice_number or not self.invoice_number.strip():
            raise ValueError("invoice_number must not be blank")
        if not self.party_name or not self.party_name.strip():
            raise ValueError("party_name must not be blank")
        if self.amount is None or self.amount < 0:
            raise ValueError(f"amount must be non-negative, got {self.amount}")
        if not _CURRENCY_PATTERN.match(self.currency or ""):
            raise ValueError(f"currency must be a 3-letter code, got {self.currency!r}")
        if not self.source_file_name:
            raise ValueError("source_file_name must not be blank")
        object.__setattr__(self, 'status', InvoiceStatus(self.status))

    def with_changes(self, **changes: Any) -> 'InvoiceRecord':
        """Return a replacement record with ``updated_at`` refreshed."""
        changes.setdefault('updated_at', datetime.now())
        return dataclasses.replace(self, **changes)

    def with_status(self, status: InvoiceStatus) -> 'InvoiceRecord':
        return self.with_changes(status=status)

    def soft_deleted(self) -> 'InvoiceRecord':
        return self.with_changes(is_deleted=True)

    def restored(self) -> 'InvoiceRecord':
        return self.with_changes(is_deleted=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'invoice_key': str(self.invoice_key),
            'invoice_number': self.invoice_number,
            'amount': str(self.amount),
            'party_name': self.party_name,
            'party_address': self.party_address,
            'currency': self.currency,
            'status': self.status.value,
            'source_file_name': self.source_file_name,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'is_deleted': self.is_deleted,
        }


@dataclass(frozen=True)
class ExtractionMetadataRecord:
    """
    Audit record of one extraction attempt.

    ``extraction_key`` is created when the pipeline starts and correlates
    every progress event of the attempt. ``invoice_key`` is set once the
    invoice has been saved.
    """
    extraction_key: UUID
    source_file_name: str
    status: ExtractionStatus
    invoice_key: Optional[UUID] = None
    extraction_timestamp: datetime = field(default_factory=datetime.now)
    confidence_score: Optional[float] = None
    engine_identifier: Optional[str] = None
    raw_extraction_payload: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    is_deleted: bool = False

    def __post_init__(self) -> None:
        if not self.source_file_name:
            raise ValueError("source_file_name must not be blank")
        if self.confidence_score is not None and not 0.0 <= self.confidence_score <= 1.0:
            raise ValueError(f"confidence_score must be in [0, 1], got {self.confidence_score}")
        object.__setattr__(self, 'status', ExtractionStatus(self.status))

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def is_low_confidence(self, threshold: float) -> bool:
        return self.confidence_score is not None and self.confidence_score < threshold

    def with_changes(self, **changes: Any) -> 'ExtractionMetadataRecord':
        return dataclasses.replace(self, **changes)

    def soft_deleted(self) -> 'ExtractionMetadataRecord':
        return self.with_changes(is_deleted=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'extraction_key': str(self.extraction_key),
            'invoice_key': str(self.invoice_key) if self.invoice_key else None,
            'source_file_name': self.source_file_name,
            'extraction_timestamp': self.extraction_timestamp.isoformat(),
            'status': self.status.value,
            'confidence_score': self.confidence_score,
            'engine_identifier': self.engine_identifier,
            'raw_extraction_payload': self.raw_extraction_payload,
            'error_message': self.error_message,
            'created_at': self.created_at.isoformat(),
            'is_deleted': self.is_deleted,
        }
