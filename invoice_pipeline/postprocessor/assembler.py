"""
Invoice Assembler.

Builds ``InvoiceRecord`` objects from extracted fields. Each field goes
through its validator; rejected or missing values are replaced with
defaults so the caller always gets a complete record:

    invoice_number  INV-<FILE FRAGMENT>-<8 random chars>
    amount          0
    party_name      "Unknown Client"
    currency        "USD"

Author: ML Engineering Team
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from invoice_pipeline.model_inference.extracted_fields import ExtractedFields, present_or_none
from invoice_pipeline.records import InvoiceRecord, InvoiceStatus
from invoice_pipeline.utils.helpers import sanitize_fragment, strip_extension
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import InvalidRequestError
from .validators import (
    is_valid_amount,
    is_valid_invoice_number,
    is_valid_party_name,
    normalize_currency,
)

# Initialize module logger
logger = get_logger(__name__)

UNKNOWN_PARTY_NAME = "Unknown Client"
FAILED_SUFFIX = "-FAILED"
ZERO_AMOUNT = Decimal("0")
DEFAULT_SOURCE_FILE = "unknown"


def random_suffix() -> str:
    """8 uppercase characters of a fresh uuid4."""
    return str(uuid.uuid4())[:8].upper()


class InvoiceAssembler:
    """
    Factory for invoice records.

    Attributes:
        suffix_factory: Produces the random part of generated numbers
        clock: Source of creation timestamps

    Example:
        >>> assembler = InvoiceAssembler()
        >>> record = assembler.from_extracted_fields(ExtractedFields(), "scan_07.pdf")
        >>> record.invoice_number.startswith("INV-SCAN07-")
        True
        >>> record.party_name
        'Unknown Client'
    """

    def __init__(
        self,
        suffix_factory: Callable[[], str] = random_suffix,
        clock: Callable[[], datetime] = datetime.now
    ) -> None:
        self.suffix_factory = suffix_factory
        self.clock = clock

    def generate_invoice_number(self, file_name: Optional[str]) -> str:
        """
        Synthesize an invoice number from the file name.

        Example:
            >>> InvoiceAssembler(lambda: "ABCD1234").generate_invoice_number("acme bill.pdf")
            'INV-ACMEBILL-ABCD1234'
        """
        fragment = sanitize_fragment(strip_extension(file_name))
        return f"INV-{fragment}-{self.suffix_factory()}"

    def _new_record(
        self,
        file_name: Optional[str],
        invoice_number: str,
        amount: Decimal,
        party_name: str,
        party_address: Optional[str],
        currency: str,
        status: InvoiceStatus
    ) -> InvoiceRecord:
        now = self.clock()
        return InvoiceRecord(
            invoice_key=uuid.uuid4(),
            invoice_number=invoice_number,
            amount=amount,
            party_name=party_name,
            party_address=party_address,
            currency=currency,
            status=status,
            source_file_name=file_name or DEFAULT_SOURCE_FILE,
            created_at=now,
            updated_at=now,
        )

    def _accepted_fields(self, fields: ExtractedFields, file_name: Optional[str]):
        if is_valid_invoice_number(fields.invoice_number):
            invoice_number = fields.invoice_number.strip()
        else:
            invoice_number = self.generate_invoice_number(file_name)
            logger.warning(
                f"Invoice number missing or invalid ({fields.invoice_number!r}), "
                f"generated {invoice_number}"
            )

        if is_valid_amount(fields.amount):
            amount = fields.amount
        else:
            amount = ZERO_AMOUNT
            logger.warning(f"Amount missing or not positive ({fields.amount}), using 0")

        if is_valid_party_name(fields.party_name):
            party_name = fields.party_name.strip()
        else:
            party_name = UNKNOWN_PARTY_NAME
            logger.warning(f"Party name missing or invalid ({fields.party_name!r})")

        return (
            invoice_number,
            amount,
            party_name,
            present_or_none(fields.party_address),
            normalize_currency(fields.currency),
        )

    def from_extracted_fields(self, fields: ExtractedFields, file_name: Optional[str]) -> InvoiceRecord:
        """
        Build an EXTRACTED record from LLM output.

        Args:
            fields: Parsed LLM fields (any may be absent).
            file_name: Source file name, used for generated numbers.

        Returns:
            Complete, validated InvoiceRecord.
        """
        record = self._new_record(
            file_name, *self._accepted_fields(fields, file_name), InvoiceStatus.EXTRACTED
        )
        logger.debug(f"Assembled invoice {record.invoice_number} from {file_name}")
        return record

    def create_pending(self, fields: ExtractedFields, file_name: Optional[str]) -> InvoiceRecord:
        """
        Build a PENDING record, used when structured extraction was skipped.
        """
        return self._new_record(
            file_name, *self._accepted_fields(fields, file_name), InvoiceStatus.PENDING
        )

    def create_processing(self, file_name: Optional[str]) -> InvoiceRecord:
        """
        PROCESSING invoice for callers that register a document up front.

        The orchestrator never stores one: it saves the invoice only once
        fields are assembled, and a failed run gets ``create_failed`` instead.
        """
        return self._new_record(
            file_name,
            self.generate_invoice_number(file_name),
            ZERO_AMOUNT,
            UNKNOWN_PARTY_NAME,
            None,
            normalize_currency(None),
            InvoiceStatus.PROCESSING,
        )

    def create_failed(self, file_name: Optional[str]) -> InvoiceRecord:
        """Record for a document whose extraction produced nothing usable."""
        return self._new_record(
            file_name,
            self.generate_invoice_number(file_name) + FAILED_SUFFIX,
            ZERO_AMOUNT,
            UNKNOWN_PARTY_NAME,
            None,
            normalize_currency(None),
            InvoiceStatus.EXTRACTION_FAILED,
        )

    def create_manual(
        self,
        invoice_number: str,
        amount: Decimal,
        party_name: str,
        party_address: Optional[str] = None,
        currency: Optional[str] = None,
        file_name: str = "manual-entry"
    ) -> InvoiceRecord:
        """
        Build an EXTRACTED record from values typed in by a user.

        Unlike LLM output, invalid manual values are rejected.

        Raises:
            InvalidRequestError: If a required value is invalid.
        """
        if not is_valid_invoice_number(invoice_number):
            raise InvalidRequestError(f"invalid invoice number {invoice_number!r}")
        if not is_valid_amount(amount):
            raise InvalidRequestError(f"amount must be positive, got {amount}")
        if not is_valid_party_name(party_name):
            raise InvalidRequestError(f"invalid party name {party_name!r}")

        return self._new_record(
            file_name,
            invoice_number.strip(),
            Decimal(str(amount)),
            party_name.strip(),
            present_or_none(party_address),
            normalize_currency(currency),
            InvoiceStatus.EXTRACTED,
        )
