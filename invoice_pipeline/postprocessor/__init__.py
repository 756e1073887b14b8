"""
Post-Processing Module.

Turns raw extraction output into validated records:
    - validators: field acceptance rules
    - assembler: InvoiceRecord factory with default substitution
    - metadata_factory: ExtractionMetadataRecord lifecycle
"""

from .assembler import InvoiceAssembler, UNKNOWN_PARTY_NAME
from .metadata_factory import ExtractionMetadataFactory
from .validators import (
    is_valid_amount,
    is_valid_invoice_number,
    is_valid_party_name,
    normalize_currency,
)

__all__ = [
    'InvoiceAssembler',
    'UNKNOWN_PARTY_NAME',
    'ExtractionMetadataFactory',
    'is_valid_amount',
    'is_valid_invoice_number',
    'is_valid_party_name',
    'normalize_currency',
]
