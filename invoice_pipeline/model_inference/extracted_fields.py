"""
Extracted Fields Data Class.

Structured invoice fields returned by the LLM. Every business field is
``Optional``: ``None`` means the model did not find it. Values are
normalized on construction, so a present field is never blank and never the
literal string "null".

Author: ML Engineering Team
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

DEFAULT_CURRENCY = "USD"


def present_or_none(value: Any) -> Optional[str]:
    """
    Normalize a raw field value.

    Returns:
        Trimmed string, or None for missing, blank and "null" values.

    Example:
        >>> present_or_none("  Acme  ")
        'Acme'
        >>> present_or_none("NULL") is None
        True
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == "null":
        return None
    return text


@dataclass(frozen=True)
class ExtractedFields:
    """
    Invoice fields produced by an LLM extraction client.

    Attributes:
        invoice_number: Invoice identifier as printed
        amount: Final payable total
        party_name: Billed party (client) name
        party_address: Billed party address
        currency: ISO 4217 code, "USD" when unknown
        confidence: Model self-assessment in [0, 1]

    Example:
        >>> fields = ExtractedFields(invoice_number="INV-42", amount=Decimal("10.00"))
        >>> fields.currency
        'USD'
        >>> fields.has_any_field
        True
    """
    invoice_number: Optional[str] = None
    amount: Optional[Decimal] = None
    party_name: Optional[str] = None
    party_address: Optional[str] = None
    currency: str = DEFAULT_CURRENCY
    confidence: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, 'invoice_number', present_or_none(self.invoice_number))
        object.__setattr__(self, 'party_name', present_or_none(self.party_name))
        object.__setattr__(self, 'party_address', present_or_none(self.party_address))
        currency = present_or_none(self.currency)
        object.__setattr__(self, 'currency', currency.upper() if currency else DEFAULT_CURRENCY)
        object.__setattr__(self, 'confidence', max(0.0, min(1.0, float(self.confidence))))

    @classmethod
    def empty(cls) -> 'ExtractedFields':
        """All fields absent, zero confidence."""
        return cls()

    @property
    def has_any_field(self) -> bool:
        return any(
            value is not None
            for value in (self.invoice_number, self.amount, self.party_name, self.party_address)
        )

    def preview(self) -> Dict[str, str]:
        """Field preview for progress events; "N/A" marks absent fields."""
        return {
            'invoiceNumber': self.invoice_number or "N/A",
            'amount': str(self.amount) if self.amount is not None else "N/A",
            'partyName': self.party_name or "N/A",
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'invoice_number': self.invoice_number,
            'amount': str(self.amount) if self.amount is not None else None,
            'party_name': self.party_name,
            'party_address': self.party_address,
            'currency': self.currency,
            'confidence': self.confidence,
        }
