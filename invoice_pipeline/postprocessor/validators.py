"""
Field Validators.

Acceptance rules for LLM-extracted values. A value that fails its rule is
replaced with a default by the assembler; it is never an error.

Author: ML Engineering Team
"""

import re
from decimal import Decimal
from typing import Optional

from invoice_pipeline.model_inference.extracted_fields import DEFAULT_CURRENCY

MIN_INVOICE_NUMBER_LENGTH = 3
MIN_PARTY_NAME_LENGTH = 2
PLACEHOLDER_VALUES = frozenset({"null", "unknown"})

_CURRENCY_CODE = re.compile(r'^[A-Z]{3}$')


def _is_placeholder(value: str) -> bool:
    return value.strip().lower() in PLACEHOLDER_VALUES


def is_valid_invoice_number(value: Optional[str]) -> bool:
    """
    Accept invoice numbers of 3+ characters that are not placeholders.

    Example:
        >>> is_valid_invoice_number("INV-42")
        True
        >>> is_valid_invoice_number("Unknown")
        False
    """
    if value is None:
        return False
    value = value.strip()
    return len(value) >= MIN_INVOICE_NUMBER_LENGTH and not _is_placeholder(value)


def is_valid_amount(value: Optional[Decimal]) -> bool:
    """Accept strictly positive amounts."""
    return value is not None and value > 0


def is_valid_party_name(value: Optional[str]) -> bool:
    """Accept party names of 2+ characters that are not placeholders."""
    if value is None:
        return False
    value = value.strip()
    return len(value) >= MIN_PARTY_NAME_LENGTH and not _is_placeholder(value)


def normalize_currency(value: Optional[str]) -> str:
    """
    Uppercase a currency code, falling back to USD when it is not 3 letters.

    Example:
        >>> normalize_currency("eur")
        'EUR'
        >>> normalize_currency("dollars")
        'USD'
    """
    if not value:
        return DEFAULT_CURRENCY
    code = value.strip().upper()
    return code if _CURRENCY_CODE.match(code) else DEFAULT_CURRENCY
