"""
Tolerant parsing of LLM extraction replies.

A reply is unusable (``LlmInvalidResponseError``) only when it has no
choices, an empty message, or content that is not a JSON object. Inside a
usable object every field is optional: missing keys, nulls, blanks and
unparsable amounts become absent values, and a bad confidence falls back to
a fixed default.

Author: ML Engineering Team
"""

import json
import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import LlmInvalidResponseError
from .extracted_fields import DEFAULT_CURRENCY, ExtractedFields, present_or_none

# Initialize module logger
logger = get_logger(__name__)

DEFAULT_LLM_CONFIDENCE = 0.85

_OPENING_FENCE = re.compile(r'^```(?:json|JSON)?\s*')
_CLOSING_FENCE = re.compile(r'\s*```$')
_NOT_AMOUNT_CHAR = re.compile(r'[^0-9.]')


def strip_code_fences(content: str) -> str:
    """
    Remove a surrounding markdown code fence, if any.

    Example:
        >>> strip_code_fences('```json\\n{"a": 1}\\n```')
        '{"a": 1}'
    """
    text = content.strip()
    text = _OPENING_FENCE.sub('', text, count=1)
    text = _CLOSING_FENCE.sub('', text, count=1)
    return text.strip()


def sanitize_amount(raw: Any) -> Optional[Decimal]:
    """
    Parse an amount copied verbatim from an invoice.

    Everything except digits and the decimal point is stripped. When more
    than one point survives (for example "1.234.56"), the last one is kept
    as the decimal separator.

    Args:
        raw: Amount as returned by the model (string or number).

    Returns:
        Decimal amount, or None when nothing numeric remains.

    Example:
        >>> sanitize_amount("$1,234.56")
        Decimal('1234.56')
        >>> sanitize_amount("N/A") is None
        True
    """
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and not math.isfinite(raw):
            return None
        raw = str(raw)

    text = present_or_none(raw)
    if text is None:
        return None

    cleaned = _NOT_AMOUNT_CHAR.sub('', text)
    if cleaned.count('.') > 1:
        head, _, tail = cleaned.rpartition('.')
        cleaned = f"{head.replace('.', '')}.{tail}"

    if not cleaned or cleaned == '.':
        return None

    try:
        return Decimal(cleaned)
    except InvalidOperation:
        logger.debug(f"Unparsable amount after sanitizing: {raw!r}")
        return None


def parse_confidence(raw: Any, default: float = DEFAULT_LLM_CONFIDENCE) -> float:
    """
    Use the model's confidence when it is a number in [0, 1].

    Example:
        >>> parse_confidence(0.95)
        0.95
        >>> parse_confidence(5.0)
        0.85
    """
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        return default
    return value


def fields_from_mapping(
    data: Mapping[str, Any],
    default_confidence: float = DEFAULT_LLM_CONFIDENCE
) -> ExtractedFields:
    """Build ExtractedFields from a decoded JSON object."""
    currency = present_or_none(data.get("currency"))
    return ExtractedFields(
        invoice_number=present_or_none(data.get("invoice_number")),
        amount=sanitize_amount(data.get("amount")),
        party_name=present_or_none(data.get("party_name")),
        party_address=present_or_none(data.get("party_address")),
        currency=currency.upper() if currency else DEFAULT_CURRENCY,
        confidence=parse_confidence(data.get("confidence"), default_confidence),
    )


def parse_response_content(
    content: Optional[str],
    default_confidence: float = DEFAULT_LLM_CONFIDENCE
) -> ExtractedFields:
    """
    Parse the assistant message content into fields.

    Args:
        content: Message content, possibly wrapped in a code fence.
        default_confidence: Used when the model's confidence is unusable.

    Returns:
        Parsed fields.

    Raises:
        LlmInvalidResponseError: If the content is empty or not a JSON object.
    """
    if content is None or not str(content).strip():
        raise LlmInvalidResponseError("empty message content")

    text = strip_code_fences(str(content))
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"LLM returned non-JSON content: {e}")
        raise LlmInvalidResponseError(f"content is not valid JSON ({e.msg})", text) from e

    if not isinstance(data, dict):
        raise LlmInvalidResponseError(
            f"expected a JSON object, got {type(data).__name__}", text
        )

    return fields_from_mapping(data, default_confidence)


def parse_chat_completion(
    payload: Dict[str, Any],
    default_confidence: float = DEFAULT_LLM_CONFIDENCE
) -> ExtractedFields:
    """
    Parse an OpenAI-compatible chat completion body.

    Raises:
        LlmInvalidResponseError: If there are no choices or no content.
    """
    choices = payload.get("choices") if isinstance(payload, dict) else None
    if not isinstance(choices, list) or not choices:
        raise LlmInvalidResponseError("response contains no choices")

    first = choices[0] if isinstance(choices[0], dict) else {}
    message = first.get("message") or {}
    return parse_response_content(message.get("content"), default_confidence)
