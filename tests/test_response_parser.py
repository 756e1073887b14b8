"""Tests for LLM reply parsing."""

import json
from decimal import Decimal

import pytest

from invoice_pipeline.model_inference import (
    ExtractedFields,
    parse_chat_completion,
    parse_response_content,
    sanitize_amount,
    strip_code_fences,
)
from invoice_pipeline.model_inference.response_parser import parse_confidence
from invoice_pipeline.utils.exceptions import ErrorCodes, LlmInvalidResponseError


def completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class TestSanitizeAmount:

    @pytest.mark.parametrize("raw, expected", [
        ("$1,234.56", Decimal("1234.56")),
        ("1234.56", Decimal("1234.56")),
        ("USD 250", Decimal("250")),
        ("1.234.56", Decimal("1234.56")),
        (99.5, Decimal("99.5")),
        (100, Decimal("100")),
    ])
    def test_parses_amounts(self, raw, expected):
        assert sanitize_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "null", "N/A", ".", True])
    def test_absent_amounts(self, raw):
        assert sanitize_amount(raw) is None


class TestParseConfidence:

    def test_in_range_value_is_kept(self):
        assert parse_confidence(0.95) == 0.95
        assert parse_confidence("0.5") == 0.5

    @pytest.mark.parametrize("raw", [5.0, -0.1, "high", None, float("nan")])
    def test_unusable_value_falls_back(self, raw):
        assert parse_confidence(raw) == 0.85


class TestStripCodeFences:

    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_fence(self):
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self):
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'


class TestParseResponseContent:

    def test_full_reply(self):
        content = json.dumps({
            "invoice_number": "INV-2024-001",
            "amount": "$1,234.56",
            "party_name": "Acme Corp",
            "party_address": "1 Main St, Springfield",
            "currency": "usd",
            "confidence": 0.95,
        })

        fields = parse_response_content(content)

        assert fields.invoice_number == "INV-2024-001"
        assert fields.amount == Decimal("1234.56")
        assert fields.party_name == "Acme Corp"
        assert fields.party_address == "1 Main St, Springfield"
        assert fields.currency == "USD"
        assert fields.confidence == 0.95

    def test_fenced_reply(self):
        fields = parse_response_content('```json\n{"invoice_number": "42"}\n```')
        assert fields.invoice_number == "42"

    def test_missing_and_null_fields_are_absent(self):
        fields = parse_response_content(
            '{"invoice_number": null, "party_name": "null", "party_address": "  "}'
        )
        assert fields.invoice_number is None
        assert fields.party_name is None
        assert fields.party_address is None
        assert fields.amount is None
        assert fields.currency == "USD"
        assert fields.confidence == 0.85
        assert not fields.has_any_field

    def test_out_of_range_confidence_uses_default(self):
        fields = parse_response_content('{"invoice_number": "7", "confidence": 5.0}')
        assert fields.confidence == 0.85

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_content_is_invalid(self, content):
        with pytest.raises(LlmInvalidResponseError):
            parse_response_content(content)

    def test_non_json_content_is_invalid(self):
        with pytest.raises(LlmInvalidResponseError) as exc_info:
            parse_response_content("The invoice number is 1001.")
        assert exc_info.value.error_code == ErrorCodes.LLM_INVALID_RESPONSE

    def test_json_array_is_invalid(self):
        with pytest.raises(LlmInvalidResponseError):
            parse_response_content('[{"invoice_number": "1"}]')


class TestParseChatCompletion:

    def test_reads_first_choice(self):
        fields = parse_chat_completion(completion('{"party_name": "Jane Roe"}'))
        assert isinstance(fields, ExtractedFields)
        assert fields.party_name == "Jane Roe"

    @pytest.mark.parametrize("payload", [{}, {"choices": []}, {"choices": None}])
    def test_no_choices_is_invalid(self, payload):
        with pytest.raises(LlmInvalidResponseError):
            parse_chat_completion(payload)

    def test_missing_message_is_invalid(self):
        with pytest.raises(LlmInvalidResponseError):
            parse_chat_completion({"choices": [{"index": 0}]})
