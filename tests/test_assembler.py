"""Tests for field validation, invoice assembly and metadata records."""

import json
import re
from datetime import datetime
from decimal import Decimal

import pytest

from invoice_pipeline.model_inference import ExtractedFields
from invoice_pipeline.ocr_engine import OcrOutcome
from invoice_pipeline.postprocessor import (
    ExtractionMetadataFactory,
    InvoiceAssembler,
    UNKNOWN_PARTY_NAME,
    is_valid_amount,
    is_valid_invoice_number,
    is_valid_party_name,
    normalize_currency,
)
from invoice_pipeline.records import ExtractionStatus, InvoiceRecord, InvoiceStatus
from invoice_pipeline.utils.exceptions import InvalidRequestError

GENERATED_NUMBER = re.compile(r'^INV-[A-Z0-9]{1,10}-[A-Z0-9]{8}$')


@pytest.fixture
def assembler():
    return InvoiceAssembler()


@pytest.fixture
def fixed_assembler():
    return InvoiceAssembler(suffix_factory=lambda: "ABCD1234")


class TestValidators:

    @pytest.mark.parametrize("value, expected", [
        ("INV-42", True),
        ("123", True),
        ("12", False),
        ("  ", False),
        (None, False),
        ("null", False),
        ("Unknown", False),
    ])
    def test_invoice_number(self, value, expected):
        assert is_valid_invoice_number(value) is expected

    @pytest.mark.parametrize("value, expected", [
        (Decimal("0.01"), True),
        (Decimal("0"), False),
        (Decimal("-5"), False),
        (None, False),
    ])
    def test_amount(self, value, expected):
        assert is_valid_amount(value) is expected

    @pytest.mark.parametrize("value, expected", [
        ("Jo", True),
        ("J", False),
        ("unknown", False),
        (None, False),
    ])
    def test_party_name(self, value, expected):
        assert is_valid_party_name(value) is expected

    @pytest.mark.parametrize("value, expected", [
        ("eur", "EUR"),
        (" inr ", "INR"),
        ("dollars", "USD"),
        ("", "USD"),
        (None, "USD"),
    ])
    def test_currency(self, value, expected):
        assert normalize_currency(value) == expected


class TestInvoiceAssembler:

    def test_accepts_valid_fields(self, assembler):
        fields = ExtractedFields(
            invoice_number=" 1001 ",
            amount=Decimal("250.00"),
            party_name="Jane Roe",
            party_address="1 Main St",
            currency="eur",
            confidence=0.9,
        )

        record = assembler.from_extracted_fields(fields, "scan.png")

        assert record.invoice_number == "1001"
        assert record.amount == Decimal("250.00")
        assert record.party_name == "Jane Roe"
        assert record.party_address == "1 Main St"
        assert record.currency == "EUR"
        assert record.status is InvoiceStatus.EXTRACTED
        assert record.source_file_name == "scan.png"
        assert not record.is_deleted

    def test_all_absent_fields_get_defaults(self, assembler):
        record = assembler.from_extracted_fields(ExtractedFields.empty(), "acme bill.pdf")

        assert GENERATED_NUMBER.match(record.invoice_number)
        assert record.invoice_number.startswith("INV-ACMEBILL-")
        assert record.amount == Decimal("0")
        assert record.party_name == UNKNOWN_PARTY_NAME
        assert record.party_address is None
        assert record.currency == "USD"
        assert record.status is InvoiceStatus.EXTRACTED

    def test_invalid_fields_are_replaced(self, assembler):
        fields = ExtractedFields(invoice_number="12", amount=Decimal("-3"), party_name="X")
        record = assembler.from_extracted_fields(fields, "doc.pdf")

        assert GENERATED_NUMBER.match(record.invoice_number)
        assert record.amount == Decimal("0")
        assert record.party_name == UNKNOWN_PARTY_NAME

    @pytest.mark.parametrize("file_name, expected", [
        ("acme bill.pdf", "INV-ACMEBILL-ABCD1234"),
        ("scan.2024.pdf", "INV-SCAN2024-ABCD1234"),
        ("a_very_long_file_name.png", "INV-AVERYLONGF-ABCD1234"),
        ("___.pdf", "INV-UNKNOWN-ABCD1234"),
        (None, "INV-UNKNOWN-ABCD1234"),
    ])
    def test_generated_number(self, fixed_assembler, file_name, expected):
        assert fixed_assembler.generate_invoice_number(file_name) == expected

    def test_random_suffix_differs(self, assembler):
        first = assembler.generate_invoice_number("doc.pdf")
        second = assembler.generate_invoice_number("doc.pdf")
        assert first != second

    def test_create_processing(self, assembler):
        record = assembler.create_processing("doc.pdf")
        assert record.status is InvoiceStatus.PROCESSING
        assert record.amount == Decimal("0")

    def test_create_failed(self, fixed_assembler):
        record = fixed_assembler.create_failed("doc.pdf")
        assert record.invoice_number == "INV-DOC-ABCD1234-FAILED"
        assert record.status is InvoiceStatus.EXTRACTION_FAILED
        assert record.party_name == UNKNOWN_PARTY_NAME

    def test_create_pending_keeps_valid_fields(self, assembler):
        fields = ExtractedFields(party_name="Jane Roe")
        record = assembler.create_pending(fields, "doc.pdf")
        assert record.status is InvoiceStatus.PENDING
        assert record.party_name == "Jane Roe"

    def test_create_manual(self, assembler):
        record = assembler.create_manual("INV-77", Decimal("19.99"), "Acme Corp", currency="gbp")
        assert record.invoice_number == "INV-77"
        assert record.amount == Decimal("19.99")
        assert record.currency == "GBP"
        assert record.status is InvoiceStatus.EXTRACTED

    @pytest.mark.parametrize("number, amount, party", [
        ("", Decimal("1"), "Acme"),
        ("INV-1", Decimal("0"), "Acme"),
        ("INV-1", Decimal("1"), ""),
    ])
    def test_create_manual_rejects_invalid_values(self, assembler, number, amount, party):
        with pytest.raises(InvalidRequestError):
            assembler.create_manual(number, amount, party)


class TestInvoiceRecord:

    def test_with_changes_refreshes_updated_at(self, assembler):
        record = assembler.create_processing("doc.pdf")
        changed = record.with_status(InvoiceStatus.EXTRACTED)

        assert changed.status is InvoiceStatus.EXTRACTED
        assert record.status is InvoiceStatus.PROCESSING
        assert changed.updated_at >= record.updated_at
        assert changed.invoice_key == record.invoice_key

    def test_soft_delete_and_restore(self, assembler):
        record = assembler.create_processing("doc.pdf")
        assert record.soft_deleted().is_deleted
        assert not record.soft_deleted().restored().is_deleted

    def test_rejects_invalid_currency(self, assembler):
        record = assembler.create_processing("doc.pdf")
        with pytest.raises(ValueError):
            record.with_changes(currency="usd")

    def test_rejects_negative_amount(self, assembler):
        record = assembler.create_processing("doc.pdf")
        with pytest.raises(ValueError):
            record.with_changes(amount=Decimal("-1"))

    def test_to_dict(self, fixed_assembler):
        data = fixed_assembler.create_failed("doc.pdf").to_dict()
        assert data['status'] == "EXTRACTION_FAILED"
        assert data['amount'] == "0"
        assert isinstance(data['invoice_key'], str)


class TestExtractionMetadataFactory:

    @pytest.fixture
    def factory(self):
        return ExtractionMetadataFactory()

    @pytest.fixture
    def ocr(self):
        return OcrOutcome("Invoice 1001", 0.7, page_count=1, engine_identifier="Tesseract 5.3.0")

    def test_create_processing(self, factory):
        record = factory.create_processing("doc.pdf")
        assert record.status is ExtractionStatus.PROCESSING
        assert not record.is_terminal
        assert record.invoice_key is None

    def test_completed(self, factory, ocr, assembler):
        invoice = assembler.create_processing("doc.pdf")
        fields = ExtractedFields(invoice_number="1001", confidence=0.9)

        record = factory.completed(factory.create_processing("doc.pdf"), invoice.invoice_key, ocr, fields)

        assert record.status is ExtractionStatus.COMPLETED
        assert record.is_terminal
        assert record.invoice_key == invoice.invoice_key
        assert record.confidence_score == 0.7
        assert record.engine_identifier == "Tesseract 5.3.0"
        payload = json.loads(record.raw_extraction_payload)
        assert payload['text'] == "Invoice 1001"
        assert payload['length'] == 12
        assert payload['pageCount'] == 1
        assert payload['fields']['invoice_number'] == "1001"

    def test_partial(self, factory, ocr, assembler):
        invoice = assembler.create_processing("doc.pdf")
        record = factory.partial(
            factory.create_processing("doc.pdf"), invoice.invoice_key, ocr, "LLM extraction unavailable"
        )
        assert record.status is ExtractionStatus.PARTIAL
        assert record.error_message == "LLM extraction unavailable"
        assert 'fields' not in json.loads(record.raw_extraction_payload)

    def test_failed(self, factory):
        record = factory.failed(factory.create_processing("doc.pdf"), "OCR produced no text")
        assert record.status is ExtractionStatus.FAILED
        assert record.confidence_score == 0.0
        assert record.error_message == "OCR produced no text"

    def test_low_confidence(self, factory, ocr, assembler):
        invoice = assembler.create_processing("doc.pdf")
        record = factory.completed(factory.create_processing("doc.pdf"), invoice.invoice_key, ocr)
        assert record.is_low_confidence(0.8)
        assert not record.is_low_confidence(0.5)

    def test_rejects_out_of_range_confidence(self, factory):
        with pytest.raises(ValueError):
            factory.create_processing("doc.pdf").with_changes(confidence_score=1.5)

    def test_uses_clock(self):
        moment = datetime(2024, 3, 1, 12, 0, 0)
        record = ExtractionMetadataFactory(clock=lambda: moment).create_processing("doc.pdf")
        assert record.extraction_timestamp == moment
        assert record.created_at == moment
