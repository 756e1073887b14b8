"""Tests for the Groq LLM client against a fake HTTP session."""

import json
from decimal import Decimal

import pytest
import requests

from config.settings import LlmSettings
from invoice_pipeline.model_inference import GroqLlmClient
from invoice_pipeline.utils.exceptions import (
    ErrorCodes,
    LlmApiError,
    LlmInvalidResponseError,
    LlmTimeoutError,
)


class FakeResponse:

    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else json.dumps(body)

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    """Stands in for requests.Session: records calls, replays one outcome."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({'url': url, 'headers': headers, 'json': json, 'timeout': timeout})
        if self.error is not None:
            raise self.error
        return self.response


def chat_body(content):
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def settings():
    return LlmSettings(api_key="gsk_test", model="llama-3.1-70b-versatile", timeout_seconds=30)


class TestGroqLlmClientConfiguration:

    def test_unconfigured_client_returns_empty_fields_without_calling(self):
        session = FakeSession()
        client = GroqLlmClient(LlmSettings(api_key=None), session=session)

        fields = client.extract("Invoice #1001")

        assert not client.is_available()
        assert fields.invoice_number is None
        assert fields.amount is None
        assert fields.confidence == 0.0
        assert session.calls == []

    def test_blank_model_is_unconfigured(self):
        assert not GroqLlmClient(LlmSettings(api_key="gsk_test", model=" ")).is_available()

    def test_provider_name(self, settings):
        assert GroqLlmClient(settings, session=FakeSession()).provider_name() == "Groq"


class TestGroqLlmClientRequest:

    def test_request_contract(self, settings):
        session = FakeSession(FakeResponse(body=chat_body('{"invoice_number": "1001"}')))
        client = GroqLlmClient(settings, session=session)

        client.extract("Invoice #1001 Total: $250.00")

        call = session.calls[0]
        assert call['url'] == "https://api.groq.com/openai/v1/chat/completions"
        assert call['headers']['Authorization'] == "Bearer gsk_test"
        assert call['timeout'] == 30
        body = call['json']
        assert body['model'] == "llama-3.1-70b-versatile"
        assert body['temperature'] == 0.1
        assert body['max_tokens'] == 2048
        assert body['response_format'] == {"type": "json_object"}
        assert [m['role'] for m in body['messages']] == ["system", "user"]
        assert "Invoice #1001 Total: $250.00" in body['messages'][1]['content']

    def test_successful_extraction(self, settings):
        content = json.dumps({
            "invoice_number": "1001",
            "amount": "$250.00",
            "party_name": "Jane Roe",
            "party_address": None,
            "currency": "USD",
            "confidence": 0.92,
        })
        session = FakeSession(FakeResponse(body=chat_body(content)))

        fields = GroqLlmClient(settings, session=session).extract("Invoice #1001")

        assert fields.invoice_number == "1001"
        assert fields.amount == Decimal("250.00")
        assert fields.party_name == "Jane Roe"
        assert fields.party_address is None
        assert fields.confidence == 0.92


class TestGroqLlmClientErrors:

    def test_timeout(self, settings):
        session = FakeSession(error=requests.Timeout("read timed out"))
        with pytest.raises(LlmTimeoutError) as exc_info:
            GroqLlmClient(settings, session=session).extract("text")
        assert exc_info.value.error_code == ErrorCodes.LLM_TIMEOUT

    def test_connection_error(self, settings):
        session = FakeSession(error=requests.ConnectionError("refused"))
        with pytest.raises(LlmApiError):
            GroqLlmClient(settings, session=session).extract("text")

    def test_non_2xx_status(self, settings):
        session = FakeSession(FakeResponse(status_code=429, text='{"error": "rate limited"}'))
        with pytest.raises(LlmApiError) as exc_info:
            GroqLlmClient(settings, session=session).extract("text")
        error = exc_info.value
        assert error.status_code == 429
        assert error.details['statusCode'] == 429
        assert "rate limited" in error.details['body']

    def test_non_json_body(self, settings):
        session = FakeSession(FakeResponse(body=None, text="<html>gateway</html>"))
        with pytest.raises(LlmInvalidResponseError):
            GroqLlmClient(settings, session=session).extract("text")

    def test_reply_without_choices(self, settings):
        session = FakeSession(FakeResponse(body={"choices": []}))
        with pytest.raises(LlmInvalidResponseError):
            GroqLlmClient(settings, session=session).extract("text")
