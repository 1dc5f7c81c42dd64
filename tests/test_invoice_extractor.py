import json
from types import SimpleNamespace

import pytest

from cashflow.services import invoice_extractor
from cashflow.services.invoice_extractor import (
    InvoiceData,
    InvoiceExtractionError,
    extract_invoice_data,
    invoice_tool,
    parse_tool_arguments,
)


def _field(value, score=0.5):
    return {"value": value, "confidentiality": score}


VALID = {
    "invoice_id": _field("INV-1", 0.9),
    "company_name": _field("Acme UAB", 0.2),
    "company_code": _field("123456789"),
    "vat_payer_code": _field("LT123456789"),
    "company_address": _field("Main st. 1, Vilnius"),
    "invoice_date": _field("2024-06-01"),
    "total_amount": _field("850.00", 0.95),
    "total_amount_currency": _field("EUR"),
    "line_items": [
        {
            "description": _field("Consulting"),
            "quantity": _field("1"),
            "unit_price": _field("850.00"),
            "total_price": _field("850.00"),
        }
    ],
}


class FakeCompletions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.response


def _client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def _response(arguments):
    tool_call = SimpleNamespace(function=SimpleNamespace(name="extract_invoice", arguments=arguments))
    message = SimpleNamespace(tool_calls=[tool_call] if arguments is not None else None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def image(tmp_path):
    path = tmp_path / "invoice.png"
    path.write_bytes(b"\x89PNG fake")
    return str(path)


def test_parse_tool_arguments_valid():
    data = parse_tool_arguments(json.dumps(VALID))
    assert isinstance(data, InvoiceData)
    assert data.total_amount.value == "850.00"
    assert data.line_items[0].description.value == "Consulting"


@pytest.mark.parametrize("arguments", [
    "not json",
    json.dumps({"invoice_id": _field("INV-1")}),
    json.dumps({**VALID, "total_amount": _field("1", 1.5)}),
])
def test_parse_tool_arguments_invalid(arguments):
    with pytest.raises(InvoiceExtractionError):
        parse_tool_arguments(arguments)


def test_tool_schema_comes_from_model():
    tool = invoice_tool()
    assert tool["function"]["name"] == "extract_invoice"
    assert "total_amount_currency" in tool["function"]["parameters"]["properties"]


def test_extract_forces_tool_call(monkeypatch, image):
    completions = FakeCompletions(response=_response(json.dumps(VALID)))
    monkeypatch.setattr(invoice_extractor, "_get_client", lambda: _client(completions))

    data = extract_invoice_data(image)
    assert data.invoice_id.value == "INV-1"

    call = completions.calls[0]
    assert call["temperature"] == 0
    assert call["tool_choice"]["function"]["name"] == "extract_invoice"
    image_part = call["messages"][1]["content"][1]
    assert image_part["image_url"]["url"].startswith("data:image/png;base64,")


def test_extract_without_tool_call(monkeypatch, image):
    completions = FakeCompletions(response=_response(None))
    monkeypatch.setattr(invoice_extractor, "_get_client", lambda: _client(completions))

    with pytest.raises(InvoiceExtractionError):
        extract_invoice_data(image)


def test_extract_wraps_api_errors(monkeypatch, image):
    completions = FakeCompletions(error=RuntimeError("429 Too Many Requests"))
    monkeypatch.setattr(invoice_extractor, "_get_client", lambda: _client(completions))

    with pytest.raises(InvoiceExtractionError, match="Completion request failed"):
        extract_invoice_data(image)


def test_extract_unconfigured(monkeypatch, image):
    monkeypatch.setattr(invoice_extractor.settings, "AZURE_OPENAI_ENDPOINT", None)
    with pytest.raises(InvoiceExtractionError, match="not configured"):
        extract_invoice_data(image)
