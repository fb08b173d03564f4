"""
Tests for prompt building, output cleaning and the extraction engine.

The engine must either return a draft that matches the declared schema
or fail with MalformedModelOutput; it never passes garbled output off as
success and never calls the model more than once.
"""

import json
import pytest
from invoice_extractor.core.errors import MalformedModelOutput, ModelUnavailable, UnsupportedModel
from invoice_extractor.services.extraction import ExtractionEngine, parse_model_output, strip_code_fences
from invoice_extractor.services.llm.prompts import build_extraction_prompt
from conftest import FakeGenerator

TEXT = "INVOICE\nAcme Corp\nInvoice #: INV-1001\nTotal: 200.00"


def engine_with(*responses):
    generator = FakeGenerator(list(responses))
    return ExtractionEngine(generators={"gemini": generator}), generator


# Prompt

def test_prompt_is_deterministic():
    assert build_extraction_prompt(TEXT) == build_extraction_prompt(TEXT)


def test_prompt_fixes_schema_and_output_rules():
    prompt = build_extraction_prompt(TEXT)

    for field in ["vendor", "name", "taxId", "number", "date", "taxPercent", "poNumber", "poDate", "lineItems", "unitPrice"]:
        assert f'"{field}"' in prompt
    assert "Return ONLY the JSON object" in prompt
    assert "Use null" in prompt
    assert prompt.endswith(f"PDF Content:\n{TEXT}")


# Code fences

@pytest.mark.parametrize("raw", [
    '```json\n{"vendor": {}}\n```',
    '```\n{"vendor": {}}\n```',
    '```JSON {"vendor": {}}```',
    'Here you go:\n```json\n{"vendor": {}}\n```\nLet me know!',
    '```json\n{"vendor": {}}',
    '  {"vendor": {}}  ',
])
def test_strip_code_fences(raw):
    assert strip_code_fences(raw) == '{"vendor": {}}'


# Parsing

def test_parse_model_output_builds_draft(model_output):
    draft = parse_model_output(model_output)

    assert draft.vendor.name == "Acme Corp"
    assert draft.invoice.number == "INV-1001"
    assert draft.invoice.line_items[0].description == "Widget"
    assert draft.missing_required() == []


def test_parse_model_output_does_not_coerce_types():
    raw = json.dumps({
        "vendor": {"name": "Acme"},
        "invoice": {"number": 10023, "total": "1,200.00", "subtotal": 1000, "taxPercent": 20.5},
    })

    draft = parse_model_output(raw)

    assert draft.invoice.number == 10023
    assert draft.invoice.total == "1,200.00"
    assert isinstance(draft.invoice.subtotal, int)
    assert draft.invoice.tax_percent == 20.5


def test_parse_model_output_keeps_partial_drafts():
    draft = parse_model_output('{"vendor": null, "invoice": {"number": null, "total": 12.5}}')

    assert draft.vendor is None
    assert draft.invoice.total == 12.5
    assert draft.missing_required() == ["vendor.name", "invoice.number"]


@pytest.mark.parametrize("raw", [
    "",
    "I could not find an invoice in this document.",
    '{"vendor": {"name": "Acme"}, "invoice": {"number": "INV-1"',
    '[{"vendor": {"name": "Acme"}}]',
    '"just a string"',
    '{"supplier": "Acme", "id": "INV-1"}',
    '{"vendor": "Acme Corp", "invoice": {"number": "INV-1"}}',
    '{"vendor": {"name": "Acme"}, "invoice": {"lineItems": "Widget x2"}}',
])
def test_parse_model_output_rejects_garbage(raw):
    with pytest.raises(MalformedModelOutput) as exc_info:
        parse_model_output(raw)

    assert exc_info.value.category == "external"
    assert exc_info.value.retryable is True


# Engine

def test_extract_returns_draft_from_fenced_output(model_output):
    engine, generator = engine_with(model_output)

    draft = engine.extract(TEXT, "gemini")

    assert draft.vendor.name == "Acme Corp"
    assert len(generator.prompts) == 1
    assert TEXT in generator.prompts[0]


def test_extract_calls_model_exactly_once_even_on_failure():
    engine, generator = engine_with("not json at all")

    with pytest.raises(MalformedModelOutput):
        engine.extract(TEXT, "gemini")

    assert len(generator.prompts) == 1


def test_extract_unsupported_model_fails_fast(model_output):
    engine, generator = engine_with(model_output)

    with pytest.raises(UnsupportedModel) as exc_info:
        engine.extract(TEXT, "gpt-imaginary")

    assert generator.prompts == []
    assert exc_info.value.details["supported_models"] == ["gemini", "openai"]


def test_extract_propagates_model_unavailable():
    engine, _ = engine_with(ModelUnavailable("GEMINI_API_KEY environment variable is not set"))

    with pytest.raises(ModelUnavailable) as exc_info:
        engine.extract(TEXT, "gemini")

    assert exc_info.value.retryable is False


def test_engine_builds_real_provider_lazily_and_reports_missing_key(api_settings):
    """Test that a provider without credentials fails at call time, not at startup"""
    settings = api_settings.model_copy(update={"llm_api_key": None, "llm_deployment": None})
    engine = ExtractionEngine(settings)

    with pytest.raises(ModelUnavailable):
        engine.extract(TEXT, "openai")

    engine.close()


def test_close_releases_generators(model_output):
    engine, generator = engine_with(model_output)

    engine.close()

    assert generator.closed is True
