"""
Extraction engine: document text in, ExtractionDraft out.

One call makes exactly one model request. The raw answer is cleaned of
code fences, parsed as JSON and validated against the draft schema
without type coercion. Anything unusable is reported as
MalformedModelOutput; nothing is retried here.
"""

import json
import re
import threading
from typing import Mapping
from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from .llm.prompts import build_extraction_prompt
from .llm.providers import SUPPORTED_MODELS, TextGenerator, build_generator
from ..core.config import Settings, settings as default_settings
from ..core.errors import MalformedModelOutput, UnsupportedModel
from ..models.draft import ExtractionDraft

_FENCED = re.compile(r"```[ \t]*(?:json)?[ \t]*\n?(.*?)```", re.DOTALL | re.IGNORECASE)
_SCHEMA_KEYS = {"vendor", "invoice"}


def strip_code_fences(raw: str | None) -> str:
    """Remove ```json ... ``` wrapping (including an unterminated opening fence)."""
    text = (raw or "").strip()
    match = _FENCED.search(text)
    if match:
        return match.group(1).strip()
    if text.startswith("```"):
        text = text[3:]
        if text[:4].lower() == "json":
            text = text[4:]
    return text.strip()


def parse_model_output(raw: str | None) -> ExtractionDraft:
    """
    Turn raw model text into a draft.

    Raises:
        MalformedModelOutput: empty output, invalid JSON, a non-object,
            an object without vendor/invoice, or values of the wrong shape
    """
    cleaned = strip_code_fences(raw)
    if not cleaned:
        raise MalformedModelOutput("Model returned an empty response")

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedModelOutput(
            "Model output is not valid JSON",
            {"error": str(e), "preview": cleaned[:200]},
        ) from e

    if not isinstance(parsed, dict) or not parsed.keys() & _SCHEMA_KEYS:
        raise MalformedModelOutput(
            "Model output does not match the invoice schema",
            {"preview": cleaned[:200]},
        )

    try:
        return ExtractionDraft.model_validate(parsed)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise MalformedModelOutput("Model output does not match the invoice schema", {"errors": errors}) from e


class ExtractionEngine:
    """
    Builds the prompt, calls the selected provider once and parses the answer.

    Providers are created lazily on first use and reused; pass generators
    to supply preconfigured (or fake) providers.
    """

    def __init__(self, settings: Settings | None = None, generators: Mapping[str, TextGenerator] | None = None):
        self.settings = settings or default_settings
        self._generators: dict[str, TextGenerator] = dict(generators or {})
        self._lock = threading.Lock()

    @property
    def supported_models(self) -> list[str]:
        return list(SUPPORTED_MODELS)

    def ensure_supported(self, model: str) -> None:
        if model not in SUPPORTED_MODELS:
            raise UnsupportedModel(str(model), self.supported_models)

    def generator_for(self, model: str) -> TextGenerator:
        self.ensure_supported(model)
        with self._lock:
            if model not in self._generators:
                self._generators[model] = build_generator(model, self.settings)
            return self._generators[model]

    def extract(self, text: str, model: str) -> ExtractionDraft:
        """
        Extract a draft invoice from document text.

        Raises:
            UnsupportedModel: model is not one of SUPPORTED_MODELS
            ModelUnavailable: provider is not configured or rejects credentials
            ModelRequestError: transport-level failure talking to the provider
            MalformedModelOutput: the answer is not a usable invoice object
        """
        generator = self.generator_for(model)
        prompt = build_extraction_prompt(text)

        logger.info("Requesting invoice extraction", model=model, text_chars=len(text))
        raw = generator.generate(prompt)

        try:
            draft = parse_model_output(raw)
        except MalformedModelOutput as e:
            logger.warning("Discarding malformed model output: {reason}", reason=e.message, model=model)
            raise

        logger.info(
            "Extraction complete",
            model=model,
            line_items=len(draft.invoice.line_items or []) if draft.invoice else 0,
            missing=draft.missing_required(),
        )
        return draft

    def close(self) -> None:
        with self._lock:
            for generator in self._generators.values():
                generator.close()
            self._generators.clear()
