"""
Pipeline orchestration.

Two end-to-end operations sit on top of the stores and the engine:

- ingest: validate an upload and stream it into the blob store; no
  extraction happens at upload time
- extract-and-review: blob -> text -> threshold check -> model -> draft;
  the draft goes back to the caller and nothing is persisted

Persisting a reviewed draft is a separate, explicit repository call.
"""

import time
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional, TypeVar
from loguru import logger
from .extraction import ExtractionEngine
from .pdf_text import MIN_TEXT_CHARS, ensure_min_text, extract_text as extract_pdf_text
from .storage.blob_store_base import BlobStoreBase
from ..core.errors import (
    EmptyUpload,
    FileTooLarge,
    MalformedModelOutput,
    ModelRequestError,
    NotFound,
    UnsupportedContentType,
)
from ..models.draft import ExtractionResult
from ..models.files import StoredFile

PDF_CONTENT_TYPE = "application/pdf"
DEFAULT_MAX_UPLOAD_BYTES = 25 * 1024 * 1024

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """
    Bounded retry with exponential backoff for transient model failures.

    Only MalformedModelOutput and ModelRequestError are retried; missing
    credentials and input errors fail on the first attempt.
    """

    max_attempts: int = 1
    backoff_seconds: float = 1.0
    multiplier: float = 2.0
    retry_on: tuple = (MalformedModelOutput, ModelRequestError)
    sleep: Callable[[float], None] = time.sleep

    def run(self, operation: Callable[[], T], description: str = "operation") -> T:
        attempts = max(1, self.max_attempts)
        delay = self.backoff_seconds
        for attempt in range(1, attempts + 1):
            try:
                return operation()
            except self.retry_on as e:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "{description} failed ({reason}), retrying in {delay:.1f}s (attempt {attempt}/{attempts})",
                    description=description,
                    reason=type(e).__name__,
                    delay=delay,
                    attempt=attempt,
                    attempts=attempts,
                )
                self.sleep(delay)
                delay *= self.multiplier
        raise AssertionError("unreachable")


class InvoicePipeline:
    """Composes blob store, text extractor and extraction engine."""

    def __init__(
        self,
        blob_store: BlobStoreBase,
        engine: ExtractionEngine,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        min_text_chars: int = MIN_TEXT_CHARS,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.blob_store = blob_store
        self.engine = engine
        self.max_upload_bytes = max_upload_bytes
        self.min_text_chars = min_text_chars
        self.retry_policy = retry_policy or RetryPolicy()

    def ingest(
        self,
        stream: BinaryIO | bytes,
        filename: str,
        content_type: str | None,
        size: int | None = None,
    ) -> StoredFile:
        """
        Validate an upload and store it.

        Args:
            stream: Upload body (stream or bytes)
            filename: Declared file name
            content_type: Declared content type; must be application/pdf
            size: Declared size in bytes, if known up front

        Raises:
            UnsupportedContentType, EmptyUpload, FileTooLarge: rejected before
                anything is written
            StorageWriteError: blob store failure
        """
        content_type = (content_type or "").split(";")[0].strip().lower()
        if content_type != PDF_CONTENT_TYPE:
            raise UnsupportedContentType(content_type or None)

        if isinstance(stream, (bytes, bytearray)):
            size = len(stream)
        if size is not None:
            if size == 0:
                raise EmptyUpload()
            if size > self.max_upload_bytes:
                raise FileTooLarge(self.max_upload_bytes, size)

        stored = self.blob_store.put(stream, filename or "document.pdf", max_bytes=self.max_upload_bytes)
        if stored.length == 0:
            self.blob_store.delete(stored.id)
            raise EmptyUpload()
        return stored

    def extract_file(self, file_id: str, model: str) -> ExtractionResult:
        """
        Run extract-and-review for a stored PDF.

        Raises:
            UnsupportedModel: checked before any I/O
            NotFound: no stored file with this id
            UnreadablePDF / InsufficientText: no usable text layer
            ModelUnavailable, ModelRequestError, MalformedModelOutput
        """
        self.engine.ensure_supported(model)

        stored = self.blob_store.stat(file_id)
        if stored is None:
            raise NotFound("file", file_id)

        text = extract_pdf_text(self.blob_store.get(file_id))
        text = ensure_min_text(text, self.min_text_chars)
        logger.info("Extracted text from stored file", file_id=file_id, chars=len(text))

        draft = self.retry_policy.run(lambda: self.engine.extract(text, model), "Invoice extraction")
        return ExtractionResult(file_id=file_id, file_name=stored.filename, model=model, draft=draft)

    def extract_text(self, text: str, model: str) -> ExtractionResult:
        """Run the model step on raw text (no stored file involved)."""
        self.engine.ensure_supported(model)
        # Stricter than a bare model call: raw text must meet the same
        # MIN_TEXT_CHARS floor as text read from a stored PDF
        text = ensure_min_text(text, self.min_text_chars)

        draft = self.retry_policy.run(lambda: self.engine.extract(text, model), "Test extraction")
        return ExtractionResult(model=model, draft=draft)
