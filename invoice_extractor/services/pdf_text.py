"""
PDF text-layer extraction with pdfplumber.

Layout and tables are flattened to plain text; structure recovery is left
to the language model. Scanned PDFs without a text layer are rejected
rather than OCR'd.
"""

from io import BytesIO
from loguru import logger
import pdfplumber
from ..core.errors import InsufficientText, UnreadablePDF

MIN_TEXT_CHARS = 10


def extract_text(data: bytes) -> str:
    """
    Extract the text layer of a PDF.

    Pages are joined with blank lines and the result is stripped, so the
    output is stable for byte-identical input.

    Raises:
        UnreadablePDF: input is not a parseable PDF or has no text layer
    """
    if not data:
        raise UnreadablePDF("Could not process PDF file", {"reason": "empty input"})

    pages: list[str] = []
    try:
        with pdfplumber.open(BytesIO(data)) as pdf:
            for page in pdf.pages:
                text = page.extract_text()
                if text and text.strip():
                    pages.append(text.strip())
    except Exception as e:
        # pdfminer raises a zoo of parser errors for corrupt input
        logger.warning("PDF parsing failed: {error}", error=repr(e), size=len(data))
        raise UnreadablePDF("Could not process PDF file", {"reason": type(e).__name__}) from e

    if not pages:
        raise UnreadablePDF(
            "Could not extract readable text from the PDF",
            {"reason": "no text layer"},
        )

    text = "\n\n".join(pages)
    logger.debug("Extracted PDF text", pages=len(pages), chars=len(text))
    return text


def ensure_min_text(text: str | None, min_chars: int = MIN_TEXT_CHARS) -> str:
    """
    Reject extraction output that is too short to be worth a model call.

    Raises:
        InsufficientText: fewer than min_chars characters after stripping
    """
    cleaned = (text or "").strip()
    if len(cleaned) < min_chars:
        raise InsufficientText(len(cleaned), min_chars)
    return cleaned
