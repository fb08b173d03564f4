"""
Exception hierarchy for the extraction pipeline.

Every error carries a category so callers (and the HTTP layer) can tell
input problems apart from failures of an external service:

    InvoicePipelineError
    ├── InputError                  "input"     never retried
    │   ├── ValidationError
    │   ├── InvalidIdentifier
    │   ├── UnsupportedModel
    │   ├── UnsupportedContentType
    │   ├── FileTooLarge
    │   ├── EmptyUpload
    │   └── UnreadablePDF
    │       └── InsufficientText
    ├── ServiceError                "external"  retry is the caller's call
    │   ├── ModelUnavailable
    │   ├── MalformedModelOutput
    │   ├── ModelRequestError
    │   └── StorageWriteError
    └── NotFound                    "not_found"
"""


class InvoicePipelineError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary with additional context
    """

    status_code: int = 500
    category: str = "internal"
    retryable: bool = False
    title: str = "Internal error"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Render the error as the failure envelope returned by the API."""
        return {
            "success": False,
            "error": self.title,
            "category": self.category,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


# =============================================================================
# INPUT ERRORS
# =============================================================================

class InputError(InvoicePipelineError):
    status_code = 400
    category = "input"
    title = "Invalid request"


class ValidationError(InputError):
    """Raised when an invoice payload is missing required fields or has bad values."""

    title = "Validation failed"


class InvalidIdentifier(InputError):
    title = "Invalid ID"

    def __init__(self, value: str, kind: str = "invoice"):
        super().__init__(f"Please provide a valid {kind} ID", {"id": value})


class UnsupportedModel(InputError):
    title = "Invalid model"

    def __init__(self, model: str, supported: list[str]):
        super().__init__(
            f"model must be one of: {', '.join(supported)}",
            {"model": model, "supported_models": supported},
        )


class UnsupportedContentType(InputError):
    status_code = 415
    title = "Unsupported file type"

    def __init__(self, content_type: str | None):
        super().__init__("Only PDF files are allowed", {"content_type": content_type})


class FileTooLarge(InputError):
    status_code = 413
    title = "File too large"

    def __init__(self, limit: int, size: int | None = None):
        details = {"max_bytes": limit}
        if size is not None:
            details["size"] = size
        super().__init__(f"File exceeds the {limit} byte upload limit", details)


class EmptyUpload(InputError):
    title = "No file uploaded"

    def __init__(self):
        super().__init__("Please select a non-empty PDF file to upload")


class UnreadablePDF(InputError):
    """Raised when a PDF cannot be parsed or has no text layer."""

    status_code = 422
    title = "PDF text extraction failed"


class InsufficientText(UnreadablePDF):
    def __init__(self, length: int, minimum: int):
        super().__init__(
            "Could not extract readable text from the PDF",
            {"text_length": length, "min_chars": minimum},
        )


# =============================================================================
# EXTERNAL SERVICE ERRORS
# =============================================================================

class ServiceError(InvoicePipelineError):
    status_code = 502
    category = "external"
    retryable = True
    title = "Upstream service error"


class ModelUnavailable(ServiceError):
    """Missing credentials or rejected authentication; permanent until config changes."""

    status_code = 503
    retryable = False
    title = "AI service not configured properly"


class MalformedModelOutput(ServiceError):
    """The model answered, but not with a usable JSON invoice object."""

    title = "Malformed model output"


class ModelRequestError(ServiceError):
    """Timeouts, transport failures, throttling and 5xx answers from the model API."""

    title = "Model request failed"


class StorageWriteError(ServiceError):
    status_code = 503
    title = "Storage write failed"


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFound(InvoicePipelineError):
    status_code = 404
    category = "not_found"
    title = "Not found"

    def __init__(self, kind: str, identifier: str):
        super().__init__(
            f"The requested {kind} does not exist",
            {"kind": kind, "id": identifier},
        )
        self.kind = kind
        self.identifier = identifier
        self.title = f"{kind.capitalize()} not found"
