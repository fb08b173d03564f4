"""
Pytest configuration and shared fixtures.

Registers the integration marker / --run-integration option and provides
storage fixtures, a fake text generator and a small PDF builder so tests
never need sample files on disk.
"""

import json
import pytest
from fastapi.testclient import TestClient
from invoice_extractor.api.main import create_app
from invoice_extractor.core.config import Settings
from invoice_extractor.services.extraction import ExtractionEngine
from invoice_extractor.services.llm.providers import TextGenerator
from invoice_extractor.services.storage.blob_store_sqlite import SQLiteBlobStore
from invoice_extractor.services.storage.database import Database
from invoice_extractor.services.storage.invoice_repository_sqlite import SQLiteInvoiceRepository


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against real model providers"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring real model credentials"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# =============================================================================
# PDF builder
# =============================================================================

def _pdf_string(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf(lines: list[str]) -> bytes:
    """Build a one-page PDF whose text layer contains the given lines."""
    ops = ["BT", "/F1 12 Tf", "72 720 Td"]
    for i, line in enumerate(lines):
        if i:
            ops.append("0 -16 Td")
        ops.append(f"({_pdf_string(line)}) Tj")
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Resources << /Font << /F1 4 0 R >> >> /Contents 5 0 R >>",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_offset)
    return bytes(out)


INVOICE_LINES = [
    "INVOICE",
    "Acme Corp",
    "12 Industrial Way, Springfield",
    "Invoice #: INV-1001",
    "Date: 2024-03-01",
    "Widget x 2 @ 100.00 = 200.00",
    "Total: USD 200.00",
]


@pytest.fixture
def invoice_pdf() -> bytes:
    return build_pdf(INVOICE_LINES)


@pytest.fixture
def short_text_pdf() -> bytes:
    return build_pdf(["Hi"])


# =============================================================================
# Model output
# =============================================================================

@pytest.fixture
def model_output() -> str:
    """A well-formed model answer, wrapped in a code fence like Gemini often does"""
    payload = {
        "vendor": {"name": "Acme Corp", "address": "12 Industrial Way, Springfield", "taxId": None},
        "invoice": {
            "number": "INV-1001",
            "date": "2024-03-01",
            "currency": "USD",
            "subtotal": 200.0,
            "taxPercent": None,
            "total": 200.0,
            "poNumber": None,
            "poDate": None,
            "lineItems": [
                {"description": "Widget", "unitPrice": 100.0, "quantity": 2, "total": 200.0}
            ],
        },
    }
    return "```json\n" + json.dumps(payload, indent=2) + "\n```"


class FakeGenerator(TextGenerator):
    """
    Scripted text generator.

    Each call pops the next response; the last one repeats. Exceptions in
    the script are raised instead of returned.
    """

    name = "fake"

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts: list[str] = []
        self.closed = False

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_llm(model_output) -> FakeGenerator:
    return FakeGenerator([model_output])


# =============================================================================
# Storage
# =============================================================================

@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test.db")


@pytest.fixture
def database(db_path):
    db = Database(db_path).connect()
    yield db
    db.close()


@pytest.fixture
def blob_store(database):
    # Tiny chunks so every test file spans several chunk rows
    return SQLiteBlobStore(database, chunk_size=64)


@pytest.fixture
def repository(database):
    return SQLiteInvoiceRepository(database)


# =============================================================================
# API
# =============================================================================

@pytest.fixture
def api_settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_PATH=str(tmp_path / "api.db"),
        GEMINI_API_KEY="test-key",
        LLM_API_KEY=None,
        LLM_DEPLOYMENT=None,
        MAX_UPLOAD_BYTES=64 * 1024,
        EXTRACTION_MAX_ATTEMPTS=1,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def client(api_settings, fake_llm):
    """API client whose gemini provider is the scripted fake"""
    engine = ExtractionEngine(api_settings, generators={"gemini": fake_llm})
    app = create_app(api_settings, engine=engine)
    with TestClient(app) as test_client:
        yield test_client
