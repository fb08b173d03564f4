"""
Draft types produced by the extraction engine.

A draft mirrors the Invoice shape but every field is optional and values
keep the JSON type the model emitted (a total of "1,200.00" stays a
string). Drafts are never stored; a reviewer turns one into an
InvoiceCreate payload.
"""

from typing import Union
from pydantic import Field, StrictFloat, StrictInt, StrictStr
from .invoice import CamelModel

# Smart-mode unions keep the exact JSON type instead of coercing.
JsonNumber = Union[StrictInt, StrictFloat, StrictStr, None]
JsonText = Union[StrictStr, StrictInt, StrictFloat, None]


class DraftLineItem(CamelModel):
    description: JsonText = None
    unit_price: JsonNumber = None
    quantity: JsonNumber = None
    total: JsonNumber = None


class DraftVendor(CamelModel):
    name: JsonText = None
    address: JsonText = None
    tax_id: JsonText = None


class DraftInvoiceDetails(CamelModel):
    number: JsonText = None
    date: JsonText = None
    currency: JsonText = None
    subtotal: JsonNumber = None
    tax_percent: JsonNumber = None
    total: JsonNumber = None
    po_number: JsonText = None
    po_date: JsonText = None
    line_items: list[DraftLineItem] | None = None


class ExtractionDraft(CamelModel):
    vendor: DraftVendor | None = None
    invoice: DraftInvoiceDetails | None = None

    def missing_required(self) -> list[str]:
        """Fields a reviewer must fill in before the draft can be persisted."""
        missing = []
        if self.vendor is None or self.vendor.name in (None, ""):
            missing.append("vendor.name")
        if self.invoice is None or self.invoice.number in (None, ""):
            missing.append("invoice.number")
        return missing


class ExtractionResult(CamelModel):
    """Draft plus the provenance returned to the reviewer."""

    file_id: str | None = None
    file_name: str | None = None
    model: str
    draft: ExtractionDraft = Field(default_factory=ExtractionDraft)
