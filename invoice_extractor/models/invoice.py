import re
from datetime import date as calendar_date, datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire and in storage."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class LineItem(CamelModel):
    description: str = ""
    unit_price: float | None = None
    quantity: float | None = None
    total: float | None = None


class Vendor(CamelModel):
    name: str
    address: str | None = None
    tax_id: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Vendor name is required")
        return value


class InvoiceDetails(CamelModel):
    number: str
    date: str | None = None
    currency: str | None = None
    subtotal: float | None = None
    tax_percent: float | None = None
    total: float | None = None
    po_number: str | None = None
    po_date: str | None = None
    line_items: list[LineItem] = Field(default_factory=list)

    @field_validator("number", mode="before")
    @classmethod
    def number_from_int(cls, value):
        # Invoice numbers such as 10023 are often emitted as JSON numbers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("number")
    @classmethod
    def number_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Invoice number is required")
        return value

    @field_validator("date", "po_date")
    @classmethod
    def iso_date(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        if not _ISO_DATE.match(value):
            raise ValueError("Dates must use the YYYY-MM-DD form")
        try:
            calendar_date.fromisoformat(value)
        except ValueError:
            raise ValueError(f"Invalid calendar date: {value}")
        return value

    @field_validator("line_items", mode="before")
    @classmethod
    def line_items_default(cls, value):
        return [] if value is None else value


class InvoiceCreate(CamelModel):
    """Payload accepted by the repository's create(); timestamps and ids are ignored."""

    file_id: str | None = None
    file_name: str | None = None
    vendor: Vendor
    invoice: InvoiceDetails


class InvoiceUpdate(CamelModel):
    """Partial update: each supplied sub-object replaces the stored one wholesale."""

    vendor: Vendor | None = None
    invoice: InvoiceDetails | None = None


class Invoice(CamelModel):
    id: str
    file_id: str | None = None
    file_name: str | None = None
    vendor: Vendor
    invoice: InvoiceDetails
    created_at: datetime
    updated_at: datetime | None = None
