from fastapi import APIRouter, Body, Depends, Query
from ..deps import get_repository
from ...core.errors import InvalidIdentifier, NotFound
from ...models.invoice import Invoice
from ...services.storage.ids import is_valid_id
from ...services.storage.invoice_repository_base import InvoiceRepositoryBase

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _dump(invoice: Invoice) -> dict:
    return invoice.model_dump(mode="json", by_alias=True)


def _require_valid_id(invoice_id: str) -> None:
    if not is_valid_id(invoice_id):
        raise InvalidIdentifier(invoice_id)


@router.get("")
def list_invoices(q: str | None = Query(default=None), repository: InvoiceRepositoryBase = Depends(get_repository)):
    """
    List invoices, newest first.

    q filters case-insensitively on vendor name or invoice number
    (substring match).
    """
    invoices = repository.list(q)
    return {
        "success": True,
        "data": [_dump(invoice) for invoice in invoices],
        "count": len(invoices),
        "query": q or None,
    }


@router.get("/{invoice_id}")
def get_invoice(invoice_id: str, repository: InvoiceRepositoryBase = Depends(get_repository)):
    _require_valid_id(invoice_id)
    invoice = repository.get(invoice_id)
    if invoice is None:
        raise NotFound("invoice", invoice_id)
    return {"success": True, "data": _dump(invoice)}


@router.post("", status_code=201)
def create_invoice(payload: dict = Body(...), repository: InvoiceRepositoryBase = Depends(get_repository)):
    """
    Persist a reviewed invoice.

    Example request:
    {
        "fileId": "0f8e3a6c2b7d4e1f9a5b3c8d7e6f1a2b",
        "fileName": "acme-0042.pdf",
        "vendor": {"name": "ACME Corp", "address": null, "taxId": null},
        "invoice": {"number": "INV-0042", "date": "2024-03-01", "total": 450.0, "lineItems": []}
    }
    """
    invoice_id = repository.create(payload)
    return {
        "success": True,
        "data": _dump(repository.get(invoice_id)),
        "message": "Invoice created successfully",
    }


@router.put("/{invoice_id}")
def update_invoice(invoice_id: str, payload: dict = Body(...), repository: InvoiceRepositoryBase = Depends(get_repository)):
    """Replace the vendor and/or invoice sub-objects of a stored invoice."""
    _require_valid_id(invoice_id)
    if repository.get(invoice_id) is None:
        raise NotFound("invoice", invoice_id)

    changed = repository.update(invoice_id, payload)
    invoice = repository.get(invoice_id)
    if invoice is None:
        raise NotFound("invoice", invoice_id)

    return {
        "success": True,
        "data": _dump(invoice),
        "updated": changed,
        "message": "Invoice updated successfully" if changed else "No changes to apply",
    }


@router.delete("/{invoice_id}")
def delete_invoice(invoice_id: str, repository: InvoiceRepositoryBase = Depends(get_repository)):
    _require_valid_id(invoice_id)
    if not repository.delete(invoice_id):
        raise NotFound("invoice", invoice_id)
    return {"success": True, "message": "Invoice deleted successfully"}
