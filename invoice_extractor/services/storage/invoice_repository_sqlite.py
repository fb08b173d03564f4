"""
SQLite-based invoice repository.

Each invoice is a single JSON document row (line items embedded), so
every operation is one atomic row-level write.
"""

import json
import sqlite3
from datetime import datetime, UTC
from typing import Optional
from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from .database import Database
from .ids import new_id, is_valid_id
from .invoice_repository_base import InvoiceRepositoryBase
from ...core.errors import StorageWriteError, ValidationError
from ...models.invoice import Invoice, InvoiceCreate, InvoiceUpdate

_SELECT = "SELECT id, document, created_at, updated_at FROM invoices"


def _now() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds")


def _validate(model_cls: type[BaseModel], data) -> BaseModel:
    """Validate caller input, translating pydantic errors into ValidationError."""
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, exclude_unset=True)
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]) or "body",
                "message": err["msg"].removeprefix("Value error, "),
            }
            for err in e.errors()
        ]
        summary = "; ".join(f"{err['field']}: {err['message']}" for err in errors)
        raise ValidationError(summary, {"errors": errors}) from None


class SQLiteInvoiceRepository(InvoiceRepositoryBase):
    """
    SQLite-backed invoice repository.

    Features:
    - Server-assigned ids and timestamps
    - Case-insensitive search over vendor name and invoice number
    - Newest-first ordering (insertion order breaks timestamp ties)
    """

    def __init__(self, db: Database):
        """
        Args:
            db: Connected database shared with the rest of the service
        """
        self.db = db
        self._init_schema()

    def _init_schema(self):
        """Create invoices table if it doesn't exist"""
        with self.db.session() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS invoices (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    document TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_invoices_created_at
                ON invoices(created_at)
            """)

    @staticmethod
    def _to_invoice(row: sqlite3.Row) -> Invoice:
        document = json.loads(row["document"])
        return Invoice.model_validate({
            **document,
            "id": row["id"],
            "createdAt": row["created_at"],
            "updatedAt": row["updated_at"],
        })

    def create(self, invoice_data: dict) -> str:
        payload = _validate(InvoiceCreate, invoice_data)
        invoice_id = new_id()
        document = payload.model_dump(mode="json", by_alias=True)

        try:
            with self.db.session() as conn:
                conn.execute("""
                    INSERT INTO invoices (id, document, created_at)
                    VALUES (?, ?, ?)
                """, (invoice_id, json.dumps(document), _now()))
        except sqlite3.Error as e:
            logger.error("Invoice write failed: {error}", error=repr(e), invoice_id=invoice_id)
            raise StorageWriteError("Failed to store invoice", {"operation": "create"}) from e

        logger.info(
            "Created invoice",
            invoice_id=invoice_id,
            vendor=payload.vendor.name,
            invoice_number=payload.invoice.number,
        )
        return invoice_id

    def get(self, invoice_id: str) -> Optional[Invoice]:
        if not is_valid_id(invoice_id):
            return None

        with self.db.session() as conn:
            row = conn.execute(f"{_SELECT} WHERE id = ?", (invoice_id,)).fetchone()

        return self._to_invoice(row) if row else None

    def list(self, search: Optional[str] = None) -> list[Invoice]:
        term = (search or "").strip()

        with self.db.session() as conn:
            if term:
                needle = term.casefold()
                rows = conn.execute(f"""
                    {_SELECT}
                    WHERE instr(casefold(json_extract(document, '$.vendor.name')), ?) > 0
                       OR instr(casefold(json_extract(document, '$.invoice.number')), ?) > 0
                    ORDER BY created_at DESC, seq DESC
                """, (needle, needle)).fetchall()
            else:
                rows = conn.execute(f"{_SELECT} ORDER BY created_at DESC, seq DESC").fetchall()

        return [self._to_invoice(row) for row in rows]

    def update(self, invoice_id: str, fields: dict) -> bool:
        if not is_valid_id(invoice_id):
            return False

        try:
            with self.db.session(immediate=True) as conn:
                row = conn.execute("SELECT document FROM invoices WHERE id = ?", (invoice_id,)).fetchone()
                if row is None:
                    return False

                changes = _validate(InvoiceUpdate, fields)
                supplied = {
                    key: value
                    for key, value in changes.model_dump(mode="json", by_alias=True).items()
                    if value is not None
                }

                current = json.loads(row["document"])
                merged = {**current, **supplied}
                if merged == current:
                    return False

                conn.execute("""
                    UPDATE invoices
                    SET document = ?,
                        updated_at = ?
                    WHERE id = ?
                """, (json.dumps(merged), _now(), invoice_id))
        except sqlite3.Error as e:
            logger.error("Invoice write failed: {error}", error=repr(e), invoice_id=invoice_id)
            raise StorageWriteError("Failed to update invoice", {"operation": "update", "id": invoice_id}) from e

        logger.info("Updated invoice", invoice_id=invoice_id, fields=sorted(supplied))
        return True

    def delete(self, invoice_id: str) -> bool:
        if not is_valid_id(invoice_id):
            return False

        try:
            with self.db.session() as conn:
                cursor = conn.execute("DELETE FROM invoices WHERE id = ?", (invoice_id,))
                deleted = cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error("Invoice delete failed: {error}", error=repr(e), invoice_id=invoice_id)
            raise StorageWriteError("Failed to delete invoice", {"operation": "delete", "id": invoice_id}) from e

        if deleted:
            logger.info("Deleted invoice", invoice_id=invoice_id)
        return deleted
