"""
Abstract base class for invoice persistence.

Defines the interface that all invoice repositories implement, enabling
dependency injection and easy swapping of storage backends.
"""

from abc import ABC, abstractmethod
from typing import Optional
from ...models.invoice import Invoice


class InvoiceRepositoryBase(ABC):
    """
    Stores Invoice aggregates (vendor, details and line items as one document).

    Implementations own identity (ids are assigned here and never reused),
    server-side timestamps and the required-field invariants.
    """

    @abstractmethod
    def create(self, invoice_data: dict) -> str:
        """
        Persist a new invoice and return its ID.

        Args:
            invoice_data: Dictionary with fileId, fileName, vendor and invoice

        Returns:
            Invoice ID

        Raises:
            ValidationError: vendor.name or invoice.number missing, or bad values
            StorageWriteError: the database rejected the write
        """
        pass

    @abstractmethod
    def get(self, invoice_id: str) -> Optional[Invoice]:
        """
        Get an invoice by ID.

        Returns:
            Invoice, or None if not found (including malformed IDs)
        """
        pass

    @abstractmethod
    def list(self, search: Optional[str] = None) -> list[Invoice]:
        """
        List invoices, newest first.

        Args:
            search: Case-insensitive substring matched against vendor.name
                and invoice.number; None or blank returns everything
        """
        pass

    @abstractmethod
    def update(self, invoice_id: str, fields: dict) -> bool:
        """
        Replace the supplied top-level sub-objects (vendor and/or invoice).

        Returns:
            True if the stored invoice changed, False if no invoice matched
            or nothing changed. An unknown id is False even when the
            payload is invalid.

        Raises:
            ValidationError: a supplied sub-object is invalid
            StorageWriteError: the database rejected the write
        """
        pass

    @abstractmethod
    def delete(self, invoice_id: str) -> bool:
        """
        Delete an invoice.

        Returns:
            True if an invoice existed and was removed
        """
        pass
