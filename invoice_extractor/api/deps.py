from fastapi import Request
from ..models.invoice import CamelModel
from ..services.pipeline import InvoicePipeline
from ..services.storage.blob_store_base import BlobStoreBase
from ..services.storage.invoice_repository_base import InvoiceRepositoryBase


class ExtractRequest(CamelModel):
    """Request body for /extract"""
    file_id: str
    model: str


class ExtractTextRequest(CamelModel):
    """Request body for /extract/test"""
    text: str
    model: str


# Services are built once in the app lifespan and shared across requests

def get_pipeline(request: Request) -> InvoicePipeline:
    return request.app.state.pipeline


def get_blob_store(request: Request) -> BlobStoreBase:
    return request.app.state.blob_store


def get_repository(request: Request) -> InvoiceRepositoryBase:
    return request.app.state.repository
