from typing import BinaryIO
from urllib.parse import quote
from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import StreamingResponse
from ..deps import get_blob_store, get_pipeline
from ...core.errors import EmptyUpload, NotFound
from ...services.pipeline import InvoicePipeline
from ...services.storage.blob_store_base import BlobStoreBase

router = APIRouter(prefix="/upload", tags=["files"])


def _stream_size(stream: BinaryIO) -> int | None:
    """Size of a spooled upload, or None if the stream can't seek."""
    if not stream.seekable():
        return None
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(0)
    return size


def _content_disposition(filename: str) -> str:
    fallback = filename.encode("ascii", "ignore").decode().replace('"', "") or "document.pdf"
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


@router.post("")
def upload_pdf(pdf: UploadFile | None = File(None), pipeline: InvoicePipeline = Depends(get_pipeline)):
    """
    Upload a PDF (multipart field "pdf") into the blob store.

    Only application/pdf is accepted and the size limit is enforced before
    anything is stored. No extraction happens here; call /extract with the
    returned fileId.
    """
    if pdf is None:
        raise EmptyUpload()

    try:
        stored = pipeline.ingest(
            pdf.file,
            pdf.filename or "document.pdf",
            pdf.content_type,
            size=_stream_size(pdf.file),
        )
    finally:
        # Release the spooled temp file on every exit path
        pdf.file.close()

    return {
        "success": True,
        "fileId": stored.id,
        "fileName": stored.filename,
        "length": stored.length,
        "message": "File uploaded successfully",
    }


@router.get("/{file_id}")
def download_pdf(file_id: str, blob_store: BlobStoreBase = Depends(get_blob_store)):
    """Stream a stored PDF back for inline viewing."""
    stored = blob_store.stat(file_id)
    if stored is None:
        raise NotFound("file", file_id)

    return StreamingResponse(
        blob_store.iter_chunks(file_id),
        media_type=stored.content_type,
        headers={
            "Content-Disposition": _content_disposition(stored.filename),
            "Content-Length": str(stored.length),
        },
    )


@router.delete("/{file_id}")
def delete_pdf(file_id: str, blob_store: BlobStoreBase = Depends(get_blob_store)):
    """Delete a stored PDF. Invoices referencing it keep their fileId."""
    if not blob_store.delete(file_id):
        raise NotFound("file", file_id)
    return {"success": True, "message": "File deleted successfully"}
