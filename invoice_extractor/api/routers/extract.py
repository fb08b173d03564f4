from fastapi import APIRouter, Depends
from ..deps import ExtractRequest, ExtractTextRequest, get_pipeline
from ...services.pipeline import InvoicePipeline

router = APIRouter(prefix="/extract", tags=["extract"])


@router.post("")
def extract_from_file(req: ExtractRequest, pipeline: InvoicePipeline = Depends(get_pipeline)):
    """
    Extract a draft invoice from a stored PDF.

    The draft is returned for human review and is NOT persisted; save it
    with POST /invoices once approved.

    Example request:
    {
        "fileId": "0f8e3a6c2b7d4e1f9a5b3c8d7e6f1a2b",
        "model": "gemini"
    }
    """
    result = pipeline.extract_file(req.file_id, req.model)
    return {
        "success": True,
        "data": {
            "fileId": result.file_id,
            "fileName": result.file_name,
            **result.draft.model_dump(mode="json", by_alias=True),
        },
        "model": result.model,
        "message": f"Data extracted successfully using {result.model}",
    }


@router.post("/test")
def extract_from_text(req: ExtractTextRequest, pipeline: InvoicePipeline = Depends(get_pipeline)):
    """Run the model step on raw text (for testing prompts and providers)."""
    result = pipeline.extract_text(req.text, req.model)
    return {
        "success": True,
        "data": result.draft.model_dump(mode="json", by_alias=True),
        "model": result.model,
        "message": f"Test extraction completed using {result.model}",
    }
