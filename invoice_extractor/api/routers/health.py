from datetime import datetime, UTC
from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/")
def root():
    return {"message": "Welcome to the Invoice Extractor API"}


@router.get("/health")
def health():
    return {"status": "OK", "timestamp": datetime.now(UTC).isoformat()}
