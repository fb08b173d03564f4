from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from ..core.logging import setup_logging
from ..core.config import Settings, settings as default_settings
from ..core.errors import InvoicePipelineError
from ..services.extraction import ExtractionEngine
from ..services.pipeline import InvoicePipeline, RetryPolicy
from ..services.storage.blob_store_sqlite import SQLiteBlobStore
from ..services.storage.database import Database
from ..services.storage.invoice_repository_sqlite import SQLiteInvoiceRepository
from .routers import extract, health, invoices, upload


def create_app(settings: Settings | None = None, engine: ExtractionEngine | None = None) -> FastAPI:
    """
    Build the API.

    Args:
        settings: Configuration (defaults to environment / .env)
        engine: Preconfigured extraction engine (e.g. with fake providers)
    """
    settings = settings or default_settings
    logger = setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = Database(settings.database_path, pool_size=settings.database_pool_size).connect()
        extraction_engine = engine or ExtractionEngine(settings)

        app.state.database = db
        app.state.blob_store = SQLiteBlobStore(db, chunk_size=settings.blob_chunk_size)
        app.state.repository = SQLiteInvoiceRepository(db)
        app.state.pipeline = InvoicePipeline(
            app.state.blob_store,
            extraction_engine,
            max_upload_bytes=settings.max_upload_bytes,
            min_text_chars=settings.min_text_chars,
            retry_policy=RetryPolicy(
                max_attempts=settings.extraction_max_attempts,
                backoff_seconds=settings.extraction_retry_backoff_seconds,
            ),
        )
        logger.info("API started", env=settings.app_env)
        try:
            yield
        finally:
            extraction_engine.close()
            db.close()
            logger.info("API stopped")

    app = FastAPI(title="Invoice Extractor", lifespan=lifespan)
    app.state.settings = settings

    @app.exception_handler(InvoicePipelineError)
    async def pipeline_exception_handler(request: Request, exc: InvoicePipelineError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "{method} {path} failed: {message}",
            method=request.method,
            path=request.url.path,
            message=exc.message,
            category=exc.category,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error(
            "{method} {path} crashed: {error}",
            method=request.method,
            path=request.url.path,
            error=repr(exc),
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "category": "internal",
                "message": "An unexpected error occurred",
                "retryable": False,
                "details": {},
            },
        )

    # Add custom exception handler for validation errors
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(f"Validation error: {exc.errors()}")
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "error": "Missing required fields",
                "category": "input",
                "message": "; ".join(f"{e['field']}: {e['message']}" for e in errors),
                "retryable": False,
                "details": {"errors": errors},
            },
        )

    # CORS_ORIGINS can be set in .env as comma-separated list
    allowed_origins = [origin.strip() for origin in settings.cors_origins.split(",")]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(upload.router)
    app.include_router(extract.router)
    app.include_router(invoices.router)
    return app


app = create_app()


if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run("invoice_extractor.api.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
