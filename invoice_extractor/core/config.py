from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("invoice-extractor", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # CORS allowed origins (comma-separated list)
    cors_origins: str = Field("http://localhost:3000,http://127.0.0.1:3000", alias="CORS_ORIGINS")

    # Document store (SQLite file shared by invoices and uploaded PDFs)
    database_path: str = Field("invoices.db", alias="DATABASE_PATH")
    database_pool_size: int = Field(5, alias="DATABASE_POOL_SIZE")
    blob_chunk_size: int = Field(255 * 1024, alias="BLOB_CHUNK_SIZE")

    # Upload / text extraction limits
    max_upload_bytes: int = Field(25 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    min_text_chars: int = Field(10, alias="MIN_TEXT_CHARS")

    # Gemini
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field("gemini-1.5-flash-latest", alias="GEMINI_MODEL")
    gemini_base_url: str = Field("https://generativelanguage.googleapis.com/v1beta", alias="GEMINI_BASE_URL")

    # OpenAI-compatible LLM (OpenAI, Azure OpenAI, Groq, ...)
    llm_base_url: str | None = Field(default=None, alias="LLM_BASE_URL")
    llm_api_key: str | None = Field(default=None, alias="LLM_API_KEY")
    llm_deployment: str | None = Field(default=None, alias="LLM_DEPLOYMENT")

    llm_timeout_seconds: float = Field(60.0, alias="LLM_TIMEOUT_SECONDS")

    # Retry policy for extraction requests (1 = no retry)
    extraction_max_attempts: int = Field(1, alias="EXTRACTION_MAX_ATTEMPTS")
    extraction_retry_backoff_seconds: float = Field(1.0, alias="EXTRACTION_RETRY_BACKOFF_SECONDS")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "populate_by_name": True}

settings = Settings()
