"""
Application configuration using Pydantic Settings.
All config is loaded from environment variables / .env file.
"""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # ── App ──────────────────────────────────────────────
    APP_NAME: str = "studcom-backend"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"  # comma-separated

    # ── Supabase ─────────────────────────────────────────
    SUPABASE_URL: str = ""  # empty / placeholder = local (demo) mode
    SUPABASE_KEY: str = ""  # anon/public key

    # ── Storage ──────────────────────────────────────────
    STORAGE_BACKEND: str = "auto"  # auto | local | supabase
    LOCAL_DB_URL: str = "sqlite:///./data/studcom.db"
    LOCAL_FILES_DIR: str = "./data/files"
    SUPABASE_FILES_BUCKET: str = "resources"
    DEMO_USER_ID: str = "demo-user-001"

    # ── LLM ──────────────────────────────────────────────
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = "gemini-2.5-flash"
    LLM_API_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("LLM_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY"),
    )
    CHAT_TEMPERATURE: float = 0.7
    CHAT_MAX_OUTPUT_TOKENS: int = 1024
    NOTES_TEMPERATURE: float = 0.2
    NOTES_MAX_OUTPUT_TOKENS: int = 4000

    # ── Embedding ────────────────────────────────────────
    EMBEDDING_PROVIDER: str = "gemini"
    EMBEDDING_MODEL: str = "gemini-embedding-001"
    EMBEDDING_DIMENSIONS: int = 768
    EMBEDDING_BATCH_SIZE: int = 100  # API hard limit per batch request
    QUERY_EMBEDDING_CACHE_SIZE: int = 256
    QUERY_EMBEDDING_CACHE_TTL_SECONDS: int = 3600

    # ── RAG ──────────────────────────────────────────────
    RAG_CHUNK_SIZE: int = 2000
    RAG_CHUNK_OVERLAP: int = 200
    RAG_MATCH_COUNT: int = 5
    RAG_MATCH_THRESHOLD: float = 0.7

    # ── Notes maker ──────────────────────────────────────
    NOTES_CHUNK_MAX_CHARS: int = 30000
    NOTES_CHUNK_OVERLAP_CHARS: int = 500
    NOTES_MAX_CHUNKS: int = 50
    NOTES_MAX_CONCURRENT_JOBS: int = 2
    NOTES_MAX_QUEUED_JOBS: int = 20
    NOTES_UPLOAD_DIR: str = "./data/tmp_uploads"
    NOTES_STORAGE_DIR: str = "./data/notes"
    NOTES_DEBUG_DIR: str = "./data/tmp_debug"
    NOTES_TEMP_MAX_AGE_HOURS: int = 24
    NOTES_CLEANUP_INTERVAL_HOURS: int = 6

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
        "populate_by_name": True,
    }

    @property
    def is_demo_mode(self) -> bool:
        """No usable Supabase project configured."""
        return not self.SUPABASE_URL or "placeholder" in self.SUPABASE_URL

    @property
    def resolved_storage_backend(self) -> str:
        if self.STORAGE_BACKEND == "auto":
            return "local" if self.is_demo_mode else "supabase"
        return self.STORAGE_BACKEND


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance (singleton)."""
    return Settings()
