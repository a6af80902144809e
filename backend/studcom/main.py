"""
StudCom backend - FastAPI Application Entry Point.

Feature-based modular architecture:
  Each feature in studcom/features/ has its own router, schemas and service.
  Long-running work lives in studcom/background/ (worker pool, scheduler).
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studcom.background.notes_worker import NotesWorkerPool
from studcom.background.scheduler import create_scheduler, init_scheduler, shutdown_scheduler
from studcom.config import get_settings
from studcom.core.exceptions import AppBaseError, app_error_handler
from studcom.features.notes.generator import NotesGenerator
from studcom.features.notes.job_store import InMemoryJobStore, JobStore

# ── Feature Routers ──────────────────────────────────────
from studcom.features.chat.router import router as chat_router
from studcom.features.knowledge.router import router as knowledge_router
from studcom.features.library.router import router as library_router
from studcom.features.notes.router import router as notes_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup & shutdown."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"🚀 {settings.APP_NAME} v{settings.APP_VERSION} starting...")
    print(f"🤖 LLM Provider: {settings.LLM_PROVIDER} ({settings.LLM_MODEL})")
    print(f"🗄️  Storage: {settings.resolved_storage_backend}" + (" (demo mode)" if settings.is_demo_mode else ""))

    pool = NotesWorkerPool(
        max_workers=settings.NOTES_MAX_CONCURRENT_JOBS,
        max_queued=settings.NOTES_MAX_QUEUED_JOBS,
    )
    pool.start()
    app.state.notes_pool = pool

    scheduler = create_scheduler()
    init_scheduler(scheduler)

    yield

    shutdown_scheduler(scheduler)
    await pool.stop()
    print("👋 Shutting down...")


def create_app(job_store: JobStore | None = None) -> FastAPI:
    """Application factory."""
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Study companion: library, RAG tutor chat and AI notes maker",
        lifespan=lifespan,
    )
    app.state.job_store = job_store or InMemoryJobStore()
    app.state.notes_generator = NotesGenerator(debug_dir=settings.NOTES_DEBUG_DIR)

    # ── CORS ─────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppBaseError, app_error_handler)

    # ── Register Feature Routers ─────────────────────────
    app.include_router(notes_router, prefix="/api/notes", tags=["Notes"])
    app.include_router(chat_router, prefix="/api/chat", tags=["Chat"])
    app.include_router(knowledge_router, prefix="/api/knowledge", tags=["Knowledge"])
    app.include_router(library_router, prefix="/api/library", tags=["Library"])

    # ── Health Check ─────────────────────────────────────
    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    return app


app = create_app()
