"""
FastAPI dependency injection functions.
"""

from fastapi import Depends, Header, Request

from studcom.config import get_settings
from studcom.core.database import get_local_session_factory, get_supabase_client
from studcom.core.exceptions import ConfigurationError
from studcom.storage.base import StorageBackend


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Dependency: optional user-scoping id.

    There is no login here; the front end sends `X-User-Id` when it has one and
    everything else lands in the demo user's scope.
    """
    return x_user_id or get_settings().DEMO_USER_ID


def build_storage(owner_id: str | None) -> StorageBackend:
    """Pick the storage backend from STORAGE_BACKEND (auto = local in demo mode)."""
    settings = get_settings()
    backend = settings.resolved_storage_backend

    match backend:
        case "local":
            from studcom.storage.local import LocalStorageBackend

            return LocalStorageBackend(
                get_local_session_factory(),
                files_dir=settings.LOCAL_FILES_DIR,
                owner_id=owner_id,
            )

        case "supabase":
            from studcom.storage.remote import SupabaseStorageBackend

            return SupabaseStorageBackend(
                get_supabase_client(),
                bucket=settings.SUPABASE_FILES_BUCKET,
                owner_id=owner_id,
            )

        case _:
            raise ConfigurationError(
                f"Unknown storage backend: '{backend}'. Supported: auto, local, supabase"
            )


def get_storage(user_id: str = Depends(get_user_id)) -> StorageBackend:
    """Dependency: storage backend scoped to the caller."""
    return build_storage(user_id)


def get_job_store(request: Request):
    """Dependency: the process-wide notes job store."""
    return request.app.state.job_store


def get_notes_pool(request: Request):
    """Dependency: the notes worker pool started in the lifespan."""
    return request.app.state.notes_pool


def get_notes_generator(request: Request):
    """Dependency: the shared NotesGenerator (its chat model is built lazily)."""
    return request.app.state.notes_generator
