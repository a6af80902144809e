"""
Custom exception classes for unified error handling.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse


class AppBaseError(Exception):
    """Base exception for all application errors."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class ConfigurationError(AppBaseError):
    """Raised when a required setting (API key, backend name...) is missing or invalid."""


class UpstreamAPIError(AppBaseError):
    """Raised when Gemini (embedding or generation) answers with a non-2xx status."""
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message=message, detail=body or None)
        self.upstream_status = status_code
        self.body = body


class QuotaExceededError(UpstreamAPIError):
    """Raised when the model provider reports 429 / RESOURCE_EXHAUSTED."""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class JobNotFoundError(AppBaseError):
    """Raised when a notes job id is unknown to the job store."""
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, job_id: str):
        super().__init__(message="job_not_found", detail=job_id)
        self.job_id = job_id


class InvalidJobTransitionError(AppBaseError):
    """Raised when a job that already finished is asked to change state again."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, job_id: str, current: str, target: str):
        super().__init__(
            message=f"Job '{job_id}' cannot move from {current} to {target}",
        )


class NotesQueueFullError(AppBaseError):
    """Raised when the notes worker pool cannot accept more jobs."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, capacity: int):
        super().__init__(
            message="notes queue is full",
            detail=f"{capacity} jobs already waiting, try again later.",
        )


class ResourceNotFoundError(AppBaseError):
    """Raised when a subject / topic / resource id does not exist for this user."""
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, kind: str, resource_id: str):
        super().__init__(message=f"{kind}_not_found", detail=resource_id)


class ChunkingConfigError(ValueError):
    """Chunk size / overlap combination that would not terminate sensibly."""


class VectorLengthMismatchError(ValueError):
    """Two vectors compared for similarity have different dimensionality."""

    def __init__(self, len_a: int, len_b: int):
        super().__init__(f"Vector length mismatch: {len_a} != {len_b}")
        self.len_a = len_a
        self.len_b = len_b


# ── Utility: convert to JSON response ────────────────────

def app_error_body(error: AppBaseError) -> dict:
    """Consistent JSON body for every AppBaseError."""
    return {
        "error": error.message,
        "detail": error.detail,
        "type": type(error).__name__,
    }


async def app_error_handler(request: Request, error: AppBaseError) -> JSONResponse:
    """FastAPI exception handler registered in main.create_app."""
    return JSONResponse(status_code=error.status_code, content=app_error_body(error))
