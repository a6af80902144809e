"""
HTTP client for the notes API: upload a file, then poll until the notes are ready.

Polling outcome is always one of: notes dict returned, NotesJobFailedError (the
server reported `error`) or PollingTimeoutError (we gave up waiting). Transport
errors and 5xx answers while polling are retried until the budget runs out.
"""

import asyncio
import logging
import time
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)


class PollingTimeoutError(Exception):
    """The job did not finish within the polling budget."""

    def __init__(self, job_id: str, attempts: int, elapsed: float):
        super().__init__(f"Notes job {job_id} not finished after {attempts} polls ({elapsed:.0f}s)")
        self.job_id = job_id
        self.attempts = attempts
        self.elapsed = elapsed


class NotesJobFailedError(Exception):
    """The server finished the job with status `error`."""

    def __init__(self, job_id: str, error: str | None):
        super().__init__(f"Notes job {job_id} failed: {error or 'unknown error'}")
        self.job_id = job_id
        self.error = error


class NotesClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._owns_client = http_client is None

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def upload(self, path: str | Path, content_type: str | None = None) -> str:
        """POST the file to /api/notes and return the job id."""
        path = Path(path)
        files = {"file": (path.name, path.read_bytes(), content_type or "application/octet-stream")}
        response = await self._client.post("/api/notes", files=files)
        response.raise_for_status()
        return response.json()["jobId"]

    async def get_status(self, job_id: str) -> dict:
        response = await self._client.get(f"/api/notes/{job_id}")
        response.raise_for_status()
        return response.json()

    async def wait_for_notes(
        self,
        job_id: str,
        interval: float = 2.0,
        timeout: float = 300.0,
        max_attempts: int | None = None,
    ) -> dict:
        """Poll the job every `interval` seconds and return its notes.

        Raises:
            NotesJobFailedError: The job ended with status `error`.
            PollingTimeoutError: `timeout` seconds or `max_attempts` polls passed.
            httpx.HTTPStatusError: A 4xx answer (unknown job id, bad request).
        """
        started = time.monotonic()
        attempts = 0

        while True:
            attempts += 1
            try:
                payload = await self.get_status(job_id)
            except httpx.TransportError as e:
                logger.warning(f"⚠️ Poll {attempts} for job {job_id} failed: {e}")
                payload = None
            except httpx.HTTPStatusError as e:
                if e.response.status_code < 500:
                    raise
                logger.warning(f"⚠️ Poll {attempts} for job {job_id} got {e.response.status_code}")
                payload = None

            if payload is not None:
                status = payload.get("status")
                if status == "done":
                    return payload.get("notes") or {}
                if status == "error":
                    raise NotesJobFailedError(job_id, payload.get("error"))

            elapsed = time.monotonic() - started
            if (max_attempts is not None and attempts >= max_attempts) or elapsed + interval > timeout:
                raise PollingTimeoutError(job_id, attempts, elapsed)

            await asyncio.sleep(interval)

    async def create_and_wait(self, path: str | Path, content_type: str | None = None, **poll_options) -> dict:
        job_id = await self.upload(path, content_type)
        logger.info(f"📨 Uploaded {path}, job {job_id}")
        return await self.wait_for_notes(job_id, **poll_options)
