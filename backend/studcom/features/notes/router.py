"""
Notes feature: upload a document, poll the job, fetch the notes.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from functools import partial
from pathlib import Path

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import FileResponse, JSONResponse

from studcom.background.notes_tasks import run_notes_job
from studcom.background.notes_worker import NotesWorkerPool
from studcom.config import get_settings
from studcom.core.dependencies import get_job_store, get_notes_generator, get_notes_pool
from studcom.features.notes.generator import NotesGenerator
from studcom.features.notes.job_store import JobStore
from studcom.features.notes.schemas import JobStatus, NotesJobAccepted

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _persisted_result(job_id: str) -> Path | None:
    """Result file of a job id, if one was written (also survives restarts)."""
    if Path(job_id).name != job_id:
        return None
    path = Path(get_settings().NOTES_STORAGE_DIR) / f"{job_id}.json"
    return path if path.is_file() else None


def _read_notes(path: str | Path) -> dict:
    return json.loads(Path(path).read_text(encoding="utf-8"))


@router.post("", response_model=NotesJobAccepted)
async def create_notes_job(
    file: UploadFile | None = File(default=None),
    job_store: JobStore = Depends(get_job_store),
    pool: NotesWorkerPool = Depends(get_notes_pool),
    generator: NotesGenerator = Depends(get_notes_generator),
):
    """
    Upload a PDF / DOCX / text file and start a notes job.
    - Reject with 503 before anything is stored if the queue is full.
    - Save the upload, create the job as `processing`, enqueue it.
    """
    if file is None or not file.filename:
        return _error(status.HTTP_400_BAD_REQUEST, "no file uploaded")

    # May yield: large uploads are spooled to disk.
    content = await file.read()

    # No await below this line until the job is queued.
    pool.ensure_capacity()

    settings = get_settings()
    upload_dir = Path(settings.NOTES_UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    upload_path = upload_dir / f"{uuid.uuid4()}{Path(file.filename).suffix.lower()}"
    upload_path.write_bytes(content)

    job = job_store.create(filename=file.filename)
    logger.info(f"📨 Notes upload received, created job {job.id} ({file.filename})")

    try:
        pool.submit(
            job.id,
            partial(
                run_notes_job,
                job.id,
                str(upload_path),
                file.content_type,
                job_store,
                generator,
                settings,
            ),
        )
    except Exception:
        job_store.delete(job.id)
        upload_path.unlink(missing_ok=True)
        logger.warning(f"⚠️ Could not enqueue job {job.id}, discarded it")
        raise
    return NotesJobAccepted(jobId=job.id)


@router.get("")
async def list_notes():
    """Persisted notes results, newest first."""
    storage_dir = Path(get_settings().NOTES_STORAGE_DIR)
    storage_dir.mkdir(parents=True, exist_ok=True)

    jobs = []
    for path in storage_dir.glob("*.json"):
        try:
            parsed = _read_notes(path)
            mtime = path.stat().st_mtime
        except (OSError, ValueError) as e:
            logger.warning(f"Failed reading job file {path.name}: {e}")
            continue
        jobs.append({
            "jobId": path.stem,
            "createdAt": datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat(),
            "previewTitle": (parsed.get("title") or parsed.get("name") or "Notes") if isinstance(parsed, dict) else "Notes",
            "path": str(path),
            "_mtime": mtime,
        })

    jobs.sort(key=lambda j: j["_mtime"], reverse=True)
    for job in jobs:
        del job["_mtime"]
    return {"jobs": jobs}


@router.get("/{job_id}")
async def get_notes_job(job_id: str, job_store: JobStore = Depends(get_job_store)):
    """Job status; the notes themselves once the job is done."""
    job = job_store.get(job_id)

    if job is None:
        persisted = _persisted_result(job_id)
        if persisted is None:
            return _error(status.HTTP_404_NOT_FOUND, "job_not_found")
        try:
            return {"status": JobStatus.DONE.value, "notes": _read_notes(persisted)}
        except (OSError, ValueError) as e:
            logger.warning(f"Failed reading job file {persisted.name}: {e}")
            return _error(status.HTTP_404_NOT_FOUND, "job_not_found")

    if job.status == JobStatus.DONE:
        try:
            return {"status": job.status.value, "notes": _read_notes(job.result_path)}
        except (OSError, ValueError) as e:
            logger.error(f"❌ Result of job {job_id} is unreadable: {e}")
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "notes_unreadable")
    if job.status == JobStatus.ERROR:
        return {"status": job.status.value, "error": job.error}
    return {"status": job.status.value}


@router.get("/{job_id}/download")
async def download_notes(job_id: str, job_store: JobStore = Depends(get_job_store)):
    """The notes JSON file as an attachment."""
    job = job_store.get(job_id)
    if job is not None and job.status == JobStatus.DONE:
        path = Path(job.result_path)
    elif job is None:
        path = _persisted_result(job_id)
    else:
        path = None

    if path is None or not path.is_file():
        return _error(status.HTTP_404_NOT_FOUND, "not_ready")
    return FileResponse(path, media_type="application/json", filename=f"{job_id}.json")
