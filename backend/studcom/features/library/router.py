"""
Library feature: API routes for subjects, topics, resources and progress.
"""

import logging
import urllib.parse

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Response, UploadFile

from studcom.background.document_tasks import process_resource_pipeline
from studcom.core.dependencies import get_storage, get_user_id
from studcom.features.library.schemas import ProgressUpdate, SubjectCreate, TopicCreate
from studcom.storage.base import RESOURCE_TYPES, StorageBackend

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_EXTENSIONS = {"pdf", "docx", "txt", "md"}
MAX_UPLOAD_BYTES = 50 * 1024 * 1024


def allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


# ── Subjects ─────────────────────────────────────────────

@router.get("/subjects")
async def list_subjects(storage: StorageBackend = Depends(get_storage)):
    return {"data": storage.get_subjects()}


@router.post("/subjects")
async def create_subject(data: SubjectCreate, storage: StorageBackend = Depends(get_storage)):
    return {"data": storage.save_subject(data.name, data.color, data.icon, data.description)}


@router.delete("/subjects/{subject_id}")
async def delete_subject(subject_id: str, storage: StorageBackend = Depends(get_storage)):
    """Delete a subject with its topics, resources and chunks."""
    storage.delete_subject(subject_id)
    return {"message": "Subject deleted"}


# ── Topics ───────────────────────────────────────────────

@router.get("/subjects/{subject_id}/topics")
async def list_topics(subject_id: str, storage: StorageBackend = Depends(get_storage)):
    return {"data": storage.get_topics(subject_id)}


@router.post("/subjects/{subject_id}/topics")
async def create_topic(
    subject_id: str,
    data: TopicCreate,
    storage: StorageBackend = Depends(get_storage),
):
    return {"data": storage.save_topic(subject_id, data.name, data.description)}


@router.delete("/topics/{topic_id}")
async def delete_topic(topic_id: str, storage: StorageBackend = Depends(get_storage)):
    storage.delete_topic(topic_id)
    return {"message": "Topic deleted"}


# ── Resources ────────────────────────────────────────────

@router.get("/topics/{topic_id}/resources")
async def list_resources(topic_id: str, storage: StorageBackend = Depends(get_storage)):
    return {"data": storage.get_resources(topic_id)}


@router.post("/topics/{topic_id}/resources")
async def upload_resource(
    topic_id: str,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    title: str = Form(...),
    type: str = Form(...),
    description: str | None = Form(None),
    storage: StorageBackend = Depends(get_storage),
):
    """
    Upload a book / slides / notes / pyqs file to a topic.
    - Store the file and create the resource as `pending`.
    - Index it for RAG in a background task (extract, chunk, embed).
    """
    if not allowed_file(file.filename or ""):
        raise HTTPException(status_code=400, detail="Only PDF, DOCX, TXT, and MD files are allowed.")
    if type not in RESOURCE_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid type. Must be one of: {', '.join(RESOURCE_TYPES)}")

    file_bytes = await file.read()
    if len(file_bytes) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large. Maximum size is 50MB.")

    resource = storage.save_file(
        topic_id=topic_id,
        resource_type=type,
        file_bytes=file_bytes,
        file_name=file.filename,
        content_type=file.content_type,
        title=title,
        description=description,
    )
    logger.info(f"📎 Stored resource {resource['id']} ({file.filename}), indexing in background")

    background_tasks.add_task(
        process_resource_pipeline,
        storage,
        resource["id"],
        file_bytes,
        file.filename,
    )
    return {"data": resource}


@router.delete("/resources/{resource_id}")
async def delete_resource(resource_id: str, storage: StorageBackend = Depends(get_storage)):
    """Delete a resource, its stored file and its chunks."""
    storage.delete_resource(resource_id)
    return {"message": "Resource deleted"}


@router.get("/resources/{resource_id}/file")
async def download_resource_file(resource_id: str, storage: StorageBackend = Depends(get_storage)):
    file_bytes, file_name, content_type = storage.get_file(resource_id)
    quoted = urllib.parse.quote(file_name)
    return Response(
        content=file_bytes,
        media_type=content_type or "application/octet-stream",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quoted}"},
    )


# ── Progress ─────────────────────────────────────────────

@router.get("/progress")
async def list_progress(
    user_id: str = Depends(get_user_id),
    storage: StorageBackend = Depends(get_storage),
):
    return {"data": storage.get_progress(user_id)}


@router.put("/progress/{topic_id}")
async def update_progress(
    topic_id: str,
    data: ProgressUpdate,
    user_id: str = Depends(get_user_id),
    storage: StorageBackend = Depends(get_storage),
):
    """Upsert the caller's progress on one topic."""
    updates = {k: v for k, v in data.model_dump().items() if v is not None}
    return {"data": storage.update_progress(user_id, topic_id, updates)}
