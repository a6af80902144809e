import asyncio
import logging
import os
import tempfile
from pathlib import Path

import docx
from langchain_community.document_loaders import PyPDFLoader

from studcom.features.knowledge.service import KnowledgeService
from studcom.storage.base import StorageBackend

logger = logging.getLogger(__name__)

PDF_MIMETYPE = "application/pdf"
DOCX_MIMETYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _extract_text_sync(path: str, mimetype: str | None = None) -> str:
    """
    PDF via PyPDFLoader (page texts joined by newlines), DOCX via python-docx
    (non-empty paragraphs), everything else read as UTF-8 text.
    """
    lowered = str(path).lower()

    if mimetype == PDF_MIMETYPE or lowered.endswith(".pdf"):
        pages = PyPDFLoader(str(path)).load()
        return "\n".join(page.page_content for page in pages)

    if mimetype == DOCX_MIMETYPE or lowered.endswith(".docx"):
        document = docx.Document(str(path))
        return "\n".join(p.text for p in document.paragraphs if p.text.strip())

    return Path(path).read_text(encoding="utf-8")


async def extract_text_from_file(path: str, mimetype: str | None = None) -> str:
    """Extract plain text without blocking the event loop. Parser errors propagate."""
    return await asyncio.to_thread(_extract_text_sync, path, mimetype)


def extract_text_from_bytes(file_bytes: bytes, filename: str) -> str:
    """
    Extract text from uploaded bytes.
    Use a temp file since the loaders require file paths.
    """
    suffix = Path(filename).suffix.lower()

    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as temp_file:
        temp_file.write(file_bytes)
        temp_path = temp_file.name

    try:
        return _extract_text_sync(temp_path)
    finally:
        if os.path.exists(temp_path):
            os.remove(temp_path)


async def process_resource_pipeline(
    storage: StorageBackend,
    resource_id: str,
    file_bytes: bytes,
    file_name: str,
    knowledge: KnowledgeService | None = None,
):
    """
    Background task to index an uploaded resource for RAG:
    1. Mark the resource `processing`.
    2. Extract text.
    3. Chunk (RAG policy), embed as RETRIEVAL_DOCUMENT, store chunks.
    4. Mark `completed`, or `failed` with the error message.
    """
    logger.info(f"🚀 Starting background processing for resource {resource_id} ({file_name})")

    try:
        storage.update_resource(resource_id, {"processing_status": "processing"})

        resource = storage.get_resource(resource_id)
        if resource is None:
            raise ValueError(f"Resource {resource_id} no longer exists")
        topic = storage.get_topic(resource["topic_id"])
        if topic is None:
            raise ValueError(f"Topic {resource['topic_id']} no longer exists")

        text = await asyncio.to_thread(extract_text_from_bytes, file_bytes, file_name)
        if not text.strip():
            raise ValueError("No text could be extracted from the document.")

        service = knowledge or KnowledgeService(storage)
        count = await service.ingest_text(
            resource_id=resource_id,
            topic_id=topic["id"],
            subject_id=topic["subject_id"],
            text=text,
            source_type=resource["type"],
            source_title=resource["title"],
        )

        storage.update_resource(resource_id, {"processing_status": "completed", "error_message": None})
        logger.info(f"🎉 Resource pipeline finished for {resource_id}: {count} chunks.")

    except Exception as e:
        logger.error(f"❌ Resource pipeline failed for {resource_id}: {e}", exc_info=True)
        try:
            storage.update_resource(resource_id, {"processing_status": "failed", "error_message": str(e)})
        except Exception as update_error:
            logger.warning(f"⚠️ Could not mark resource {resource_id} as failed: {update_error}")
