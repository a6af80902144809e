"""
Background notes job: extract → chunk → per-chunk notes → merge → persist.

Runs on a NotesWorkerPool worker. Every failure is recorded on the job; none
escapes to the worker loop.
"""

import json
import logging
from pathlib import Path

from studcom.background.document_tasks import extract_text_from_file
from studcom.config import Settings, get_settings
from studcom.core.exceptions import QuotaExceededError
from studcom.features.knowledge.chunking import chunk_text
from studcom.features.notes.generator import NotesGenerator
from studcom.features.notes.job_store import JobStore
from studcom.features.notes.merge import merge_notes

logger = logging.getLogger(__name__)

NO_VALID_OUTPUT_ERROR = "No valid chunk outputs (model failed or quota)"


def _remove_upload(upload_path: str) -> None:
    try:
        Path(upload_path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"⚠️ Could not remove upload {upload_path}: {e}")


async def run_notes_job(
    job_id: str,
    upload_path: str,
    mimetype: str | None,
    job_store: JobStore,
    generator: NotesGenerator | None = None,
    settings: Settings | None = None,
) -> None:
    settings = settings or get_settings()
    generator = generator or NotesGenerator(debug_dir=settings.NOTES_DEBUG_DIR)

    logger.info(f"📝 Starting notes job {job_id}")
    try:
        try:
            text = await extract_text_from_file(upload_path, mimetype)
        finally:
            _remove_upload(upload_path)

        chunks = chunk_text(
            text,
            max_chars=settings.NOTES_CHUNK_MAX_CHARS,
            overlap_chars=settings.NOTES_CHUNK_OVERLAP_CHARS,
            max_chunks=settings.NOTES_MAX_CHUNKS,
        )
        logger.info(f"📝 Job {job_id} split into {len(chunks)} chunk(s)")

        fragments = []
        for index, chunk in enumerate(chunks):
            logger.info(f"📝 Job {job_id} processing chunk {index + 1}/{len(chunks)}")
            fragment = await generator.generate_fragment(chunk, job_id=job_id, index=index)
            if fragment is None:
                logger.warning(f"⚠️ Job {job_id} dropped chunk {index}")
                continue
            fragments.append(fragment)

        if not fragments:
            job_store.mark_error(job_id, NO_VALID_OUTPUT_ERROR)
            logger.error(f"❌ Job {job_id} failed: {NO_VALID_OUTPUT_ERROR}")
            return

        merged = merge_notes(fragments)
        out_path = Path(settings.NOTES_STORAGE_DIR) / f"{job_id}.json"
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(merged.model_dump(), indent=2, ensure_ascii=False), encoding="utf-8")

        job_store.mark_done(job_id, str(out_path))
        logger.info(f"✅ Job {job_id} finished: {out_path}")

    except QuotaExceededError as e:
        logger.error(f"❌ Job {job_id} failed due to quota: {e.message}")
        job_store.mark_error(job_id, f"Quota exceeded: {e.message}")

    except Exception as e:
        logger.error(f"❌ Notes job {job_id} failed: {e}", exc_info=True)
        job_store.mark_error(job_id, str(e))
