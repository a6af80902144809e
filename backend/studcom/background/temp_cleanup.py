"""
Background cleanup job: remove stale notes uploads and debug dumps.

Flow that creates temp files:
  POST /api/notes → `{NOTES_UPLOAD_DIR}/{uuid}{ext}` (removed after extraction)
  failed chunk    → `{NOTES_DEBUG_DIR}/{job_id}-chunk-{i}-error.json`

Uploads normally disappear once the job extracts them; this sweep catches the
ones orphaned by a crash or restart. Runs every NOTES_CLEANUP_INTERVAL_HOURS
via APScheduler and deletes files older than NOTES_TEMP_MAX_AGE_HOURS.
"""

import logging
import time
from pathlib import Path

from studcom.config import get_settings

logger = logging.getLogger(__name__)


def cleanup_temp_files(
    directories: list[str | Path] | None = None,
    max_age_hours: float | None = None,
) -> dict:
    """
    Delete regular files older than max_age_hours from each directory.

    Missing directories are ignored; subdirectories are left alone.

    Returns:
        dict: { "deleted": int, "skipped": int, "errors": int }
    """
    settings = get_settings()
    if directories is None:
        directories = [settings.NOTES_UPLOAD_DIR, settings.NOTES_DEBUG_DIR]
    if max_age_hours is None:
        max_age_hours = settings.NOTES_TEMP_MAX_AGE_HOURS

    max_age_seconds = max_age_hours * 60 * 60
    stats = {"deleted": 0, "skipped": 0, "errors": 0}
    now = time.time()

    for directory in directories:
        folder = Path(directory)
        if not folder.is_dir():
            continue

        for path in folder.iterdir():
            if not path.is_file():
                continue

            try:
                age_seconds = now - path.stat().st_mtime
            except OSError as e:
                logger.warning(f"Could not stat temp file {path}: {e}")
                stats["errors"] += 1
                continue

            if age_seconds <= max_age_seconds:
                stats["skipped"] += 1
                continue

            try:
                path.unlink()
                logger.info(f"🗑️  Deleted expired temp file: {path} (age: {int(age_seconds) // 3600}h)")
                stats["deleted"] += 1
            except OSError as e:
                logger.warning(f"Failed to delete temp file {path}: {e}")
                stats["errors"] += 1

    logger.info(
        f"✅ Temp cleanup finished: "
        f"deleted={stats['deleted']}, skipped={stats['skipped']}, errors={stats['errors']}"
    )
    return stats
