"""Unit tests for the temp-file sweep and its scheduler registration."""

import os
import time
from pathlib import Path

from studcom.background.scheduler import CLEANUP_JOB_ID, create_scheduler
from studcom.background.temp_cleanup import cleanup_temp_files


def _touch(path, age_hours):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("x")
    stamp = time.time() - age_hours * 3600
    os.utime(path, (stamp, stamp))


class TestCleanupTempFiles:
    def test_removes_only_expired_files(self, tmp_path):
        uploads, debug = tmp_path / "uploads", tmp_path / "debug"
        _touch(uploads / "old.pdf", age_hours=30)
        _touch(uploads / "fresh.pdf", age_hours=1)
        _touch(debug / "job-chunk-0-error.json", age_hours=48)

        stats = cleanup_temp_files([uploads, debug], max_age_hours=24)

        assert stats == {"deleted": 2, "skipped": 1, "errors": 0}
        assert [p.name for p in uploads.iterdir()] == ["fresh.pdf"]
        assert list(debug.iterdir()) == []

    def test_missing_directories_are_ignored(self, tmp_path):
        assert cleanup_temp_files([tmp_path / "nope"], max_age_hours=24) == {"deleted": 0, "skipped": 0, "errors": 0}

    def test_defaults_come_from_settings(self, settings_env):
        _touch(Path(settings_env.NOTES_UPLOAD_DIR) / "stale.txt", age_hours=25)
        assert cleanup_temp_files()["deleted"] == 1


class TestScheduler:
    def test_cleanup_job_registered_every_six_hours(self):
        scheduler = create_scheduler()
        job = scheduler.get_job(CLEANUP_JOB_ID)

        assert job is not None
        assert job.trigger.interval.total_seconds() == 6 * 3600
