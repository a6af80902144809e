"""
Background scheduler for housekeeping.

Uses APScheduler on the FastAPI event loop; started and stopped by the lifespan.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from studcom.background.temp_cleanup import cleanup_temp_files
from studcom.config import get_settings

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "cleanup_temp_files_task"


def create_scheduler() -> AsyncIOScheduler:
    """Scheduler with the temp-file sweep registered (every 6 h by default)."""
    settings = get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        cleanup_temp_files,
        "interval",
        hours=settings.NOTES_CLEANUP_INTERVAL_HOURS,
        id=CLEANUP_JOB_ID,
        replace_existing=True,
    )
    return scheduler


def init_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Start the scheduler. Called during FastAPI lifespan startup."""
    scheduler.start()
    for job in scheduler.get_jobs():
        logger.info(f"📅 Scheduled {job.id}: next run at {job.next_run_time}")


def shutdown_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Gracefully shutdown the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("📅 Scheduler shut down.")
