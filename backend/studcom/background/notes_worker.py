"""
Bounded worker pool for notes jobs.

A fixed number of asyncio tasks consume a bounded queue. When the queue is
full the API answers 503 instead of piling up work; the check happens before
the job is created so a rejected upload leaves no trace in the job store.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from studcom.core.exceptions import NotesQueueFullError

logger = logging.getLogger(__name__)

WorkItem = Callable[[], Awaitable[None]]


class NotesWorkerPool:
    def __init__(self, max_workers: int = 2, max_queued: int = 20):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if max_queued < 1:
            raise ValueError("max_queued must be at least 1")
        self.max_workers = max_workers
        self.max_queued = max_queued
        self._queue: asyncio.Queue[tuple[str, WorkItem]] | None = None
        self._workers: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def queued(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Spawn the worker tasks on the running loop (FastAPI lifespan)."""
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.max_queued)
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"notes-worker-{n}")
            for n in range(self.max_workers)
        ]
        logger.info(f"🧵 Notes worker pool started ({self.max_workers} workers, queue {self.max_queued})")

    async def stop(self) -> None:
        """Cancel workers. Queued and in-flight jobs are abandoned."""
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        logger.info("🧵 Notes worker pool stopped.")

    def ensure_capacity(self) -> None:
        """Raise NotesQueueFullError if a submit right now would be rejected."""
        if self._queue is None:
            raise RuntimeError("Notes worker pool is not running")
        if self._queue.full():
            raise NotesQueueFullError(self.max_queued)

    def submit(self, job_id: str, work: WorkItem) -> None:
        """Enqueue a job without waiting.

        Raises:
            NotesQueueFullError: If the queue already holds max_queued jobs.
        """
        self.ensure_capacity()
        try:
            self._queue.put_nowait((job_id, work))
        except asyncio.QueueFull:
            raise NotesQueueFullError(self.max_queued)
        logger.info(f"📥 Queued notes job {job_id} ({self.queued} waiting)")

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def _worker(self, number: int) -> None:
        while True:
            job_id, work = await self._queue.get()
            try:
                await work()
            except Exception as e:
                # run_notes_job records its own failures; this only guards the loop
                logger.error(f"❌ Worker {number} crashed on job {job_id}: {e}", exc_info=True)
            finally:
                self._queue.task_done()
