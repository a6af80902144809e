"""
Notes feature: job store.

A job is created as `processing` before any background work is queued and
then moves exactly once, to `done` or `error`. The interface is small so an
external store (Redis, a database table) can replace the in-process dict when
the service runs as several instances.
"""

import uuid
from abc import ABC, abstractmethod

from studcom.core.exceptions import InvalidJobTransitionError, JobNotFoundError
from studcom.features.notes.schemas import Job, JobStatus


class JobStore(ABC):
    """get / create / one-way status transition."""

    @abstractmethod
    def create(self, filename: str | None = None) -> Job: ...

    @abstractmethod
    def get(self, job_id: str) -> Job | None: ...

    @abstractmethod
    def list(self) -> list[Job]: ...

    @abstractmethod
    def delete(self, job_id: str) -> None:
        """Forget a job that was never handed to a worker."""

    @abstractmethod
    def _save(self, job: Job) -> None: ...

    def mark_done(self, job_id: str, result_path: str) -> Job:
        return self._transition(job_id, JobStatus.DONE, result_path=result_path)

    def mark_error(self, job_id: str, error: str) -> Job:
        return self._transition(job_id, JobStatus.ERROR, error=error)

    def _transition(self, job_id: str, target: JobStatus, **fields) -> Job:
        job = self.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status != JobStatus.PROCESSING:
            raise InvalidJobTransitionError(job_id, job.status.value, target.value)

        updated = job.model_copy(update={"status": target, **fields})
        self._save(updated)
        return updated


class InMemoryJobStore(JobStore):
    """Process-lifetime store. Lost on restart; one writer per job (its worker)."""

    def __init__(self):
        self._jobs: dict[str, Job] = {}

    def create(self, filename: str | None = None) -> Job:
        job = Job(id=str(uuid.uuid4()), filename=filename)
        self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def list(self) -> list[Job]:
        return sorted(self._jobs.values(), key=lambda j: j.created_at, reverse=True)

    def delete(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)

    def _save(self, job: Job) -> None:
        self._jobs[job.id] = job
