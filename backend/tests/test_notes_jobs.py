"""Unit tests for the job store, the worker pool and the notes job orchestration."""

import asyncio
import json

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from studcom.background.notes_tasks import NO_VALID_OUTPUT_ERROR, run_notes_job
from studcom.background.notes_worker import NotesWorkerPool
from studcom.core.exceptions import InvalidJobTransitionError, JobNotFoundError, NotesQueueFullError
from studcom.features.notes.generator import NotesGenerator
from studcom.features.notes.job_store import InMemoryJobStore
from studcom.features.notes.schemas import JobStatus

VALID_REPLY = json.dumps({"title": "Enzymes", "summary": "Proteins that speed up reactions."})


class TestInMemoryJobStore:
    def test_create_starts_processing(self):
        store = InMemoryJobStore()
        job = store.create("lecture.pdf")

        assert job.status == JobStatus.PROCESSING
        assert store.get(job.id) == job
        assert job.filename == "lecture.pdf"

    def test_unknown_id(self):
        store = InMemoryJobStore()
        assert store.get("missing") is None
        with pytest.raises(JobNotFoundError):
            store.mark_done("missing", "/tmp/x.json")

    def test_mark_done_then_error_is_refused(self):
        store = InMemoryJobStore()
        job = store.create()
        done = store.mark_done(job.id, "/tmp/result.json")

        assert done.status == JobStatus.DONE
        assert done.result_path == "/tmp/result.json"
        with pytest.raises(InvalidJobTransitionError):
            store.mark_error(job.id, "late failure")
        assert store.get(job.id).status == JobStatus.DONE

    def test_error_is_terminal(self):
        store = InMemoryJobStore()
        job = store.create()
        store.mark_error(job.id, "bad file")

        with pytest.raises(InvalidJobTransitionError):
            store.mark_done(job.id, "/tmp/result.json")
        assert store.get(job.id).error == "bad file"

    def test_list_newest_first(self):
        store = InMemoryJobStore()
        first = store.create()
        second = store.create()
        ids = [j.id for j in store.list()]
        assert set(ids) == {first.id, second.id}
        assert store.list()[0].created_at >= store.list()[1].created_at


class TestNotesWorkerPool:
    def test_runs_submitted_work(self):
        done = []

        async def scenario():
            pool = NotesWorkerPool(max_workers=2, max_queued=5)
            pool.start()
            for n in range(4):
                async def work(n=n):
                    done.append(n)
                pool.submit(f"job-{n}", work)
            await pool.join()
            await pool.stop()

        asyncio.run(scenario())
        assert sorted(done) == [0, 1, 2, 3]

    def test_rejects_past_queue_bound(self):
        async def scenario():
            gate = asyncio.Event()
            pool = NotesWorkerPool(max_workers=1, max_queued=2)
            pool.start()

            async def blocked():
                await gate.wait()

            pool.submit("running", blocked)
            await asyncio.sleep(0)  # let the worker pick up the first job
            pool.submit("queued-1", blocked)
            pool.submit("queued-2", blocked)

            with pytest.raises(NotesQueueFullError):
                pool.ensure_capacity()
            with pytest.raises(NotesQueueFullError):
                pool.submit("overflow", blocked)

            gate.set()
            await pool.join()
            pool.ensure_capacity()
            await pool.stop()

        asyncio.run(scenario())

    def test_failing_work_does_not_kill_worker(self):
        done = []

        async def scenario():
            pool = NotesWorkerPool(max_workers=1, max_queued=5)
            pool.start()

            async def explode():
                raise RuntimeError("boom")

            async def ok():
                done.append("ok")

            pool.submit("bad", explode)
            pool.submit("good", ok)
            await pool.join()
            await pool.stop()

        asyncio.run(scenario())
        assert done == ["ok"]

    def test_submit_before_start_fails(self):
        pool = NotesWorkerPool()
        with pytest.raises(RuntimeError):
            pool.ensure_capacity()


class TestRunNotesJob:
    def test_success_writes_result_and_removes_upload(self, settings_env, tmp_path):
        upload = tmp_path / "upload.txt"
        upload.write_text("Enzymes lower activation energy. " * 20, encoding="utf-8")
        store = InMemoryJobStore()
        job = store.create("upload.txt")
        generator = NotesGenerator(llm=FakeListChatModel(responses=[VALID_REPLY]), debug_dir=tmp_path / "debug")

        asyncio.run(run_notes_job(job.id, str(upload), "text/plain", store, generator, settings_env))

        finished = store.get(job.id)
        assert finished.status == JobStatus.DONE
        result = json.loads(open(finished.result_path, encoding="utf-8").read())
        assert result["title"] == "Enzymes"
        assert finished.result_path.endswith(f"{job.id}.json")
        assert not upload.exists()

    def test_all_chunks_failing_marks_error(self, settings_env, tmp_path):
        upload = tmp_path / "upload.txt"
        upload.write_text("some text", encoding="utf-8")
        store = InMemoryJobStore()
        job = store.create()
        generator = NotesGenerator(llm=FakeListChatModel(responses=["nope"]), debug_dir=tmp_path / "debug")

        asyncio.run(run_notes_job(job.id, str(upload), "text/plain", store, generator, settings_env))

        failed = store.get(job.id)
        assert failed.status == JobStatus.ERROR
        assert failed.error == NO_VALID_OUTPUT_ERROR

    def test_missing_upload_marks_error(self, settings_env, tmp_path):
        store = InMemoryJobStore()
        job = store.create()
        generator = NotesGenerator(llm=FakeListChatModel(responses=[VALID_REPLY]), debug_dir=tmp_path)

        asyncio.run(run_notes_job(job.id, str(tmp_path / "gone.txt"), None, store, generator, settings_env))

        assert store.get(job.id).status == JobStatus.ERROR
