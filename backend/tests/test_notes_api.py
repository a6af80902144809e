"""API tests for /api/notes using FastAPI's TestClient and a fake chat model."""

import asyncio
import json
import threading
import time
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from studcom.background.notes_worker import NotesWorkerPool
from studcom.core.exceptions import NotesQueueFullError
from studcom.features.notes.generator import NotesGenerator
from studcom.main import create_app

VALID_REPLY = json.dumps({
    "title": "Cell Division",
    "tl_dr": "Mitosis makes two identical cells.",
    "sections": [{"heading": "Mitosis", "summary": "Four phases", "bullets": ["Prophase"]}],
    "flashcards": [{"question": "How many phases?", "answer": "Four"}],
})


class FullPool:
    def ensure_capacity(self):
        raise NotesQueueFullError(20)

    def submit(self, job_id, work):
        raise AssertionError("submit must not be reached when the queue is full")


class FillsUpPool:
    """Has room at the capacity check, then rejects the enqueue."""

    def ensure_capacity(self):
        pass

    def submit(self, job_id, work):
        raise NotesQueueFullError(1)


class BlockingGenerator:
    """Holds every chunk until released from the test thread."""

    def __init__(self, inner):
        self.inner = inner
        self.release = threading.Event()

    async def generate_fragment(self, chunk, job_id="adhoc", index=0):
        while not self.release.is_set():
            await asyncio.sleep(0.01)
        return await self.inner.generate_fragment(chunk, job_id=job_id, index=index)


@pytest.fixture
def client(settings_env, tmp_path):
    app = create_app()
    with TestClient(app) as test_client:
        app.state.notes_generator = NotesGenerator(
            llm=FakeListChatModel(responses=[VALID_REPLY]),
            debug_dir=tmp_path / "debug",
        )
        yield test_client


def _wait_until_finished(client, job_id, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/notes/{job_id}").json()
        if body["status"] != "processing":
            return body
        time.sleep(0.05)
    raise AssertionError(f"job {job_id} still processing after {timeout}s")


class TestNotesApi:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_missing_file_is_400(self, client):
        response = client.post("/api/notes")
        assert response.status_code == 400
        assert response.json() == {"error": "no file uploaded"}

    def test_upload_returns_processing_then_done(self, client):
        response = client.post(
            "/api/notes",
            files={"file": ("lecture.txt", b"Mitosis has four phases. " * 10, "text/plain")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "processing"
        job_id = body["jobId"]

        finished = _wait_until_finished(client, job_id)
        assert finished["status"] == "done"
        assert finished["notes"]["title"] == "Cell Division"
        assert finished["notes"]["flashcards"] == [{"question": "How many phases?", "answer": "Four"}]

        download = client.get(f"/api/notes/{job_id}/download")
        assert download.status_code == 200
        assert download.headers["content-type"].startswith("application/json")
        assert "attachment" in download.headers["content-disposition"]
        assert download.json()["title"] == "Cell Division"

        listing = client.get("/api/notes").json()["jobs"]
        assert [(j["jobId"], j["previewTitle"]) for j in listing] == [(job_id, "Cell Division")]

    def test_failed_job_reports_error(self, client, tmp_path):
        client.app.state.notes_generator = NotesGenerator(
            llm=FakeListChatModel(responses=["not json at all"]),
            debug_dir=tmp_path / "debug",
        )
        job_id = client.post(
            "/api/notes",
            files={"file": ("lecture.txt", b"some text", "text/plain")},
        ).json()["jobId"]

        finished = _wait_until_finished(client, job_id)
        assert finished == {"status": "error", "error": "No valid chunk outputs (model failed or quota)"}
        assert client.get(f"/api/notes/{job_id}/download").json() == {"error": "not_ready"}

    def test_unknown_job_is_404(self, client):
        response = client.get("/api/notes/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {"error": "job_not_found"}

    def test_persisted_result_served_after_restart(self, client, settings_env):
        notes_dir = settings_env.NOTES_STORAGE_DIR
        Path(notes_dir).mkdir(parents=True, exist_ok=True)
        (Path(notes_dir) / "old-job.json").write_text(json.dumps({"title": "Old Notes"}))

        body = client.get("/api/notes/old-job").json()
        assert body == {"status": "done", "notes": {"title": "Old Notes"}}

    def test_queue_full_is_503_and_creates_no_job(self, client):
        client.app.state.notes_pool = FullPool()

        response = client.post(
            "/api/notes",
            files={"file": ("lecture.txt", b"text", "text/plain")},
        )

        assert response.status_code == 503
        assert response.json()["error"] == "notes queue is full"
        assert client.app.state.job_store.list() == []

    def test_job_reads_processing_right_after_upload(self, client, tmp_path):
        generator = BlockingGenerator(NotesGenerator(
            llm=FakeListChatModel(responses=[VALID_REPLY]),
            debug_dir=tmp_path / "debug",
        ))
        client.app.state.notes_generator = generator

        try:
            job_id = client.post(
                "/api/notes",
                files={"file": ("lecture.txt", b"Mitosis has four phases.", "text/plain")},
            ).json()["jobId"]

            status = client.get(f"/api/notes/{job_id}")
            assert status.status_code == 200
            assert status.json() == {"status": "processing"}
            assert client.get(f"/api/notes/{job_id}/download").json() == {"error": "not_ready"}
        finally:
            generator.release.set()

        assert _wait_until_finished(client, job_id)["status"] == "done"

    def test_rejected_enqueue_discards_job_and_upload(self, client, settings_env):
        client.app.state.notes_pool = FillsUpPool()

        response = client.post(
            "/api/notes",
            files={"file": ("lecture.txt", b"text", "text/plain")},
        )

        assert response.status_code == 503
        assert client.app.state.job_store.list() == []
        assert list(Path(settings_env.NOTES_UPLOAD_DIR).iterdir()) == []

    def test_unreadable_result_is_error_body(self, client, settings_env):
        job_id = client.post(
            "/api/notes",
            files={"file": ("lecture.txt", b"Mitosis has four phases.", "text/plain")},
        ).json()["jobId"]
        assert _wait_until_finished(client, job_id)["status"] == "done"

        (Path(settings_env.NOTES_STORAGE_DIR) / f"{job_id}.json").unlink()

        response = client.get(f"/api/notes/{job_id}")
        assert response.status_code == 500
        assert response.json() == {"error": "notes_unreadable"}

    def test_corrupt_persisted_result_is_not_found(self, client, settings_env):
        Path(settings_env.NOTES_STORAGE_DIR).mkdir(parents=True, exist_ok=True)
        (Path(settings_env.NOTES_STORAGE_DIR) / "broken.json").write_text("{not json")

        response = client.get("/api/notes/broken")
        assert response.status_code == 404
        assert response.json() == {"error": "job_not_found"}


class TestNotesAdmission:
    def test_concurrent_large_uploads_leave_no_orphan_jobs(self, settings_env):
        app = create_app()
        payload = b"x" * (3 * 1024 * 1024)

        async def scenario():
            pool = NotesWorkerPool(max_workers=1, max_queued=1)
            pool.start()
            busy = asyncio.Event()
            pool.submit("busy", busy.wait)
            await asyncio.sleep(0.05)
            app.state.notes_pool = pool

            transport = httpx.ASGITransport(app=app)
            try:
                async with httpx.AsyncClient(transport=transport, base_url="http://notes.test") as http:
                    return await asyncio.gather(*(
                        http.post("/api/notes", files={"file": ("big.txt", payload, "text/plain")})
                        for _ in range(2)
                    ))
            finally:
                await pool.stop()

        responses = asyncio.run(scenario())

        assert sorted(r.status_code for r in responses) == [200, 503]
        accepted = next(r for r in responses if r.status_code == 200).json()["jobId"]
        assert [job.id for job in app.state.job_store.list()] == [accepted]
        assert len(list(Path(settings_env.NOTES_UPLOAD_DIR).iterdir())) == 1
