"""Shared fixtures: isolated settings, temp directories and a local SQLite library."""

import pytest

from studcom.config import get_settings
from studcom.core.database import get_local_session_factory
from studcom.features.knowledge import embedding


@pytest.fixture(autouse=True)
def settings_env(tmp_path, monkeypatch):
    """Point every path setting at tmp_path and force local storage."""
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_KEY", "")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("LOCAL_DB_URL", f"sqlite:///{tmp_path / 'studcom.db'}")
    monkeypatch.setenv("LOCAL_FILES_DIR", str(tmp_path / "files"))
    monkeypatch.setenv("LLM_API_KEY", "test-key")
    monkeypatch.setenv("NOTES_UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("NOTES_STORAGE_DIR", str(tmp_path / "notes"))
    monkeypatch.setenv("NOTES_DEBUG_DIR", str(tmp_path / "debug"))

    get_settings.cache_clear()
    get_local_session_factory.cache_clear()
    monkeypatch.setattr(embedding, "_embedding_client", None)
    yield get_settings()
    get_settings.cache_clear()
    get_local_session_factory.cache_clear()


@pytest.fixture
def local_storage(settings_env):
    from studcom.storage.local import LocalStorageBackend

    return LocalStorageBackend(
        get_local_session_factory(),
        files_dir=settings_env.LOCAL_FILES_DIR,
        owner_id="user-1",
    )


class FakeEmbedder:
    """Deterministic stand-in for GeminiEmbeddingClient: a keyword → vector table."""

    def __init__(self, table: dict[str, list[float]], default: list[float] | None = None):
        self.table = table
        self.default = default or [0.0, 0.0, 1.0]
        self.queries: list[str] = []
        self.batches: list[list[str]] = []

    def _lookup(self, text: str) -> list[float]:
        for keyword, vector in self.table.items():
            if keyword in text:
                return list(vector)
        return list(self.default)

    async def embed(self, text: str) -> list[float]:
        self.queries.append(text)
        return self._lookup(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        return [self._lookup(t) for t in texts]


@pytest.fixture
def fake_embedder():
    return FakeEmbedder({
        "photosynthesis": [1.0, 0.0, 0.0],
        "mitochondria": [0.0, 1.0, 0.0],
    })
