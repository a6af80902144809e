"""
Storage backend interface.

Defines the contract for every study-library store (local embedded database,
Supabase...). Records cross the boundary as plain dicts, the same shape the
Supabase client returns, so routers can hand them straight back as JSON.
"""

from abc import ABC, abstractmethod
from typing import Literal

from studcom.features.knowledge.schemas import ChunkInput, SimilarChunk

ResourceType = Literal["book", "slides", "notes", "pyqs"]
RESOURCE_TYPES: tuple[str, ...] = ("book", "slides", "notes", "pyqs")


class StorageBackend(ABC):
    """Persistence for subjects, topics, resources, chunks, chat history and progress."""

    # ── Files ────────────────────────────────────────────

    @abstractmethod
    def save_file(
        self,
        topic_id: str,
        resource_type: ResourceType,
        file_bytes: bytes,
        file_name: str,
        content_type: str | None,
        title: str,
        description: str | None = None,
    ) -> dict:
        """Store the file and create its resource row (status `pending`)."""

    @abstractmethod
    def get_file(self, resource_id: str) -> tuple[bytes, str, str | None]:
        """Return (file bytes, file name, content type) for a resource."""

    # ── Subjects ─────────────────────────────────────────

    @abstractmethod
    def get_subjects(self) -> list[dict]: ...

    @abstractmethod
    def save_subject(self, name: str, color: str, icon: str, description: str | None = None) -> dict: ...

    @abstractmethod
    def delete_subject(self, subject_id: str) -> None: ...

    # ── Topics ───────────────────────────────────────────

    @abstractmethod
    def get_topic(self, topic_id: str) -> dict | None: ...

    @abstractmethod
    def get_topics(self, subject_id: str) -> list[dict]: ...

    @abstractmethod
    def save_topic(self, subject_id: str, name: str, description: str | None = None) -> dict: ...

    @abstractmethod
    def delete_topic(self, topic_id: str) -> None: ...

    # ── Resources ────────────────────────────────────────

    @abstractmethod
    def get_resource(self, resource_id: str) -> dict | None: ...

    @abstractmethod
    def get_resources(self, topic_id: str) -> list[dict]: ...

    @abstractmethod
    def update_resource(self, resource_id: str, updates: dict) -> dict: ...

    @abstractmethod
    def delete_resource(self, resource_id: str) -> None:
        """Delete the resource, its stored file and all of its chunks."""

    # ── RAG ──────────────────────────────────────────────

    @abstractmethod
    def save_chunks(
        self,
        resource_id: str,
        topic_id: str,
        subject_id: str,
        chunks: list[ChunkInput],
    ) -> None: ...

    @abstractmethod
    def search_similar(
        self,
        query_embedding: list[float],
        topic_id: str,
        limit: int = 5,
        threshold: float = 0.7,
    ) -> list[SimilarChunk]:
        """Top `limit` chunks of the topic with similarity >= threshold, best first."""

    # ── Chat ─────────────────────────────────────────────

    @abstractmethod
    def get_chat_history(self, topic_id: str, chat_type: str) -> list[dict]: ...

    @abstractmethod
    def save_chat_message(
        self,
        user_id: str,
        topic_id: str | None,
        message: str,
        response: str | None,
        role: str,
        chat_type: str,
    ) -> dict: ...

    @abstractmethod
    def clear_chat_history(self, topic_id: str, chat_type: str, user_id: str) -> None: ...

    # ── Progress & Analytics ─────────────────────────────

    @abstractmethod
    def get_progress(self, user_id: str) -> list[dict]: ...

    @abstractmethod
    def update_progress(self, user_id: str, topic_id: str, updates: dict) -> dict: ...
