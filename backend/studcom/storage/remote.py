"""
Supabase storage backend: Postgres tables + Storage bucket + pgvector RPC.

Similarity search runs in the database through the `match_document_chunks`
function (cosine distance on a pgvector column), so no embeddings are pulled
back to the server.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from supabase import Client

from studcom.core.exceptions import ResourceNotFoundError
from studcom.features.knowledge.schemas import ChunkInput, SimilarChunk
from studcom.storage.base import ResourceType, StorageBackend

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 100


class SupabaseStorageBackend(StorageBackend):
    """StorageBackend over a Supabase project (RLS scoped by user_id)."""

    def __init__(self, db: Client, bucket: str, owner_id: str | None = None):
        self.db = db
        self.bucket = bucket
        self.owner_id = owner_id

    def _scoped(self, table: str, columns: str = "*"):
        query = self.db.table(table).select(columns)
        if self.owner_id:
            query = query.eq("user_id", self.owner_id)
        return query

    def _owner_fields(self) -> dict:
        return {"user_id": self.owner_id} if self.owner_id else {}

    # ── Files ────────────────────────────────────────────

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
        storage_path = f"{self.owner_id or 'shared'}/{topic_id}/{uuid.uuid4().hex}{Path(file_name).suffix}"
        self.db.storage.from_(self.bucket).upload(
            file=file_bytes,
            path=storage_path,
            file_options={"content-type": content_type or "application/octet-stream", "upsert": "true"},
        )
        result = self.db.table("resources").insert({
            **self._owner_fields(),
            "topic_id": topic_id,
            "title": title,
            "type": resource_type,
            "description": description,
            "file_path": storage_path,
            "file_name": file_name,
            "content_type": content_type,
            "processing_status": "pending",
        }).execute()
        return result.data[0]

    def get_file(self, resource_id: str) -> tuple[bytes, str, str | None]:
        resource = self.get_resource(resource_id)
        if not resource or not resource.get("file_path"):
            raise ResourceNotFoundError("resource", resource_id)
        data = self.db.storage.from_(self.bucket).download(resource["file_path"])
        return data, resource.get("file_name") or Path(resource["file_path"]).name, resource.get("content_type")

    # ── Subjects ─────────────────────────────────────────

    def get_subjects(self) -> list[dict]:
        return self._scoped("subjects").order("created_at", desc=False).execute().data

    def save_subject(self, name: str, color: str, icon: str, description: str | None = None) -> dict:
        result = self.db.table("subjects").insert({
            **self._owner_fields(),
            "name": name,
            "color": color,
            "icon": icon,
            "description": description,
        }).execute()
        return result.data[0]

    def delete_subject(self, subject_id: str) -> None:
        # topics, resources and document_chunks cascade in the database
        query = self.db.table("subjects").delete().eq("id", subject_id)
        if self.owner_id:
            query = query.eq("user_id", self.owner_id)
        query.execute()

    # ── Topics ───────────────────────────────────────────

    def get_topic(self, topic_id: str) -> dict | None:
        result = self._scoped("topics").eq("id", topic_id).execute()
        return result.data[0] if result.data else None

    def get_topics(self, subject_id: str) -> list[dict]:
        return (
            self._scoped("topics")
            .eq("subject_id", subject_id)
            .order("created_at", desc=False)
            .execute()
            .data
        )

    def save_topic(self, subject_id: str, name: str, description: str | None = None) -> dict:
        result = self.db.table("topics").insert({
            **self._owner_fields(),
            "subject_id": subject_id,
            "name": name,
            "description": description,
        }).execute()
        return result.data[0]

    def delete_topic(self, topic_id: str) -> None:
        query = self.db.table("topics").delete().eq("id", topic_id)
        if self.owner_id:
            query = query.eq("user_id", self.owner_id)
        query.execute()

    # ── Resources ────────────────────────────────────────

    def get_resource(self, resource_id: str) -> dict | None:
        result = self._scoped("resources").eq("id", resource_id).execute()
        return result.data[0] if result.data else None

    def get_resources(self, topic_id: str) -> list[dict]:
        return (
            self._scoped("resources")
            .eq("topic_id", topic_id)
            .order("created_at", desc=True)
            .execute()
            .data
        )

    def update_resource(self, resource_id: str, updates: dict) -> dict:
        allowed = {"title", "description", "processing_status", "error_message"}
        clean_data = {k: v for k, v in updates.items() if k in allowed}
        result = self.db.table("resources").update(clean_data).eq("id", resource_id).execute()
        if not result.data:
            raise ResourceNotFoundError("resource", resource_id)
        return result.data[0]

    def delete_resource(self, resource_id: str) -> None:
        resource = self.get_resource(resource_id)
        if not resource:
            return

        if resource.get("file_path"):
            try:
                self.db.storage.from_(self.bucket).remove([resource["file_path"]])
            except Exception as e:
                # Keep going: a missing object must not block deleting the row
                logger.warning(f"⚠️ Could not remove file {resource['file_path']} from storage: {e}")

        self.db.table("document_chunks").delete().eq("resource_id", resource_id).execute()
        self.db.table("resources").delete().eq("id", resource_id).execute()

    # ── RAG ──────────────────────────────────────────────

    def save_chunks(
        self,
        resource_id: str,
        topic_id: str,
        subject_id: str,
        chunks: list[ChunkInput],
    ) -> None:
        rows = [
            {
                **self._owner_fields(),
                "resource_id": resource_id,
                "topic_id": topic_id,
                "subject_id": subject_id,
                "content": chunk.content,
                "chunk_index": chunk.chunk_index,
                "source_type": chunk.source_type,
                "source_title": chunk.source_title,
                # pgvector accepts the JSON array text form
                "embedding": json.dumps(chunk.embedding),
            }
            for chunk in chunks
        ]
        for i in range(0, len(rows), INSERT_BATCH_SIZE):
            self.db.table("document_chunks").insert(rows[i:i + INSERT_BATCH_SIZE]).execute()

    def search_similar(
        self,
        query_embedding: list[float],
        topic_id: str,
        limit: int = 5,
        threshold: float = 0.7,
    ) -> list[SimilarChunk]:
        result = self.db.rpc(
            "match_document_chunks",
            {
                "query_embedding": query_embedding,
                "match_topic_id": topic_id,
                "match_threshold": threshold,
                "match_count": limit,
            },
        ).execute()

        matches = [
            SimilarChunk(
                content=row["content"],
                source_title=row.get("source_title", ""),
                source_type=row.get("source_type", ""),
                similarity=row.get("similarity", 0.0),
            )
            for row in (result.data or [])
            if row.get("similarity", 0.0) >= threshold
        ]
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]

    # ── Chat ─────────────────────────────────────────────

    def get_chat_history(self, topic_id: str, chat_type: str) -> list[dict]:
        return (
            self._scoped("ai_chat_messages")
            .eq("topic_id", topic_id)
            .eq("chat_type", chat_type)
            .order("created_at", desc=False)
            .execute()
            .data
        )

    def save_chat_message(
        self,
        user_id: str,
        topic_id: str | None,
        message: str,
        response: str | None,
        role: str,
        chat_type: str,
    ) -> dict:
        result = self.db.table("ai_chat_messages").insert({
            "user_id": user_id,
            "topic_id": topic_id,
            "message": message,
            "response": response,
            "role": role,
            "chat_type": chat_type,
        }).execute()
        return result.data[0]

    def clear_chat_history(self, topic_id: str, chat_type: str, user_id: str) -> None:
        (
            self.db.table("ai_chat_messages")
            .delete()
            .eq("topic_id", topic_id)
            .eq("chat_type", chat_type)
            .eq("user_id", user_id)
            .execute()
        )

    # ── Progress & Analytics ─────────────────────────────

    def get_progress(self, user_id: str) -> list[dict]:
        return (
            self.db.table("user_progress")
            .select("*")
            .eq("user_id", user_id)
            .order("last_accessed", desc=True)
            .execute()
            .data
        )

    def update_progress(self, user_id: str, topic_id: str, updates: dict) -> dict:
        allowed = {"progress_percentage", "total_time_seconds", "completed"}
        clean_data = {k: v for k, v in updates.items() if k in allowed and v is not None}
        result = self.db.table("user_progress").upsert(
            {
                "user_id": user_id,
                "topic_id": topic_id,
                "last_accessed": datetime.now(timezone.utc).isoformat(),
                **clean_data,
            },
            on_conflict="user_id,topic_id",
        ).execute()
        return result.data[0]
