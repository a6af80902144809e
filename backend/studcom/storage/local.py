"""
Local-first storage backend: SQLite through SQLAlchemy, files on local disk.

Used in demo mode (no Supabase project configured). Every query is confined to
the caller's owner id; similarity search is a linear scan over the topic's
chunks with no vector index.
"""

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from studcom.core.exceptions import ResourceNotFoundError
from studcom.features.knowledge.schemas import ChunkInput, SimilarChunk
from studcom.features.knowledge.similarity import rank_matches
from studcom.storage.base import ResourceType, StorageBackend
from studcom.storage.models import (
    ChatMessageRow,
    ChunkRow,
    ProgressRow,
    ResourceRow,
    SubjectRow,
    TopicRow,
)

logger = logging.getLogger(__name__)


def _to_dict(row) -> dict:
    data = {c.name: getattr(row, c.name) for c in row.__table__.columns}
    data.pop("owner_id", None)
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = value.isoformat()
    return data


class LocalStorageBackend(StorageBackend):
    """StorageBackend over an embedded SQLite database."""

    def __init__(self, session_factory: sessionmaker, files_dir: str | Path, owner_id: str | None = None):
        self._session_factory = session_factory
        self.files_dir = Path(files_dir)
        self.owner_id = owner_id

    # ── Helpers ──────────────────────────────────────────

    def _session(self) -> Session:
        return self._session_factory()

    def _owned(self, model):
        return select(model).where(model.owner_id == self.owner_id)

    def _get_owned(self, session: Session, model, row_id: str):
        row = session.get(model, row_id)
        if row is None or row.owner_id != self.owner_id:
            return None
        return row

    def _remove_file(self, file_path: str | None) -> None:
        if not file_path:
            return
        path = Path(file_path)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"⚠️ Could not remove file {path}: {e}")

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
        resource_id = str(uuid.uuid4())
        suffix = Path(file_name).suffix
        target_dir = self.files_dir / (self.owner_id or "shared")
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / f"file-{resource_id}{suffix}"
        target.write_bytes(file_bytes)

        with self._session() as session:
            if self._get_owned(session, TopicRow, topic_id) is None:
                target.unlink(missing_ok=True)
                raise ResourceNotFoundError("topic", topic_id)

            row = ResourceRow(
                id=resource_id,
                owner_id=self.owner_id,
                topic_id=topic_id,
                title=title,
                type=resource_type,
                description=description,
                file_path=str(target),
                file_name=file_name,
                content_type=content_type,
                processing_status="pending",
            )
            session.add(row)
            session.commit()
            return _to_dict(row)

    def get_file(self, resource_id: str) -> tuple[bytes, str, str | None]:
        with self._session() as session:
            row = self._get_owned(session, ResourceRow, resource_id)
            if row is None or not row.file_path:
                raise ResourceNotFoundError("resource", resource_id)
            path = Path(row.file_path)
            if not path.exists():
                raise ResourceNotFoundError("file", resource_id)
            return path.read_bytes(), row.file_name or path.name, row.content_type

    # ── Subjects ─────────────────────────────────────────

    def get_subjects(self) -> list[dict]:
        with self._session() as session:
            rows = session.scalars(self._owned(SubjectRow).order_by(SubjectRow.created_at)).all()
            return [_to_dict(r) for r in rows]

    def save_subject(self, name: str, color: str, icon: str, description: str | None = None) -> dict:
        with self._session() as session:
            row = SubjectRow(owner_id=self.owner_id, name=name, color=color, icon=icon, description=description)
            session.add(row)
            session.commit()
            return _to_dict(row)

    def delete_subject(self, subject_id: str) -> None:
        with self._session() as session:
            row = self._get_owned(session, SubjectRow, subject_id)
            if row is None:
                return
            file_paths = session.scalars(
                select(ResourceRow.file_path)
                .join(TopicRow, ResourceRow.topic_id == TopicRow.id)
                .where(TopicRow.subject_id == subject_id)
            ).all()
            topic_ids = select(TopicRow.id).where(TopicRow.subject_id == subject_id)
            session.query(ChunkRow).filter(ChunkRow.topic_id.in_(topic_ids)).delete(synchronize_session=False)
            session.query(ResourceRow).filter(ResourceRow.topic_id.in_(topic_ids)).delete(synchronize_session=False)
            session.query(TopicRow).filter(TopicRow.subject_id == subject_id).delete(synchronize_session=False)
            session.delete(row)
            session.commit()
        for path in file_paths:
            self._remove_file(path)

    # ── Topics ───────────────────────────────────────────

    def get_topic(self, topic_id: str) -> dict | None:
        with self._session() as session:
            row = self._get_owned(session, TopicRow, topic_id)
            return _to_dict(row) if row else None

    def get_topics(self, subject_id: str) -> list[dict]:
        with self._session() as session:
            rows = session.scalars(
                self._owned(TopicRow).where(TopicRow.subject_id == subject_id).order_by(TopicRow.created_at)
            ).all()
            return [_to_dict(r) for r in rows]

    def save_topic(self, subject_id: str, name: str, description: str | None = None) -> dict:
        with self._session() as session:
            if self._get_owned(session, SubjectRow, subject_id) is None:
                raise ResourceNotFoundError("subject", subject_id)
            row = TopicRow(owner_id=self.owner_id, subject_id=subject_id, name=name, description=description)
            session.add(row)
            session.commit()
            return _to_dict(row)

    def delete_topic(self, topic_id: str) -> None:
        with self._session() as session:
            row = self._get_owned(session, TopicRow, topic_id)
            if row is None:
                return
            file_paths = session.scalars(
                select(ResourceRow.file_path).where(ResourceRow.topic_id == topic_id)
            ).all()
            session.query(ChunkRow).filter(ChunkRow.topic_id == topic_id).delete(synchronize_session=False)
            session.query(ResourceRow).filter(ResourceRow.topic_id == topic_id).delete(synchronize_session=False)
            session.delete(row)
            session.commit()
        for path in file_paths:
            self._remove_file(path)

    # ── Resources ────────────────────────────────────────

    def get_resource(self, resource_id: str) -> dict | None:
        with self._session() as session:
            row = self._get_owned(session, ResourceRow, resource_id)
            return _to_dict(row) if row else None

    def get_resources(self, topic_id: str) -> list[dict]:
        with self._session() as session:
            rows = session.scalars(
                self._owned(ResourceRow)
                .where(ResourceRow.topic_id == topic_id)
                .order_by(ResourceRow.created_at.desc())
            ).all()
            return [_to_dict(r) for r in rows]

    def update_resource(self, resource_id: str, updates: dict) -> dict:
        allowed = {"title", "description", "processing_status", "error_message"}
        with self._session() as session:
            row = self._get_owned(session, ResourceRow, resource_id)
            if row is None:
                raise ResourceNotFoundError("resource", resource_id)
            for key, value in updates.items():
                if key in allowed:
                    setattr(row, key, value)
            session.commit()
            return _to_dict(row)

    def delete_resource(self, resource_id: str) -> None:
        with self._session() as session:
            row = self._get_owned(session, ResourceRow, resource_id)
            if row is None:
                return
            file_path = row.file_path
            session.query(ChunkRow).filter(ChunkRow.resource_id == resource_id).delete(synchronize_session=False)
            session.delete(row)
            session.commit()
        self._remove_file(file_path)

    # ── RAG ──────────────────────────────────────────────

    def save_chunks(
        self,
        resource_id: str,
        topic_id: str,
        subject_id: str,
        chunks: list[ChunkInput],
    ) -> None:
        with self._session() as session:
            for chunk in chunks:
                session.merge(
                    ChunkRow(
                        id=f"{resource_id}-chunk-{chunk.chunk_index}",
                        owner_id=self.owner_id,
                        resource_id=resource_id,
                        topic_id=topic_id,
                        subject_id=subject_id,
                        content=chunk.content,
                        chunk_index=chunk.chunk_index,
                        source_type=chunk.source_type,
                        source_title=chunk.source_title,
                        embedding=list(chunk.embedding),
                    )
                )
            session.commit()

    def search_similar(
        self,
        query_embedding: list[float],
        topic_id: str,
        limit: int = 5,
        threshold: float = 0.7,
    ) -> list[SimilarChunk]:
        with self._session() as session:
            rows = session.scalars(self._owned(ChunkRow).where(ChunkRow.topic_id == topic_id)).all()
            candidates = [
                {
                    "content": r.content,
                    "source_title": r.source_title,
                    "source_type": r.source_type,
                    "embedding": r.embedding,
                }
                for r in rows
            ]
        return rank_matches(query_embedding, candidates, limit=limit, threshold=threshold)

    # ── Chat ─────────────────────────────────────────────

    def get_chat_history(self, topic_id: str, chat_type: str) -> list[dict]:
        with self._session() as session:
            rows = session.scalars(
                self._owned(ChatMessageRow)
                .where(ChatMessageRow.topic_id == topic_id, ChatMessageRow.chat_type == chat_type)
                .order_by(ChatMessageRow.created_at)
            ).all()
            return [_to_dict(r) for r in rows]

    def save_chat_message(
        self,
        user_id: str,
        topic_id: str | None,
        message: str,
        response: str | None,
        role: str,
        chat_type: str,
    ) -> dict:
        with self._session() as session:
            row = ChatMessageRow(
                owner_id=self.owner_id,
                user_id=user_id,
                topic_id=topic_id,
                message=message,
                response=response,
                role=role,
                chat_type=chat_type,
            )
            session.add(row)
            session.commit()
            return _to_dict(row)

    def clear_chat_history(self, topic_id: str, chat_type: str, user_id: str) -> None:
        with self._session() as session:
            session.query(ChatMessageRow).filter(
                ChatMessageRow.owner_id == self.owner_id,
                ChatMessageRow.topic_id == topic_id,
                ChatMessageRow.chat_type == chat_type,
                ChatMessageRow.user_id == user_id,
            ).delete(synchronize_session=False)
            session.commit()

    # ── Progress & Analytics ─────────────────────────────

    def get_progress(self, user_id: str) -> list[dict]:
        with self._session() as session:
            rows = session.scalars(
                self._owned(ProgressRow)
                .where(ProgressRow.user_id == user_id)
                .order_by(ProgressRow.last_accessed.desc())
            ).all()
            return [_to_dict(r) for r in rows]

    def update_progress(self, user_id: str, topic_id: str, updates: dict) -> dict:
        allowed = {"progress_percentage", "total_time_seconds", "completed"}
        with self._session() as session:
            row = session.scalars(
                self._owned(ProgressRow).where(
                    ProgressRow.user_id == user_id, ProgressRow.topic_id == topic_id
                )
            ).first()
            if row is None:
                row = ProgressRow(
                    owner_id=self.owner_id,
                    user_id=user_id,
                    topic_id=topic_id,
                    progress_percentage=0,
                    total_time_seconds=0,
                    completed=False,
                )
                session.add(row)
            for key, value in updates.items():
                if key in allowed and value is not None:
                    setattr(row, key, value)
            row.last_accessed = datetime.now(timezone.utc)
            session.commit()
            return _to_dict(row)
