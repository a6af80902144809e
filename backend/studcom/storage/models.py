"""
SQLAlchemy models for the local (embedded) study library.

Every row carries `owner_id`, the optional user-scoping id. Chunks hang off
their resource and are removed with it (ON DELETE CASCADE).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text

from studcom.core.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubjectRow(Base):
    __tablename__ = "subjects"

    id = Column(String(36), primary_key=True, default=_new_id)
    owner_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    color = Column(String, default="#3B82F6")
    icon = Column(String, default="📚")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class TopicRow(Base):
    __tablename__ = "topics"

    id = Column(String(36), primary_key=True, default=_new_id)
    owner_id = Column(String, nullable=True, index=True)
    subject_id = Column(String(36), ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class ResourceRow(Base):
    __tablename__ = "resources"

    id = Column(String(36), primary_key=True, default=_new_id)
    owner_id = Column(String, nullable=True, index=True)
    topic_id = Column(String(36), ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    type = Column(String, nullable=False)  # book | slides | notes | pyqs
    description = Column(Text, nullable=True)
    file_path = Column(String, nullable=True)
    file_name = Column(String, nullable=True)
    content_type = Column(String, nullable=True)
    processing_status = Column(String, default="pending")  # pending | processing | completed | failed
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class ChunkRow(Base):
    __tablename__ = "document_chunks"

    id = Column(String, primary_key=True)  # "{resource_id}-chunk-{index}"
    owner_id = Column(String, nullable=True, index=True)
    resource_id = Column(String(36), ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True)
    topic_id = Column(String(36), nullable=False, index=True)
    subject_id = Column(String(36), nullable=False)
    content = Column(Text, nullable=False)
    chunk_index = Column(Integer, nullable=False)
    source_type = Column(String, nullable=False)
    source_title = Column(String, nullable=False)
    embedding = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class ChatMessageRow(Base):
    __tablename__ = "ai_chat_messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    owner_id = Column(String, nullable=True, index=True)
    user_id = Column(String, nullable=False)
    topic_id = Column(String(36), nullable=True, index=True)
    message = Column(Text, nullable=False)
    response = Column(Text, nullable=True)
    role = Column(String, nullable=False)  # user | assistant
    chat_type = Column(String, nullable=False)  # doubt | concept_explainer
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class ProgressRow(Base):
    __tablename__ = "user_progress"

    id = Column(String(36), primary_key=True, default=_new_id)
    owner_id = Column(String, nullable=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    topic_id = Column(String(36), nullable=False)
    progress_percentage = Column(Float, default=0)
    total_time_seconds = Column(Integer, default=0)
    completed = Column(Boolean, default=False)
    last_accessed = Column(DateTime(timezone=True), default=_utcnow)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
