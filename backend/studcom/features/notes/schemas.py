"""
Notes feature: schemas for model output, merged notes and jobs.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class NotesSection(BaseModel):
    """One section of notes. Accepts the older `content` / `key_points` keys."""
    model_config = ConfigDict(extra="ignore")

    heading: str = ""
    summary: str = Field(default="", validation_alias=AliasChoices("summary", "content"))
    bullets: list[str] = Field(default_factory=list, validation_alias=AliasChoices("bullets", "key_points"))
    important_quotes: list[str] = Field(default_factory=list)

    @field_validator("heading", "summary", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value


class Flashcard(BaseModel):
    model_config = ConfigDict(extra="ignore")

    question: str = ""
    answer: str = ""


class NotesFragment(BaseModel):
    """Notes produced by the model for a single chunk."""
    model_config = ConfigDict(extra="ignore")

    title: str = "Notes"
    tl_dr: str = ""
    summary: str = ""
    sections: list[NotesSection] = Field(default_factory=list)
    action_items: list[str] = Field(default_factory=list)
    questions: list[str] = Field(default_factory=list)
    flashcards: list[Flashcard] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return "Notes"
        return value.strip() if isinstance(value, str) else value

    @field_validator("tl_dr", "summary", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value


class MergedNotes(NotesFragment):
    """Whole-document notes: the merge of every chunk's fragment."""


# ── Jobs ─────────────────────────────────────────────────

class JobStatus(str, Enum):
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class Job(BaseModel):
    id: str
    status: JobStatus = JobStatus.PROCESSING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    filename: str | None = None
    result_path: str | None = None
    error: str | None = None


class NotesJobAccepted(BaseModel):
    jobId: str
    status: JobStatus = JobStatus.PROCESSING
