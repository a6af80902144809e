"""
Library feature: request bodies for subjects, topics and progress.
"""

from pydantic import BaseModel, Field


class SubjectCreate(BaseModel):
    name: str = Field(min_length=1)
    color: str = "#6366f1"
    icon: str = "📚"
    description: str | None = None


class TopicCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None


class ProgressUpdate(BaseModel):
    progress_percentage: int | None = Field(default=None, ge=0, le=100)
    total_time_seconds: int | None = Field(default=None, ge=0)
    completed: bool | None = None
