"""
Chat feature: Schemas for request/response models.
"""

from typing import Literal

from pydantic import BaseModel

from studcom.features.knowledge.schemas import SimilarChunk

ChatType = Literal["doubt", "concept_explainer"]


class ChatRequest(BaseModel):
    """A student question about one topic."""
    topic_id: str
    topic_name: str | None = None  # looked up from the topic when omitted
    message: str
    chat_type: ChatType = "doubt"


class ChatResponse(BaseModel):
    response: str
    sources: list[SimilarChunk] = []
