from pydantic import BaseModel, Field


class ChunkInput(BaseModel):
    """A chunk ready to be stored: text plus its document embedding."""
    content: str
    chunk_index: int
    source_type: str
    source_title: str
    embedding: list[float]


class SimilarChunk(BaseModel):
    content: str
    source_title: str
    source_type: str
    similarity: float


class SearchRequest(BaseModel):
    topic_id: str
    query: str
    limit: int | None = Field(default=None, ge=1, le=50)
    threshold: float | None = Field(default=None, ge=-1.0, le=1.0)
