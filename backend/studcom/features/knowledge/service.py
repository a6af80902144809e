"""
Knowledge feature: one RAG interface (embed, store, search) over any storage backend.

The backend decides how similarity is computed: linear scan in the local
database, pgvector RPC on Supabase. This service only deals with chunking,
embedding with the right task type, and assembling the prompt context.
"""

import logging

from studcom.config import get_settings
from studcom.core.exceptions import UpstreamAPIError
from studcom.features.knowledge.chunking import chunk_text
from studcom.features.knowledge.embedding import GeminiEmbeddingClient, get_embedding_client
from studcom.features.knowledge.schemas import ChunkInput, SimilarChunk
from studcom.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class KnowledgeService:
    """Ingest resource text into chunks+embeddings and search them per topic."""

    def __init__(self, storage: StorageBackend, embedder: GeminiEmbeddingClient | None = None):
        self.storage = storage
        self.embedder = embedder or get_embedding_client()
        self.settings = get_settings()

    async def ingest_text(
        self,
        resource_id: str,
        topic_id: str,
        subject_id: str,
        text: str,
        source_type: str,
        source_title: str,
    ) -> int:
        """Chunk, embed (RETRIEVAL_DOCUMENT) and store a resource's text.

        Returns:
            Number of chunks stored.
        """
        chunks = chunk_text(
            text,
            max_chars=self.settings.RAG_CHUNK_SIZE,
            overlap_chars=self.settings.RAG_CHUNK_OVERLAP,
        )
        if not chunks:
            return 0

        vectors = await self.embedder.embed_batch(chunks)
        if len(vectors) != len(chunks):
            raise UpstreamAPIError("Mismatch between chunks and embeddings count")

        self.storage.save_chunks(
            resource_id,
            topic_id,
            subject_id,
            [
                ChunkInput(
                    content=content,
                    chunk_index=index,
                    source_type=source_type,
                    source_title=source_title,
                    embedding=vector,
                )
                for index, (content, vector) in enumerate(zip(chunks, vectors))
            ],
        )
        logger.info(f"✅ Stored {len(chunks)} chunks for resource {resource_id}")
        return len(chunks)

    async def search(
        self,
        topic_id: str,
        query: str,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[SimilarChunk]:
        """Embed the query (RETRIEVAL_QUERY) and return the topic's closest chunks."""
        query_vector = await self.embedder.embed(query)
        return self.storage.search_similar(
            query_vector,
            topic_id,
            limit=limit or self.settings.RAG_MATCH_COUNT,
            threshold=self.settings.RAG_MATCH_THRESHOLD if threshold is None else threshold,
        )


def build_context(matches: list[SimilarChunk]) -> str:
    """Format retrieved chunks as the 'Context from study materials' block."""
    return "\n\n---\n\n".join(
        f"[{m.source_title} ({m.source_type})]\n{m.content}" for m in matches
    )
