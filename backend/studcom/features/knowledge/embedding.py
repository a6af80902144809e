"""
Knowledge feature: Embedding utility functions.
Wraps the LLM provider's embedding model for use across the app.

Queries and stored documents are embedded under different task types
(RETRIEVAL_QUERY vs RETRIEVAL_DOCUMENT). Only vectors produced this way are
comparable with each other, so callers must pick the right method:
  - embed()        → user questions
  - embed_batch()  → chunks being stored
"""

import logging

from cachetools import TTLCache
from langchain_core.embeddings import Embeddings

from studcom.config import Settings, get_settings
from studcom.core.exceptions import UpstreamAPIError
from studcom.core.llm_provider import create_embeddings, wrap_llm_error

logger = logging.getLogger(__name__)

TASK_QUERY = "RETRIEVAL_QUERY"
TASK_DOCUMENT = "RETRIEVAL_DOCUMENT"


class GeminiEmbeddingClient:
    """Query / document embeddings over GoogleGenerativeAIEmbeddings."""

    def __init__(self, settings: Settings | None = None, model: Embeddings | None = None):
        self.settings = settings or get_settings()
        self.dimensions = self.settings.EMBEDDING_DIMENSIONS
        self.batch_size = self.settings.EMBEDDING_BATCH_SIZE
        self._model = model
        self._query_cache: TTLCache = TTLCache(
            maxsize=self.settings.QUERY_EMBEDDING_CACHE_SIZE,
            ttl=self.settings.QUERY_EMBEDDING_CACHE_TTL_SECONDS,
        )

    @property
    def model(self) -> Embeddings:
        if self._model is None:
            self._model = create_embeddings()
        return self._model

    # ── Public API ───────────────────────────────────────

    async def embed(self, text: str) -> list[float]:
        """Embed a user query (RETRIEVAL_QUERY).

        Empty text yields a zero vector without calling the API, which scores 0
        against everything and so never matches.
        """
        trimmed = (text or "").strip()
        if not trimmed:
            return self._zero_vector()

        cached = self._query_cache.get(trimmed)
        if cached is not None:
            return list(cached)

        model = self.model
        try:
            vector = await model.aembed_query(
                trimmed,
                task_type=TASK_QUERY,
                output_dimensionality=self.dimensions,
            )
        except Exception as e:
            raise wrap_llm_error(e, label="Embedding") from e

        if not vector:
            raise UpstreamAPIError("Embedding API error: no embedding in response")
        # Truncate in case the provider ignores output_dimensionality
        values = tuple(vector[:self.dimensions])
        self._query_cache[trimmed] = values
        return list(values)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed stored content (RETRIEVAL_DOCUMENT), at most batch_size per request.

        Returns one vector per input, in order. Empty strings get zero vectors.
        """
        if not texts:
            return []

        non_empty = [t.strip() for t in texts if t and t.strip()]
        logger.debug(f"Embedding {len(texts)} texts ({len(non_empty)} non-empty)")
        if not non_empty:
            return [self._zero_vector() for _ in texts]

        model = self.model
        try:
            vectors = await model.aembed_documents(
                non_empty,
                batch_size=self.batch_size,
                task_type=TASK_DOCUMENT,
                output_dimensionality=self.dimensions,
            )
        except Exception as e:
            raise wrap_llm_error(e, label="Batch embedding") from e

        if len(vectors) != len(non_empty):
            raise UpstreamAPIError(
                f"Batch embedding returned {len(vectors)} vectors for {len(non_empty)} texts"
            )

        it = iter(vectors)
        return [
            list(next(it))[:self.dimensions] if text and text.strip() else self._zero_vector()
            for text in texts
        ]

    def _zero_vector(self) -> list[float]:
        return [0.0] * self.dimensions


# Singleton client (lazy init)
_embedding_client: GeminiEmbeddingClient | None = None


def get_embedding_client() -> GeminiEmbeddingClient:
    """Get or create the shared embedding client."""
    global _embedding_client
    if _embedding_client is None:
        _embedding_client = GeminiEmbeddingClient()
    return _embedding_client


async def embed_text(text: str) -> list[float]:
    """Embed a single query string with the shared client."""
    return await get_embedding_client().embed(text)


async def embed_texts(texts: list[str]) -> list[list[float]]:
    """Embed document texts (batch) with the shared client."""
    return await get_embedding_client().embed_batch(texts)
