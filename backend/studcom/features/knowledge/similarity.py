"""
Knowledge feature: cosine similarity and linear-scan ranking.

Used by the local storage backend, which keeps embeddings as plain JSON arrays
and has no vector index: every chunk of the topic is scored.
"""

import math
from typing import Iterable, Mapping

from studcom.core.exceptions import VectorLengthMismatchError
from studcom.features.knowledge.schemas import SimilarChunk


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """dot(a, b) / (|a| * |b|).

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        VectorLengthMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise VectorLengthMismatchError(len(a), len(b))

    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def rank_matches(
    query_embedding: list[float],
    candidates: Iterable[Mapping],
    limit: int = 5,
    threshold: float = 0.7,
) -> list[SimilarChunk]:
    """Score every candidate chunk and keep the best ones.

    Args:
        query_embedding: Vector of the user query (RETRIEVAL_QUERY).
        candidates: Mappings with content, source_title, source_type, embedding.
        limit: Maximum number of results.
        threshold: Minimum similarity to keep (inclusive).

    Returns:
        Matches sorted by similarity, highest first.
    """
    scored = []
    for chunk in candidates:
        similarity = cosine_similarity(query_embedding, list(chunk["embedding"]))
        if similarity < threshold:
            continue
        scored.append(
            SimilarChunk(
                content=chunk["content"],
                source_title=chunk["source_title"],
                source_type=chunk["source_type"],
                similarity=similarity,
            )
        )

    scored.sort(key=lambda match: match.similarity, reverse=True)
    return scored[:limit]
