"""
Knowledge feature: fixed-size character chunking with overlap.

Shared by the notes maker (large chunks sent whole to the model) and the RAG
ingestion path (small chunks that get embedded). Each caller passes its own
size / overlap from settings.
"""

from studcom.core.exceptions import ChunkingConfigError


def chunk_text(
    text: str,
    max_chars: int,
    overlap_chars: int,
    max_chunks: int | None = None,
) -> list[str]:
    """Slice text into windows of max_chars, consecutive windows sharing overlap_chars.

    Each slice is stripped; slices that are only whitespace are dropped.

    Raises:
        ChunkingConfigError: On a size/overlap pair that cannot advance, or when
            the text needs more than max_chunks windows.
    """
    if max_chars <= 0:
        raise ChunkingConfigError(f"max_chars must be positive, got {max_chars}")
    if overlap_chars < 0:
        raise ChunkingConfigError(f"overlap_chars must not be negative, got {overlap_chars}")
    if overlap_chars >= max_chars:
        raise ChunkingConfigError(
            f"Overlap must be smaller than chunk size ({overlap_chars} >= {max_chars})"
        )

    step = max_chars - overlap_chars
    if max_chunks is not None:
        needed = -(-len(text) // step)  # ceiling division
        if needed > max_chunks:
            raise ChunkingConfigError(
                f"Text of {len(text)} chars needs {needed} chunks, limit is {max_chunks}"
            )

    chunks: list[str] = []
    start = 0
    while start < len(text):
        piece = text[start:start + max_chars].strip()
        if piece:
            chunks.append(piece)
        start += step
    return chunks
