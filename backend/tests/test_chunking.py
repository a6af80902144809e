"""Unit tests for chunk_text."""

import pytest

from studcom.core.exceptions import ChunkingConfigError
from studcom.features.knowledge.chunking import chunk_text


class TestChunkText:
    def test_short_text_is_one_chunk(self):
        assert chunk_text("hello world", max_chars=100, overlap_chars=10) == ["hello world"]

    def test_empty_text_gives_no_chunks(self):
        assert chunk_text("", max_chars=100, overlap_chars=10) == []

    def test_windows_advance_by_size_minus_overlap(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(1000))
        chunks = chunk_text(text, max_chars=300, overlap_chars=50)

        assert [len(c) for c in chunks] == [300, 300, 300, 250]
        assert chunks[0] == text[0:300]
        assert chunks[1] == text[250:550]
        assert chunks[3] == text[750:1000]

    def test_consecutive_chunks_share_overlap(self):
        text = "x" * 10 + "".join(str(i % 10) for i in range(490))
        chunks = chunk_text(text, max_chars=200, overlap_chars=40)
        for left, right in zip(chunks, chunks[1:]):
            if len(left) == 200:
                assert left[-40:] == right[:40]

    def test_chunks_are_stripped(self):
        chunks = chunk_text("  abc  " + " " * 10, max_chars=100, overlap_chars=0)
        assert chunks == ["abc"]

    def test_whitespace_only_windows_are_dropped(self):
        text = "a" * 10 + " " * 30 + "b" * 10
        chunks = chunk_text(text, max_chars=10, overlap_chars=0)
        assert chunks == ["a" * 10, "b" * 10]

    def test_max_chunks_allows_exact_fit(self):
        chunks = chunk_text("a" * 1000, max_chars=300, overlap_chars=50, max_chunks=4)
        assert len(chunks) == 4

    def test_max_chunks_overflow_raises(self):
        with pytest.raises(ChunkingConfigError):
            chunk_text("a" * 1000, max_chars=300, overlap_chars=50, max_chunks=3)


class TestChunkTextConfig:
    @pytest.mark.parametrize(
        "max_chars, overlap",
        [(0, 0), (-5, 0), (100, -1), (100, 100), (100, 150)],
    )
    def test_rejects_bad_configuration(self, max_chars, overlap):
        with pytest.raises(ChunkingConfigError):
            chunk_text("some text", max_chars=max_chars, overlap_chars=overlap)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            chunk_text("some text", max_chars=10, overlap_chars=10)
