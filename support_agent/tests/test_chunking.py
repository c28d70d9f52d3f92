import pytest

from support_agent.chunking import chunk_text


class TestChunkText:
    def test_empty_text_yields_no_chunks(self):
        assert chunk_text("", 500, 50) == []

    def test_whitespace_only_yields_no_chunks(self):
        assert chunk_text("   \n\t  ", 500, 50) == []

    def test_short_text_is_single_chunk(self):
        assert chunk_text("short text", 500, 50) == ["short text"]

    def test_short_text_is_trimmed(self):
        assert chunk_text("  padded  ", 500, 50) == ["padded"]

    def test_windows_advance_by_size_minus_overlap(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(1000))
        chunks = chunk_text(text, 500, 50)

        assert chunks == [text[0:500], text[450:950], text[900:1000]]

    def test_exact_chunk_size_is_single_chunk(self):
        text = "x" * 500
        assert chunk_text(text, 500, 50) == [text]

    def test_every_chunk_within_size(self):
        text = "The quick brown fox jumps over the lazy dog. " * 80
        chunks = chunk_text(text, 120, 20)

        assert chunks
        assert all(0 < len(c) <= 120 for c in chunks)

    def test_deterministic(self):
        text = "lorem ipsum dolor sit amet " * 50
        assert chunk_text(text, 100, 10) == chunk_text(text, 100, 10)

    def test_chunks_cover_source_modulo_overlap(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(2345))
        size, overlap = 300, 40
        chunks = chunk_text(text, size, overlap)

        rebuilt = chunks[0] + "".join(c[overlap:] for c in chunks[1:])
        assert rebuilt == text

    def test_blank_windows_are_dropped(self):
        text = "a" * 100 + " " * 300 + "b" * 100
        chunks = chunk_text(text, 100, 0)

        assert chunks == ["a" * 100, "b" * 100]

    def test_overlap_not_smaller_than_size_is_rejected(self):
        with pytest.raises(ValueError):
            chunk_text("some text", 50, 50)

    def test_non_positive_size_is_rejected(self):
        with pytest.raises(ValueError):
            chunk_text("some text", 0, 0)
