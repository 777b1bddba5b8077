"""Tests for overlapping character chunking."""

import pytest

from ingestion_service.domain.chunking import ChunkingService


@pytest.fixture
def chunker() -> ChunkingService:
    return ChunkingService(chunk_size_chars=1000, overlap_chars=200)


class TestChunkBounds:
    def test_empty_and_blank_text_yield_no_chunks(self, chunker):
        assert chunker.chunk_text("") == []
        assert chunker.chunk_text("   \n\t ") == []

    def test_short_text_is_one_chunk(self, chunker):
        chunks = chunker.chunk_text("Hello world.")
        assert len(chunks) == 1
        assert chunks[0].content == "Hello world."
        assert chunks[0].chunk_index == 0
        assert (chunks[0].start, chunks[0].end) == (0, 12)

    def test_offsets_index_the_given_text(self, chunker):
        text = "\n\n   " + "Lists keep order. " * 150
        for chunk in chunker.chunk_text(text):
            assert text[chunk.start:chunk.end] == chunk.content

    def test_hard_cuts_without_separators(self, chunker):
        text = "x" * 2600
        chunks = chunker.chunk_text(text)

        assert [(c.start, c.end) for c in chunks] == [(0, 1000), (800, 1800), (1600, 2600)]
        assert all(len(c.content) <= 1000 for c in chunks)

    def test_chunk_never_exceeds_size(self, chunker):
        text = ("Sentence number one is here. " * 40 + "\n\n") * 5
        chunks = chunker.chunk_text(text)
        assert len(chunks) > 1
        assert all(len(c.content) <= 1000 for c in chunks)


class TestOverlap:
    def test_consecutive_chunks_share_exact_overlap(self, chunker):
        text = " ".join(f"word{i}" for i in range(900))
        chunks = chunker.chunk_text(text)

        assert len(chunks) > 2
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start == previous.end - 200
            assert previous.content[-200:] == current.content[:200]

    def test_indices_are_ordered(self, chunker):
        chunks = chunker.chunk_text("y" * 5000)
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))

    def test_prefers_paragraph_boundary(self, chunker):
        text = "A" * 700 + "\n\n" + "B" * 700
        chunks = chunker.chunk_text(text)

        assert chunks[0].content == "A" * 700 + "\n\n"
        assert chunks[1].start == 502

    def test_chunking_is_deterministic(self, chunker):
        text = "The quick brown fox. " * 300
        assert chunker.chunk_text(text) == chunker.chunk_text(text)


class TestConfiguration:
    @pytest.mark.parametrize("size,overlap", [(0, 0), (100, 100), (100, -1)])
    def test_rejects_invalid_window(self, size, overlap):
        with pytest.raises(ValueError):
            ChunkingService(chunk_size_chars=size, overlap_chars=overlap)
