from __future__ import annotations

import structlog

from ingestion_service.domain.models import DocumentChunk

logger = structlog.get_logger(__name__)

# Preferred cut points, strongest first.
BOUNDARY_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", "! ", "? ", " ")


class ChunkingService:
    """Character windows with a fixed overlap, snapped to natural boundaries.

    Each window ends at the last paragraph break, line break, sentence end or
    space found in its second half, falling back to a hard cut. The next
    window always starts exactly ``overlap_chars`` before the previous end,
    so consecutive chunks share that many characters.
    """

    def __init__(self, chunk_size_chars: int = 1000, overlap_chars: int = 200) -> None:
        if chunk_size_chars <= 0:
            raise ValueError("chunk_size_chars must be positive")
        if not 0 <= overlap_chars < chunk_size_chars:
            raise ValueError("overlap_chars must be in [0, chunk_size_chars)")
        self._chunk_size = chunk_size_chars
        self._overlap = overlap_chars

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    def chunk_text(self, text: str) -> list[DocumentChunk]:
        """Offsets index into ``text`` as given; callers normalise whitespace first."""
        if not text.strip():
            return []

        chunks: list[DocumentChunk] = []
        length = len(text)
        start = 0

        while True:
            end = min(start + self._chunk_size, length)
            if end < length:
                end = self._snap_end(text, start, end)

            chunks.append(
                DocumentChunk(
                    chunk_index=len(chunks),
                    content=text[start:end],
                    start=start,
                    end=end,
                )
            )
            if end >= length:
                break
            start = end - self._overlap

        logger.debug(
            "chunking.completed",
            char_count=length,
            chunk_count=len(chunks),
        )
        return chunks

    def _snap_end(self, text: str, start: int, end: int) -> int:
        # Never snap below the midpoint, and always past the overlap, so every
        # window advances.
        floor = start + max(self._overlap + 1, self._chunk_size // 2)
        if floor >= end:
            return end

        window = text[floor:end]
        for separator in BOUNDARY_SEPARATORS:
            idx = window.rfind(separator)
            if idx != -1:
                return floor + idx + len(separator)
        return end
