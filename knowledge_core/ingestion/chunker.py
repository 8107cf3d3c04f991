"""
Boundary-aware text chunking.

Text is walked in windows of max_chunk_size characters. Inside each window
the cut moves back to the last preferred separator found past the window's
midpoint, so chunks tend to end on paragraph, line, sentence or word
boundaries. Consecutive windows overlap by overlap_size characters.
"""

from typing import Iterable, Iterator, List, Optional, Tuple

from .types import ChunkConfig, DocumentChunk


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


class TextChunker:
    """Splits extracted text into overlapping, bounded-size chunks."""

    def __init__(self, config: Optional[ChunkConfig] = None):
        self.config = config or ChunkConfig()

    def split(self, text: str) -> List[DocumentChunk]:
        """Chunk the whole text. Empty text gives no chunks."""
        return self.split_sections(text, [0])

    def split_sections(self, text: str, section_starts: Iterable[int]) -> List[DocumentChunk]:
        """
        Chunk text that is pre-divided into sections.

        Each section is windowed on its own, so no chunk spans a section
        boundary. Offsets are absolute into `text` and chunk indices are
        dense across all sections.
        """
        boundaries = sorted({0, len(text)} | {s for s in section_starts if 0 <= s <= len(text)})

        chunks: List[DocumentChunk] = []
        for start, stop in zip(boundaries, boundaries[1:]):
            for chunk_start, chunk_end in self._windows(text, start, stop):
                content = text[chunk_start:chunk_end]
                if not content.strip():
                    continue
                chunks.append(DocumentChunk(
                    index=len(chunks),
                    content=content,
                    start_offset=chunk_start,
                    end_offset=chunk_end,
                    word_count=count_words(content),
                ))
        return chunks

    def _windows(self, text: str, start: int, stop: int) -> Iterator[Tuple[int, int]]:
        """Yield (chunk_start, chunk_end) pairs covering text[start:stop]."""
        max_size = self.config.max_chunk_size
        overlap = self.config.overlap_size

        cursor = start
        while cursor < stop:
            window_end = min(cursor + max_size, stop)
            cut = window_end if window_end >= stop else self._find_cut(text, cursor, window_end)

            yield cursor, cut

            if cut >= stop:
                break

            next_cursor = cut - overlap
            # Overlap must not stall the walk on short cuts
            if next_cursor <= cursor:
                next_cursor = cut
            cursor = next_cursor

    def _find_cut(self, text: str, start: int, end: int) -> int:
        """Cut position for the window text[start:end]."""
        midpoint = (end - start) * 0.5
        for separator in self.config.separators:
            position = text.rfind(separator, start, end)
            if position != -1 and position - start > midpoint:
                return position + len(separator)
        return end
