"""Sentence-aware sliding-window chunking over normalized text."""

from __future__ import annotations

import re

from citerag.config import ChunkingConfig
from citerag.types import Chunk

_WHITESPACE = re.compile(r"\s+")
_TERMINATORS = (". ", "? ", "! ", "\n")


class SentenceWindowChunker:
    """Splits text into overlapping character windows that end on sentence edges.

    Algorithm:
    1. Whitespace is normalized (CRLF to LF, every run collapsed to a single
       space, ends trimmed). Offsets of emitted chunks refer to this
       normalized text.
    2. Text no longer than `chunk_size` becomes exactly one chunk.
    3. Otherwise a window of `chunk_size` characters slides over the text.
       Before cutting, the last `boundary_window` characters of the window are
       searched for the rightmost sentence terminator; when one is found the
       cut moves to just after it.
    4. The next window starts `chunk_overlap` characters before the cut, so
       adjacent chunks share context and boundary adjustments never leave a
       gap. Iteration stops once less than `chunk_overlap` characters of new
       text would remain.

    Chunk ids are `"{source}-{chunk_index}"`, so re-chunking the same text
    under the same source yields the same ids.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def chunk(
        self,
        text: str,
        source: str,
        title: str,
        config: ChunkingConfig | None = None,
    ) -> list[Chunk]:
        """Split `text`; `config` overrides the chunker's own options for this call."""
        config = config or self.config
        normalized = normalize_whitespace(text)
        if not normalized:
            return []

        size = config.chunk_size
        overlap = config.chunk_overlap
        length = len(normalized)

        if length <= size:
            return [_make_chunk(normalized, source, title, 0, length, 0)]

        chunks: list[Chunk] = []
        current = 0
        while current < length:
            end = min(current + size, length)
            if end < length:
                end = _adjust_to_boundary(normalized, current, end, config.boundary_window)

            if normalized[current:end].strip():
                chunks.append(
                    _make_chunk(normalized[current:end], source, title, current, end, len(chunks))
                )

            current = max(end - overlap, current + 1)
            if current >= length - overlap:
                break

        return chunks


def _adjust_to_boundary(text: str, start: int, end: int, window_size: int) -> int:
    window_start = max(end - window_size, start)
    window = text[window_start:end]

    best = -1
    best_end = end
    for terminator in _TERMINATORS:
        position = window.rfind(terminator)
        if position > best:
            best = position
            best_end = window_start + position + len(terminator)

    # Terminators at window position 0 are ignored.
    if best > 0:
        return best_end
    return end


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text.replace("\r\n", "\n")).strip()


def chunk_text(
    text: str,
    source: str,
    title: str,
    config: ChunkingConfig | None = None,
) -> list[Chunk]:
    """Chunk `text` with a one-off chunker; see `SentenceWindowChunker`."""
    return SentenceWindowChunker(config).chunk(text, source, title)


def _make_chunk(
    raw: str, source: str, title: str, start: int, end: int, chunk_index: int
) -> Chunk:
    return Chunk(
        chunk_id=f"{source}-{chunk_index}",
        text=raw.strip(),
        source=source,
        title=title,
        start_index=start,
        end_index=end,
        chunk_index=chunk_index,
    )
