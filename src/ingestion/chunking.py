"""Boundary-aware splitting of normalized text into bounded chunks."""

from __future__ import annotations

import logging

from src.ingestion.models import ContentChunk

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_SIZE = 12_000
DEFAULT_MAX_CHUNKS = 30

# Only look this far back from the window end for a natural boundary.
BOUNDARY_LOOKBACK = 1_000

# (separator, offset of the cut relative to the separator position)
_BOUNDARIES: list[tuple[str, int]] = [
    ("\n\n", 0),  # paragraph: cut before the blank line
    ("\n", 0),  # line
    (". ", 1),  # sentence: keep the period with the chunk
]


def find_cut(text: str, start: int, max_chunk_size: int) -> int:
    """Return the end offset for a chunk beginning at ``start``.

    Prefers the latest paragraph break, then line break, then sentence
    boundary within the last :data:`BOUNDARY_LOOKBACK` characters of the
    window, and falls back to a hard cut at ``max_chunk_size``.
    """
    window_end = start + max_chunk_size
    if window_end >= len(text):
        return len(text)

    search_from = max(start + 1, window_end - BOUNDARY_LOOKBACK)
    for separator, offset in _BOUNDARIES:
        pos = text.rfind(separator, search_from, window_end)
        if pos != -1:
            return pos + offset
    return window_end


def chunk_text(
    text: str,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    max_chunks: int = DEFAULT_MAX_CHUNKS,
) -> list[ContentChunk]:
    """Split normalized text into ordered chunks on natural boundaries.

    Text that fits in one window comes back as a single chunk.  Otherwise
    the text is cut repeatedly (see :func:`find_cut`), skipping leading
    whitespace after each cut, so the chunks concatenate back to the input
    modulo whitespace at the seams.

    At most ``max_chunks`` chunks are produced; anything past the cap is
    dropped with a warning.  Callers detect the truncation by comparing the
    last chunk's ``end`` with the text length.

    Args:
        text: Normalized text.
        max_chunk_size: Maximum characters per chunk.
        max_chunks: Maximum number of chunks to return.

    Returns:
        List of :class:`ContentChunk` in text order.
    """
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")
    if not text.strip():
        return []

    chunks: list[ContentChunk] = []
    pos = 0
    length = len(text)

    while pos < length and text[pos].isspace():
        pos += 1

    while pos < length:
        if len(chunks) >= max_chunks:
            logger.warning(
                "Chunk cap of %d reached; %d trailing characters will not be analyzed",
                max_chunks, length - pos,
            )
            break

        cut = find_cut(text, pos, max_chunk_size)
        piece = text[pos:cut].rstrip()
        if piece:
            chunks.append(
                ContentChunk(index=len(chunks), text=piece, start=pos, end=pos + len(piece))
            )

        pos = cut
        while pos < length and text[pos].isspace():
            pos += 1

    return chunks
