"""
ragroute - Chunker
===================
Splits a document's text into ordered, overlapping segments.

Strategy
--------
Segment boundaries are chosen with a separator hierarchy, coarsest first:

    paragraph (``\\n\\n``) → line (``\\n``) → sentence (``. ``, ``? ``,
    ``! ``, ``。``) → word (`` ``) → raw character cut

For each segment the chunker looks at the window of ``max_chunk_size``
characters starting at the current offset and ends the segment after the
*last* occurrence of the coarsest separator that keeps the segment at
least half full.  If no separator qualifies, the window is cut at exactly
``max_chunk_size`` characters.  The next segment starts ``overlap``
characters before the previous one ended.

Guarantees
----------
• every segment is at most ``max_chunk_size`` characters long;
• segments appear in document order and cover the text end-to-end;
• consecutive segments share exactly ``overlap`` characters;
• segment text is a verbatim slice (``text[start:end]``), so offsets are
  stable and can be shown as provenance.

Usage:
    from ragroute.src.core.chunker import Chunker, ChunkConfig
    segments = Chunker(ChunkConfig(max_chunk_size=300, overlap=30)).split(document)
"""

from __future__ import annotations

from dataclasses import dataclass

from ragroute.config.settings import settings
from ragroute.src.core.errors import InvalidParameterError
from ragroute.src.core.models import Document, Segment
from ragroute.src.utils.logger import get_logger

logger = get_logger(__name__)

# Coarsest first.  A boundary falls right *after* the separator.
SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", "? ", "! ", "。", " ")


@dataclass(frozen=True, slots=True)
class ChunkConfig:
    """Segment size bound and overlap, both in characters."""

    max_chunk_size: int = 300
    overlap: int = 30

    def __post_init__(self) -> None:
        validate_chunk_params(self.max_chunk_size, self.overlap)

    @classmethod
    def from_settings(cls) -> ChunkConfig:
        return cls(max_chunk_size=settings.CHUNK_SIZE, overlap=settings.CHUNK_OVERLAP)


def validate_chunk_params(max_chunk_size: int, overlap: int) -> None:
    if max_chunk_size <= 0:
        raise InvalidParameterError(f"max_chunk_size must be > 0, got {max_chunk_size}")
    if overlap < 0:
        raise InvalidParameterError(f"overlap must be >= 0, got {overlap}")
    if overlap >= max_chunk_size:
        raise InvalidParameterError(f"overlap ({overlap}) must be smaller than max_chunk_size ({max_chunk_size})")


def split(document: Document, max_chunk_size: int, overlap: int) -> list[Segment]:
    """
    Split *document* into overlapping segments.

    Raises
    ------
    InvalidParameterError
        If ``max_chunk_size <= 0``, ``overlap < 0`` or
        ``overlap >= max_chunk_size``.
    """
    validate_chunk_params(max_chunk_size, overlap)

    text = document.text
    length = len(text)
    if length == 0:
        return []

    segments: list[Segment] = []
    start = 0

    while True:
        if length - start <= max_chunk_size:
            end = length
        else:
            end = _find_boundary(text, start, max_chunk_size, overlap)

        segments.append(Segment(text=text[start:end], source_id=document.source_id, start=start, end=end, index=len(segments)))

        if end >= length:
            break
        start = end - overlap

    logger.debug("Split '%s' (%d chars) into %d segment(s) [size=%d, overlap=%d].", document.source_id, length, len(segments), max_chunk_size, overlap)
    return segments


def _find_boundary(text: str, start: int, max_chunk_size: int, overlap: int) -> int:
    """
    Pick the end offset for the segment starting at *start*.

    The boundary must lie in ``[min_end, start + max_chunk_size]`` where
    ``min_end`` keeps the segment at least half full and strictly longer
    than the overlap (so the next segment always makes progress).
    """
    limit = start + max_chunk_size
    min_end = start + max(overlap + 1, max_chunk_size // 2)

    for sep in SEPARATORS:
        idx = text.rfind(sep, start, limit)
        if idx == -1:
            continue
        boundary = idx + len(sep)
        if boundary >= min_end:
            return boundary

    # No separator leaves a usable segment: raw character cut.
    return limit


class Chunker:
    """Binds a ``ChunkConfig`` so ingestion code can call ``split(document)``."""

    __slots__ = ("config",)

    def __init__(self, config: ChunkConfig | None = None) -> None:
        self.config = config or ChunkConfig.from_settings()

    def split(self, document: Document) -> list[Segment]:
        return split(document, self.config.max_chunk_size, self.config.overlap)

    def __repr__(self) -> str:
        return f"Chunker(max_chunk_size={self.config.max_chunk_size}, overlap={self.config.overlap})"
