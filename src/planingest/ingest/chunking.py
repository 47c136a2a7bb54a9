"""Token-budgeted chunking of cleaned document text."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

from ..errors import OversizedSegmentError
from .models import PageMarker, PageRange, TextChunk
from .tokenizer import Tokenizer

if TYPE_CHECKING:  # pragma: no cover
    from ..config import Settings

LOGGER = logging.getLogger(__name__)

EMBEDDING_SAFETY_MARGIN = 100
LEVELS = ("paragraph", "sentence", "word")

_BOUNDARY_RES = {
    "paragraph": re.compile(r"\n\s*\n"),
    "sentence": re.compile(r"(?<=[.!?])\s+"),
    "word": re.compile(r"\s+"),
}

Span = Tuple[int, int]


@dataclass(frozen=True, slots=True)
class ChunkingOptions:
    chunk_size: int = 400
    max_chunk_size: int = 600
    overlap_size: int = 50
    split_on: str = "paragraph"
    page_markers: Tuple[PageMarker, ...] = ()
    embedding_max_tokens: int = 8192

    @property
    def effective_max(self) -> int:
        return min(self.max_chunk_size, self.embedding_max_tokens - EMBEDDING_SAFETY_MARGIN)

    @classmethod
    def from_settings(
        cls, settings: "Settings", page_markers: Sequence[PageMarker] = ()
    ) -> "ChunkingOptions":
        return cls(
            chunk_size=settings.chunk_size,
            max_chunk_size=settings.max_chunk_size,
            overlap_size=settings.chunk_overlap,
            split_on=settings.chunk_split_on,
            page_markers=tuple(page_markers),
            embedding_max_tokens=settings.embedding_max_tokens,
        )


def _trim(text: str, start: int, end: int) -> Optional[Span]:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    if start >= end:
        return None
    return start, end


def _segment(text: str, start: int, end: int, level: str) -> List[Span]:
    """Split ``text[start:end]`` into trimmed spans at *level* boundaries."""

    spans: List[Span] = []
    cursor = start
    for match in _BOUNDARY_RES[level].finditer(text, start, end):
        trimmed = _trim(text, cursor, match.start())
        if trimmed:
            spans.append(trimmed)
        cursor = match.end()
    trimmed = _trim(text, cursor, end)
    if trimmed:
        spans.append(trimmed)
    return spans


def _page_at(position: int, markers: Sequence[PageMarker]) -> int:
    page = 1
    for marker in markers:
        if marker.position > position:
            break
        page = marker.page_number
    return page


def attribute_pages(
    start: int, end: int, markers: Sequence[PageMarker]
) -> Tuple[Optional[int], Optional[PageRange]]:
    """Return ``(page_number, page_range)`` for a chunk spanning ``[start, end)``.

    The end page is the page of the last character, so a chunk that stops
    exactly where the next page begins stays on its own page.
    """

    if not markers:
        return None, None
    start_page = _page_at(start, markers)
    end_page = _page_at(max(start, end - 1), markers)
    if start_page == end_page:
        return start_page, None
    return None, PageRange(start=start_page, end=end_page)


class TokenBudgetChunker:
    """Split cleaned text into overlapping chunks bounded by a token budget.

    Text is segmented by paragraph, sentence or word. Segments that exceed the
    budget are re-split at the next finer level and, as a last resort, at token
    boundaries. Segments are accumulated greedily; every closed chunk seeds the
    next one with its trailing ``overlap_size`` tokens.
    """

    def __init__(self, tokenizer: Tokenizer, options: Optional[ChunkingOptions] = None) -> None:
        self.tokenizer = tokenizer
        self.options = options or ChunkingOptions()

    def chunk(
        self,
        cleaned_text: str,
        document_id: str,
        options: Optional[ChunkingOptions] = None,
    ) -> List[TextChunk]:
        options = options or self.options
        if options.split_on not in LEVELS:
            raise ValueError(f"Unsupported split_on value: {options.split_on!r}")
        effective_max = options.effective_max
        if effective_max < 1:
            raise OversizedSegmentError(
                f"Token budget leaves no room for content (effective max {effective_max})"
            )
        if not cleaned_text.strip():
            LOGGER.info("Document %s has no text to chunk", document_id)
            return []

        LOGGER.info(
            "Chunking document %s (%s characters, budget %s/%s tokens)",
            document_id,
            len(cleaned_text),
            options.chunk_size,
            effective_max,
        )
        segments = self._split_to_fit(
            cleaned_text, 0, len(cleaned_text), LEVELS.index(options.split_on), effective_max
        )
        spans = self._accumulate(cleaned_text, segments, options, effective_max)
        spans = self._enforce_embedding_limit(cleaned_text, spans, options, effective_max)

        markers = sorted(options.page_markers, key=lambda marker: marker.position)
        chunks: List[TextChunk] = []
        for index, (start, end) in enumerate(spans):
            content = cleaned_text[start:end]
            page_number, page_range = attribute_pages(start, end, markers)
            chunk = TextChunk(
                chunk_id=f"{document_id}-chunk-{index}",
                document_id=document_id,
                content=content,
                tokens=self.tokenizer.count(content),
                chunk_index=index,
                start_char=start,
                end_char=end,
                page_number=page_number,
                page_range=page_range,
            )
            LOGGER.debug(
                "Chunk %s offsets %s-%s tokens %s",
                chunk.chunk_id,
                start,
                end,
                chunk.tokens,
            )
            chunks.append(chunk)

        LOGGER.info("Generated %s chunks for document %s", len(chunks), document_id)
        return chunks

    def overlap_text(self, content: str, overlap_size: Optional[int] = None) -> str:
        """Return the trailing text of *content* that seeds the following chunk."""

        size = self.options.overlap_size if overlap_size is None else overlap_size
        offset = self._overlap_offset(content, size)
        return "" if offset is None else content[offset:]

    def _count(self, text: str) -> int:
        return self.tokenizer.count(text)

    def _split_to_fit(self, text: str, start: int, end: int, level_index: int, limit: int) -> List[Span]:
        spans: List[Span] = []
        for seg_start, seg_end in _segment(text, start, end, LEVELS[level_index]):
            if self._count(text[seg_start:seg_end]) <= limit:
                spans.append((seg_start, seg_end))
            elif level_index + 1 < len(LEVELS):
                spans.extend(self._split_to_fit(text, seg_start, seg_end, level_index + 1, limit))
            else:
                spans.extend(self._token_windows(text, seg_start, seg_end, limit))
        return spans

    def _token_windows(self, text: str, start: int, end: int, limit: int) -> List[Span]:
        """Cut a single over-budget word at token boundaries."""

        piece = text[start:end]
        _, offsets = self.tokenizer.token_offsets(piece)
        cuts = sorted({offset for offset in offsets if 0 < offset < len(piece)})
        cuts.append(len(piece))

        windows: List[Span] = []
        cursor = 0
        first = 0
        while cursor < len(piece):
            index = min(first + limit - 1, len(cuts) - 1)
            while index > first and self._count(piece[cursor : cuts[index]]) > limit:
                index -= 1
            if self._count(piece[cursor : cuts[index]]) > limit:
                raise OversizedSegmentError(
                    f"Cannot fit {piece[cursor:cuts[index]]!r} into a budget of {limit} tokens"
                )
            while index + 1 < len(cuts) and self._count(piece[cursor : cuts[index + 1]]) <= limit:
                index += 1
            windows.append((start + cursor, start + cuts[index]))
            cursor = cuts[index]
            first = index + 1
        return windows

    def _overlap_offset(self, piece: str, overlap_size: int) -> Optional[int]:
        if overlap_size <= 0 or not piece:
            return None
        tokens, offsets = self.tokenizer.token_offsets(piece)
        take = min(overlap_size, len(tokens) // 2)
        if take <= 0:
            return None
        offset = offsets[len(tokens) - take]
        while offset < len(piece) and piece[offset].isspace():
            offset += 1
        if offset <= 0 or offset >= len(piece):
            return None
        return offset

    def _accumulate(
        self,
        text: str,
        segments: Sequence[Span],
        options: ChunkingOptions,
        effective_max: int,
    ) -> List[Span]:
        closed: List[Span] = []
        buffer: Optional[Span] = None
        # False while the buffer holds nothing but the overlap seed.
        has_content = False

        def close() -> Optional[Span]:
            assert buffer is not None
            closed.append(buffer)
            offset = self._overlap_offset(text[buffer[0] : buffer[1]], options.overlap_size)
            if offset is None:
                return None
            return buffer[0] + offset, buffer[1]

        for position, (seg_start, seg_end) in enumerate(segments):
            if buffer is None:
                buffer, has_content = (seg_start, seg_end), True
            elif self._count(text[buffer[0] : seg_end]) <= effective_max:
                buffer, has_content = (buffer[0], seg_end), True
            elif has_content:
                seed = close()
                if seed is not None and self._count(text[seed[0] : seg_end]) <= effective_max:
                    buffer = (seed[0], seg_end)
                else:
                    buffer = (seg_start, seg_end)
                has_content = True
            else:
                # Hard boundary: the seed and the segment cannot share a chunk.
                buffer, has_content = (seg_start, seg_end), True

            more_remaining = position < len(segments) - 1
            if more_remaining and self._count(text[buffer[0] : buffer[1]]) >= options.chunk_size:
                buffer = close()
                has_content = False

        if buffer is not None and has_content:
            closed.append(buffer)
        return closed

    def _enforce_embedding_limit(
        self,
        text: str,
        spans: Sequence[Span],
        options: ChunkingOptions,
        effective_max: int,
    ) -> List[Span]:
        validated: List[Span] = []
        for start, end in spans:
            if self._count(text[start:end]) <= options.embedding_max_tokens:
                validated.append((start, end))
                continue
            LOGGER.warning(
                "Chunk at %s-%s exceeds the embedding limit of %s tokens; re-splitting by sentence",
                start,
                end,
                options.embedding_max_tokens,
            )
            pieces = self._split_to_fit(text, start, end, LEVELS.index("sentence"), effective_max)
            validated.extend(self._accumulate(text, pieces, _without_overlap(options), effective_max))
        return validated


def _without_overlap(options: ChunkingOptions) -> ChunkingOptions:
    return ChunkingOptions(
        chunk_size=options.chunk_size,
        max_chunk_size=options.max_chunk_size,
        overlap_size=0,
        split_on=options.split_on,
        page_markers=options.page_markers,
        embedding_max_tokens=options.embedding_max_tokens,
    )


def chunking_stats(chunks: Sequence[TextChunk]) -> Dict[str, float]:
    if not chunks:
        return {"total_chunks": 0, "avg_tokens": 0, "min_tokens": 0, "max_tokens": 0, "total_tokens": 0}
    tokens = [chunk.tokens for chunk in chunks]
    total = sum(tokens)
    return {
        "total_chunks": len(chunks),
        "avg_tokens": round(total / len(chunks)),
        "min_tokens": min(tokens),
        "max_tokens": max(tokens),
        "total_tokens": total,
    }


__all__ = [
    "ChunkingOptions",
    "EMBEDDING_SAFETY_MARGIN",
    "TokenBudgetChunker",
    "attribute_pages",
    "chunking_stats",
]
