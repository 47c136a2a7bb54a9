"""Data models used by the ingestion pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True, slots=True)
class RawDocument:
    """Text extracted from a source PDF, before any cleaning."""

    document_id: str
    text: str
    page_count: int
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PageMarker:
    """Recovered pointer from a cleaned-text offset to a source page."""

    page_number: int
    total_pages: int
    position: int


@dataclass(frozen=True, slots=True)
class CleaningResult:
    cleaned_text: str
    page_markers: Tuple[PageMarker, ...] = ()


@dataclass(frozen=True, slots=True)
class PageRange:
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A contiguous, token-bounded passage of a document's cleaned text."""

    chunk_id: str
    document_id: str
    content: str
    tokens: int
    chunk_index: int
    start_char: int
    end_char: int
    page_number: Optional[int] = None
    page_range: Optional[PageRange] = None


@dataclass(frozen=True, slots=True)
class QualityMetrics:
    quality_score: float
    length_score: float
    special_char_ratio: float
    has_keywords: bool
    readability: float


@dataclass(frozen=True, slots=True)
class KeywordExtractionResult:
    keywords: Tuple[str, ...] = ()
    entities: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class ChunkEnrichment:
    """Derived annotations for one chunk; the chunk itself is never mutated."""

    chunk_id: str
    quality: QualityMetrics
    keywords: KeywordExtractionResult


class IngestStage(str, Enum):
    OBTAINING_SOURCE = "obtaining_source"
    EXTRACTING = "extracting"
    CLEANING = "cleaning"
    CHUNKING = "chunking"
    ENRICHING = "enriching"
    EMBEDDING = "embedding"
    STORING = "storing"
    DONE = "done"
    FAILED = "failed"


class IngestStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(slots=True)
class IngestStats:
    """Wall-clock duration of each stage in milliseconds."""

    stage_ms: Dict[str, float] = field(default_factory=dict)
    total_ms: float = 0.0

    def record(self, stage: IngestStage, duration_ms: float) -> None:
        self.stage_ms[stage.value] = round(duration_ms, 3)

    def as_dict(self) -> Dict[str, float]:
        payload = dict(self.stage_ms)
        payload["total"] = round(self.total_ms, 3)
        return payload


@dataclass(slots=True)
class IngestResult:
    """Terminal record of one document's run through the pipeline."""

    document_id: str
    success: bool
    status: IngestStatus
    stats: IngestStats
    chunks: Optional[List[TextChunk]] = None
    enrichments: Dict[str, ChunkEnrichment] = field(default_factory=dict)
    embeddings: Dict[str, List[float]] = field(default_factory=dict)
    error: Optional[str] = None
    failed_stage: Optional[IngestStage] = None
    downstream_error: Optional[str] = None
    document_uuid: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly summary (chunk bodies are omitted)."""

        return {
            "document_id": self.document_id,
            "success": self.success,
            "status": self.status.value,
            "chunks": len(self.chunks) if self.chunks is not None else None,
            "embedded": len(self.embeddings),
            "error": self.error,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "downstream_error": self.downstream_error,
            "document_uuid": self.document_uuid,
            "stats": self.stats.as_dict(),
        }


__all__ = [
    "ChunkEnrichment",
    "CleaningResult",
    "IngestResult",
    "IngestStage",
    "IngestStats",
    "IngestStatus",
    "KeywordExtractionResult",
    "PageMarker",
    "PageRange",
    "QualityMetrics",
    "RawDocument",
    "TextChunk",
]
