"""Document ingestion: cleaning, chunking, enrichment and orchestration."""
from __future__ import annotations

from .chunking import ChunkingOptions, TokenBudgetChunker, chunking_stats
from .keywords import KeywordExtractor
from .models import (
    ChunkEnrichment,
    CleaningResult,
    IngestResult,
    IngestStage,
    IngestStats,
    IngestStatus,
    KeywordExtractionResult,
    PageMarker,
    PageRange,
    QualityMetrics,
    RawDocument,
    TextChunk,
)
from .normalization import NormalizationOptions, TextNormalizer, cleaning_stats, normalize
from .pipeline import BatchDocument, IngestOptions, IngestPipeline
from .quality import QualityScorer, quality_label, should_keep_chunk
from .tokenizer import Tokenizer

__all__ = [
    "BatchDocument",
    "ChunkEnrichment",
    "ChunkingOptions",
    "CleaningResult",
    "IngestOptions",
    "IngestPipeline",
    "IngestResult",
    "IngestStage",
    "IngestStats",
    "IngestStatus",
    "KeywordExtractionResult",
    "KeywordExtractor",
    "NormalizationOptions",
    "PageMarker",
    "PageRange",
    "QualityMetrics",
    "QualityScorer",
    "RawDocument",
    "TextChunk",
    "TextNormalizer",
    "Tokenizer",
    "TokenBudgetChunker",
    "chunking_stats",
    "cleaning_stats",
    "normalize",
    "quality_label",
    "should_keep_chunk",
]
