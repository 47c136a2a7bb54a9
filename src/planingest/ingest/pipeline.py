"""High level ingestion pipeline entry point."""
from __future__ import annotations

import asyncio
import logging
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..config import Settings, get_settings
from ..errors import DownstreamUnavailableError, SourceUnavailableError
from ..logging_config import get_ingest_audit_logger
from ..providers.base import (
    ChunkRecord,
    DocumentMetadata,
    DocumentStore,
    EmbeddingProvider,
    PDFSource,
)
from ..telemetry import emit_ingest_event, traced_duration
from .chunking import ChunkingOptions, TokenBudgetChunker
from .downloader import PDFDownloader
from .extractors import PDFExtractor
from .keywords import KeywordExtractor
from .language import LanguageDetector
from .models import (
    ChunkEnrichment,
    IngestResult,
    IngestStage,
    IngestStats,
    IngestStatus,
    RawDocument,
    TextChunk,
)
from .normalization import NormalizationOptions, TextNormalizer
from .pacing import PacingPolicy, build_pacer
from .quality import QualityScorer, quality_label
from .tokenizer import Tokenizer

LOGGER = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"(?<!\d)(\d{4})(?!\d)")


@dataclass(frozen=True, slots=True)
class IngestOptions:
    """Per-call switches; chunking defaults come from :class:`Settings`."""

    generate_embeddings: bool = False
    store: bool = False
    normalization: NormalizationOptions = field(default_factory=NormalizationOptions)
    chunking: Optional[ChunkingOptions] = None
    max_keywords: int = 10


@dataclass(frozen=True, slots=True)
class BatchDocument:
    source: str
    document_id: str


def party_from_document_id(document_id: str) -> str:
    """``"pln-2026"`` -> ``"PLN"``."""

    return document_id.split("-")[0].upper()


def year_from_document_id(document_id: str) -> Optional[int]:
    match = _YEAR_RE.search(document_id)
    return int(match.group(1)) if match else None


def default_title(document_id: str) -> str:
    party = party_from_document_id(document_id)
    year = year_from_document_id(document_id)
    return f"Plan de Gobierno {party} {year}" if year else f"Plan de Gobierno {party}"


class IngestPipeline:
    """Pipeline orchestrating download, extraction, cleaning, chunking and storage.

    The pipeline owns its tokenizer and releases it in :meth:`close`; use it as
    an async context manager to scope that lifetime. Embedding and storage
    collaborators are resolved lazily so a chunk-only run never loads them.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        tokenizer: Optional[Tokenizer] = None,
        extractor: Optional[PDFSource] = None,
        downloader: Optional[PDFDownloader] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        document_store: Optional[DocumentStore] = None,
        pacer: Optional[PacingPolicy] = None,
        scorer: Optional[QualityScorer] = None,
        keyword_extractor: Optional[KeywordExtractor] = None,
        language_detector: Optional[LanguageDetector] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.tokenizer = tokenizer or Tokenizer(self.settings.tokenizer_encoding)
        self.chunker = TokenBudgetChunker(self.tokenizer, ChunkingOptions.from_settings(self.settings))
        self.extractor = extractor or PDFExtractor(ocr_language=self.settings.ocr_language)
        self.downloader = downloader or PDFDownloader(
            self.settings.download_dir,
            timeout_seconds=self.settings.download_timeout_seconds,
            retry_attempts=self.settings.download_retry_attempts,
            retry_delay_seconds=self.settings.download_retry_delay_seconds,
        )
        self._embedding_provider = embedding_provider
        self._document_store = document_store
        self.pacer = pacer or build_pacer(
            self.settings.batch_pacing,
            delay_seconds=self.settings.batch_delay_seconds,
            rate_per_second=self.settings.batch_rate_per_second,
            burst=self.settings.batch_burst,
        )
        self.scorer = scorer or QualityScorer()
        self.keyword_extractor = keyword_extractor or KeywordExtractor()
        self.language_detector = language_detector or LanguageDetector()

    async def __aenter__(self) -> "IngestPipeline":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.tokenizer.close()

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        if self._embedding_provider is None:
            from ..providers import get_embedding_provider

            try:
                self._embedding_provider = get_embedding_provider()
            except Exception as exc:
                raise DownstreamUnavailableError(
                    f"Embedding provider unavailable: {exc}", collaborator="embedding", cause=exc
                ) from exc
        return self._embedding_provider

    @property
    def document_store(self) -> DocumentStore:
        if self._document_store is None:
            from ..vectorstore import get_document_store

            try:
                self._document_store = get_document_store()
            except Exception as exc:
                raise DownstreamUnavailableError(
                    f"Document store unavailable: {exc}", collaborator="document_store", cause=exc
                ) from exc
        return self._document_store

    async def ingest(
        self,
        source: str | Path,
        document_id: str,
        options: Optional[IngestOptions] = None,
    ) -> IngestResult:
        """Run one document through every stage and return its terminal record."""

        options = options or IngestOptions()
        stats = IngestStats()
        started = time.perf_counter()
        stage = IngestStage.OBTAINING_SOURCE
        chunks: Optional[List[TextChunk]] = None
        enrichments: Dict[str, ChunkEnrichment] = {}
        embeddings: Dict[str, List[float]] = {}
        emit_ingest_event("ingest.start", document_id=document_id, source=str(source))

        def finish(status: IngestStatus, **extra: Any) -> IngestResult:
            stats.total_ms = (time.perf_counter() - started) * 1000.0
            result = IngestResult(
                document_id=document_id,
                success=status is not IngestStatus.FAILED,
                status=status,
                stats=stats,
                chunks=chunks,
                enrichments=enrichments,
                embeddings=embeddings,
                **extra,
            )
            emit_ingest_event(
                "ingest.complete",
                document_id=document_id,
                source=str(source),
                status=status.value,
                chunks=len(chunks) if chunks is not None else None,
                stats=stats.as_dict(),
                error=result.error or result.downstream_error,
                logger=get_ingest_audit_logger(),
            )
            return result

        try:
            with self._timed(stats, stage, document_id):
                path, source_url = await self._obtain_source(source, document_id)

            stage = IngestStage.EXTRACTING
            with self._timed(stats, stage, document_id):
                raw = await self._extract(path, document_id)

            stage = IngestStage.CLEANING
            with self._timed(stats, stage, document_id):
                cleaning = TextNormalizer(options.normalization).normalize(raw.text)
                language = self.language_detector.detect(cleaning.cleaned_text)

            stage = IngestStage.CHUNKING
            with self._timed(stats, stage, document_id):
                chunk_options = self._chunking_options(options, cleaning.page_markers)
                chunks = self.chunker.chunk(cleaning.cleaned_text, document_id, chunk_options)

            stage = IngestStage.ENRICHING
            with self._timed(stats, stage, document_id):
                for chunk in chunks:
                    enrichments[chunk.chunk_id] = ChunkEnrichment(
                        chunk_id=chunk.chunk_id,
                        quality=self.scorer.score(chunk.content),
                        keywords=self.keyword_extractor.extract(chunk.content, options.max_keywords),
                    )
        except Exception as error:
            LOGGER.error("Ingestion of %s failed during %s: %s", document_id, stage.value, error, exc_info=True)
            return finish(IngestStatus.FAILED, error=str(error), failed_stage=stage)

        document_uuid: Optional[str] = None
        try:
            if options.generate_embeddings or options.store:
                stage = IngestStage.EMBEDDING
                with self._timed(stats, stage, document_id):
                    embeddings.update(await self._embed(chunks))

            if options.store:
                stage = IngestStage.STORING
                with self._timed(stats, stage, document_id):
                    metadata = self._document_metadata(raw, source_url, language)
                    document_uuid = await self._store(metadata, chunks, enrichments, embeddings)
        except DownstreamUnavailableError as error:
            LOGGER.warning(
                "Downstream %s unavailable for %s; keeping %s chunks: %s",
                error.collaborator,
                document_id,
                len(chunks),
                error,
            )
            return finish(
                IngestStatus.PARTIAL,
                downstream_error=str(error),
                failed_stage=stage,
                document_uuid=document_uuid,
            )

        return finish(IngestStatus.SUCCESS, document_uuid=document_uuid)

    async def ingest_batch(
        self,
        documents: Sequence[BatchDocument],
        options: Optional[IngestOptions] = None,
    ) -> List[IngestResult]:
        """Ingest documents one at a time, pacing between them."""

        results: List[IngestResult] = []
        for index, document in enumerate(documents):
            if index:
                await self.pacer.wait()
            LOGGER.info("Batch document %s/%s: %s", index + 1, len(documents), document.document_id)
            results.append(await self.ingest(document.source, document.document_id, options))

        counts = {status: sum(1 for result in results if result.status is status) for status in IngestStatus}
        LOGGER.info(
            "Batch complete: %s succeeded, %s partial, %s failed",
            counts[IngestStatus.SUCCESS],
            counts[IngestStatus.PARTIAL],
            counts[IngestStatus.FAILED],
        )
        return results

    @contextmanager
    def _timed(self, stats: IngestStats, stage: IngestStage, document_id: str) -> Iterator[None]:
        started = time.perf_counter()
        try:
            with traced_duration(f"ingest.{stage.value}", logger=LOGGER, document_id=document_id):
                yield
        finally:
            stats.record(stage, (time.perf_counter() - started) * 1000.0)

    async def _obtain_source(self, source: str | Path, document_id: str) -> Tuple[Path, Optional[str]]:
        text = str(source)
        if text.startswith(("http://", "https://")):
            download = await self.downloader.download(text, document_id)
            if not download.success or download.file_path is None:
                kind = download.error_type.value if download.error_type else "unknown"
                raise SourceUnavailableError(f"Download of {text} failed ({kind}): {download.error}")
            return download.file_path, text

        path = Path(source)
        if not await asyncio.to_thread(self.extractor.validate, path):
            raise SourceUnavailableError(f"{path} is missing or is not a PDF file")
        return path, None

    async def _extract(self, path: Path, document_id: str) -> RawDocument:
        timeout = self.settings.extraction_timeout_seconds
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.extractor.extract, path, document_id), timeout=timeout
            )
        except asyncio.TimeoutError as exc:
            raise SourceUnavailableError(f"Extraction of {path} timed out after {timeout}s", cause=exc) from exc

    def _chunking_options(self, options: IngestOptions, page_markers: Sequence[Any]) -> ChunkingOptions:
        chunk_options = options.chunking or self.chunker.options
        embedding_max = chunk_options.embedding_max_tokens
        if options.generate_embeddings or options.store:
            try:
                embedding_max = min(embedding_max, self.embedding_provider.get_max_input_length())
            except DownstreamUnavailableError as error:
                # Chunk against the configured limit; the embedding stage reports the failure.
                LOGGER.warning("Using configured embedding limit of %s tokens: %s", embedding_max, error)
        return replace(chunk_options, page_markers=tuple(page_markers), embedding_max_tokens=embedding_max)

    async def _embed(self, chunks: Sequence[TextChunk]) -> Dict[str, List[float]]:
        provider = self.embedding_provider
        timeout = self.settings.embedding_timeout_seconds
        vectors: Dict[str, List[float]] = {}
        for chunk in chunks:
            try:
                result = await asyncio.wait_for(provider.generate_embedding(chunk.content), timeout=timeout)
            except DownstreamUnavailableError:
                raise
            except asyncio.TimeoutError as exc:
                raise DownstreamUnavailableError(
                    f"Embedding {chunk.chunk_id} timed out after {timeout}s", collaborator="embedding", cause=exc
                ) from exc
            except Exception as exc:
                raise DownstreamUnavailableError(
                    f"Embedding {chunk.chunk_id} failed: {exc}", collaborator="embedding", cause=exc
                ) from exc
            vectors[chunk.chunk_id] = list(result.embedding)
        return vectors

    def _document_metadata(
        self, raw: RawDocument, source_url: Optional[str], language: Optional[str]
    ) -> DocumentMetadata:
        document_id = raw.document_id
        return DocumentMetadata(
            document_id=document_id,
            title=raw.metadata.get("title") or default_title(document_id),
            party_id=party_from_document_id(document_id),
            year=year_from_document_id(document_id),
            source_url=source_url,
            page_count=raw.page_count,
            file_size=raw.metadata.get("file_size"),
            language=language,
            extra={"source": "TSE", "ocr_performed": bool(raw.metadata.get("ocr_performed"))},
        )

    async def _store(
        self,
        metadata: DocumentMetadata,
        chunks: Sequence[TextChunk],
        enrichments: Dict[str, ChunkEnrichment],
        embeddings: Dict[str, List[float]],
    ) -> str:
        store = self.document_store
        timeout = self.settings.storage_timeout_seconds
        try:
            document_uuid = await asyncio.wait_for(store.upsert_document(metadata), timeout=timeout)
            records = [
                self._chunk_record(chunk, metadata, document_uuid, enrichments.get(chunk.chunk_id), embeddings)
                for chunk in chunks
            ]
            await asyncio.wait_for(store.upsert(records), timeout=timeout)
        except DownstreamUnavailableError:
            raise
        except asyncio.TimeoutError as exc:
            raise DownstreamUnavailableError(
                f"Document store timed out after {timeout}s", collaborator="document_store", cause=exc
            ) from exc
        except Exception as exc:
            raise DownstreamUnavailableError(
                f"Document store failed: {exc}", collaborator="document_store", cause=exc
            ) from exc
        return document_uuid

    @staticmethod
    def _chunk_record(
        chunk: TextChunk,
        metadata: DocumentMetadata,
        document_uuid: str,
        enrichment: Optional[ChunkEnrichment],
        embeddings: Dict[str, List[float]],
    ) -> ChunkRecord:
        chunk_metadata: Dict[str, Any] = {
            "chunk_index": chunk.chunk_index,
            "tokens": chunk.tokens,
            "start_char": chunk.start_char,
            "end_char": chunk.end_char,
            "page_number": chunk.page_number,
            "page_start": chunk.page_range.start if chunk.page_range else None,
            "page_end": chunk.page_range.end if chunk.page_range else None,
            "party_id": metadata.party_id,
            "year": metadata.year,
        }
        if enrichment is not None:
            quality = enrichment.quality
            chunk_metadata.update(
                quality_score=quality.quality_score,
                length_score=quality.length_score,
                special_char_ratio=quality.special_char_ratio,
                has_keywords=quality.has_keywords,
                readability=quality.readability,
                quality_label=quality_label(quality.quality_score),
                keywords=list(enrichment.keywords.keywords),
                entities=sorted(enrichment.keywords.entities),
            )
        return ChunkRecord(
            chunk_id=chunk.chunk_id,
            document_id=chunk.document_id,
            document_uuid=document_uuid,
            content=chunk.content,
            embedding=embeddings[chunk.chunk_id],
            metadata=chunk_metadata,
        )


__all__ = [
    "BatchDocument",
    "IngestOptions",
    "IngestPipeline",
    "default_title",
    "party_from_document_id",
    "year_from_document_id",
]
