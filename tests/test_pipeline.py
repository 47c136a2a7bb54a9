"""Tests for the ingest pipeline using lightweight fakes."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import pytest

from planingest.config import Settings
from planingest.ingest.chunking import ChunkingOptions
from planingest.ingest.extractors import PDFExtractor
from planingest.ingest.models import IngestStage, IngestStatus
from planingest.ingest.pipeline import (
    BatchDocument,
    IngestOptions,
    IngestPipeline,
    default_title,
    party_from_document_id,
    year_from_document_id,
)
from planingest.logging_config import AUDIT_LOGGER_NAME
from planingest.providers.mock_embedding import MockEmbeddingProvider
from planingest.vectorstore.memory_store import InMemoryDocumentStore, document_uuid

from conftest import FailingDocumentStore, FailingEmbeddingProvider, FakePDFSource, ListHandler, RecordingPacer

SMALL_CHUNKS = ChunkingOptions(chunk_size=30, max_chunk_size=45, overlap_size=5)


def _pipeline(settings: Settings, **overrides) -> IngestPipeline:
    overrides.setdefault("extractor", FakePDFSource())
    overrides.setdefault("pacer", RecordingPacer())
    return IngestPipeline(settings=settings, **overrides)


def _run(pipeline: IngestPipeline, *args, **kwargs):
    async def go():
        async with pipeline:
            return await pipeline.ingest(*args, **kwargs)

    return asyncio.run(go())


def test_chunk_only_run_succeeds(settings: Settings, tmp_path: Path) -> None:
    extractor = FakePDFSource()
    pipeline = _pipeline(settings, extractor=extractor)

    result = _run(pipeline, tmp_path / "pln-2026.pdf", "pln-2026", IngestOptions(chunking=SMALL_CHUNKS))

    assert result.status is IngestStatus.SUCCESS
    assert result.success
    assert result.chunks
    assert result.embeddings == {}
    assert result.document_uuid is None
    assert extractor.extracted == [str(tmp_path / "pln-2026.pdf")]
    assert set(result.enrichments) == {chunk.chunk_id for chunk in result.chunks}
    assert {"obtaining_source", "extracting", "cleaning", "chunking", "enriching"} <= set(result.stats.stage_ms)
    assert "embedding" not in result.stats.stage_ms
    assert all("-- 1 of 2 --" not in chunk.content for chunk in result.chunks)
    assert pipeline.tokenizer.closed


def test_chunks_carry_page_provenance(settings: Settings, tmp_path: Path) -> None:
    result = _run(_pipeline(settings), tmp_path / "doc.pdf", "pln-2026", IngestOptions(chunking=SMALL_CHUNKS))

    first_pages = [
        chunk.page_number if chunk.page_number is not None else chunk.page_range.start for chunk in result.chunks
    ]
    assert first_pages == sorted(first_pages)
    assert first_pages[0] == 1
    last = result.chunks[-1]
    assert last.page_number == 2 or last.page_range.end == 2


def test_missing_source_fails_at_first_stage(settings: Settings, tmp_path: Path) -> None:
    bogus = tmp_path / "plan.pdf"
    bogus.write_bytes(b"this is not a pdf")
    pipeline = _pipeline(settings, extractor=PDFExtractor())

    result = _run(pipeline, bogus, "pln-2026")

    assert result.status is IngestStatus.FAILED
    assert not result.success
    assert result.failed_stage is IngestStage.OBTAINING_SOURCE
    assert result.chunks is None
    assert "not a PDF" in result.error
    assert result.to_dict()["chunks"] is None


def test_store_run_persists_document_and_chunks(settings: Settings, tmp_path: Path) -> None:
    store = InMemoryDocumentStore()
    provider = MockEmbeddingProvider(dimension=8)
    pipeline = _pipeline(settings, embedding_provider=provider, document_store=store)

    result = _run(
        pipeline,
        tmp_path / "pln-2026.pdf",
        "pln-2026",
        IngestOptions(store=True, chunking=SMALL_CHUNKS),
    )

    assert result.status is IngestStatus.SUCCESS
    assert result.document_uuid == document_uuid("pln-2026")
    assert set(result.embeddings) == {chunk.chunk_id for chunk in result.chunks}
    assert all(len(vector) == 8 for vector in result.embeddings.values())

    document = store.get_document("pln-2026")
    assert document is not None
    assert document.party_id == "PLN"
    assert document.year == 2026
    assert document.title == "Plan de Gobierno PLN 2026"
    assert document.page_count == 2
    assert document.extra["source"] == "TSE"

    records = store.records_for("pln-2026")
    assert [record.chunk_id for record in records] == [chunk.chunk_id for chunk in result.chunks]
    metadata = records[0].metadata
    assert metadata["chunk_index"] == 0
    assert metadata["party_id"] == "PLN"
    assert metadata["quality_label"] in {"Excellent", "Good", "Fair", "Poor", "Very Poor"}
    assert isinstance(metadata["keywords"], list)
    assert records[0].document_uuid == result.document_uuid


def test_store_failure_keeps_chunks_as_partial(settings: Settings, tmp_path: Path) -> None:
    pipeline = _pipeline(
        settings,
        embedding_provider=MockEmbeddingProvider(dimension=4),
        document_store=FailingDocumentStore(),
    )

    result = _run(pipeline, tmp_path / "pln-2026.pdf", "pln-2026", IngestOptions(store=True, chunking=SMALL_CHUNKS))

    assert result.status is IngestStatus.PARTIAL
    assert result.success
    assert result.failed_stage is IngestStage.STORING
    assert result.chunks
    assert result.embeddings
    assert "read-only" in result.downstream_error
    assert result.error is None


def test_embedding_failure_keeps_chunks_as_partial(settings: Settings, tmp_path: Path) -> None:
    provider = FailingEmbeddingProvider()
    pipeline = _pipeline(settings, embedding_provider=provider, document_store=InMemoryDocumentStore())

    result = _run(
        pipeline,
        tmp_path / "pln-2026.pdf",
        "pln-2026",
        IngestOptions(generate_embeddings=True, chunking=SMALL_CHUNKS),
    )

    assert result.status is IngestStatus.PARTIAL
    assert result.failed_stage is IngestStage.EMBEDDING
    assert result.chunks
    assert result.embeddings == {}
    assert provider.calls == 1


def test_unresolvable_embedding_provider_degrades_to_partial(
    settings: Settings, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("EMBEDDING_PROVIDER", "quantum")
    pipeline = _pipeline(settings, document_store=InMemoryDocumentStore())

    result = _run(
        pipeline,
        tmp_path / "pln-2026.pdf",
        "pln-2026",
        IngestOptions(generate_embeddings=True, chunking=SMALL_CHUNKS),
    )

    assert result.status is IngestStatus.PARTIAL
    assert result.failed_stage is IngestStage.EMBEDDING
    assert "quantum" in result.downstream_error
    assert result.chunks
    assert "chunking" in result.stats.stage_ms


def test_unresolvable_document_store_degrades_to_partial(
    settings: Settings, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("VECTOR_STORE", "tape")
    pipeline = _pipeline(settings, embedding_provider=MockEmbeddingProvider(dimension=4))

    result = _run(pipeline, tmp_path / "pln-2026.pdf", "pln-2026", IngestOptions(store=True, chunking=SMALL_CHUNKS))

    assert result.status is IngestStatus.PARTIAL
    assert result.failed_stage is IngestStage.STORING
    assert len(result.embeddings) == len(result.chunks)


def test_provider_input_limit_caps_chunk_budget(settings: Settings, tmp_path: Path) -> None:
    provider = MockEmbeddingProvider(dimension=4, max_input_length=130)
    pipeline = _pipeline(settings, embedding_provider=provider)

    result = _run(pipeline, tmp_path / "pln-2026.pdf", "pln-2026", IngestOptions(generate_embeddings=True))

    assert result.status is IngestStatus.SUCCESS
    assert all(chunk.tokens <= 30 for chunk in result.chunks)


def test_batch_paces_between_documents_and_continues_after_failure(settings: Settings, tmp_path: Path) -> None:
    pacer = RecordingPacer()
    bogus = tmp_path / "broken.pdf"
    bogus.write_bytes(b"garbage")

    class _SelectiveSource(FakePDFSource):
        def validate(self, path) -> bool:
            return Path(path).name != "broken.pdf"

    pipeline = _pipeline(settings, extractor=_SelectiveSource(), pacer=pacer)
    documents = [
        BatchDocument(source=str(tmp_path / "pln-2026.pdf"), document_id="pln-2026"),
        BatchDocument(source=str(bogus), document_id="pusc-2026"),
        BatchDocument(source=str(tmp_path / "fa-2026.pdf"), document_id="fa-2026"),
    ]

    async def go():
        async with pipeline:
            return await pipeline.ingest_batch(documents, IngestOptions(chunking=SMALL_CHUNKS))

    results = asyncio.run(go())

    assert [result.status for result in results] == [IngestStatus.SUCCESS, IngestStatus.FAILED, IngestStatus.SUCCESS]
    assert [result.document_id for result in results] == ["pln-2026", "pusc-2026", "fa-2026"]
    assert pacer.waits == 2


def test_completion_is_written_to_audit_log(settings: Settings, tmp_path: Path) -> None:
    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    handler = ListHandler()
    previous_level = audit.level
    audit.addHandler(handler)
    audit.setLevel(logging.INFO)
    try:
        _run(_pipeline(settings), tmp_path / "pln-2026.pdf", "pln-2026", IngestOptions(chunking=SMALL_CHUNKS))
    finally:
        audit.removeHandler(handler)
        audit.setLevel(previous_level)

    events = [record.msg for record in handler.records if isinstance(record.msg, dict)]
    assert [event["step"] for event in events] == ["ingest.complete"]
    assert events[0]["document_id"] == "pln-2026"
    assert events[0]["details"]["status"] == "success"
    assert "total" in events[0]["details"]["stats"]


@pytest.mark.parametrize(
    ("document_id", "party", "year", "title"),
    [
        ("pln-2026", "PLN", 2026, "Plan de Gobierno PLN 2026"),
        ("frente-amplio", "FRENTE", None, "Plan de Gobierno FRENTE"),
    ],
)
def test_document_id_helpers(document_id: str, party: str, year, title: str) -> None:
    assert party_from_document_id(document_id) == party
    assert year_from_document_id(document_id) == year
    assert default_title(document_id) == title
