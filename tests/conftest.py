"""Shared fixtures and lightweight fakes for the ingestion tests."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

import pytest

from planingest.config import Settings, reset_settings_cache
from planingest.ingest.extractors import page_marker
from planingest.ingest.models import RawDocument
from planingest.ingest.tokenizer import Tokenizer
from planingest.logging_config import AUDIT_LOGGER_NAME
from planingest.providers import reset_embedding_provider_cache
from planingest.providers.base import (
    ChunkRecord,
    DocumentMetadata,
    DocumentStore,
    EmbeddingProvider,
    EmbeddingResult,
    PDFSource,
)
from planingest.vectorstore import reset_document_store_cache

PLAN_PAGES = (
    "El gobierno propone una reforma integral de la educación pública.\n\n"
    "La estrategia nacional de salud fortalece la atención primaria en cada cantón. "
    "El programa amplía los horarios de los EBAIS y reduce las listas de espera.",
    "La seguridad ciudadana requiere más presencia policial en San José y Limón.\n\n"
    "El Ministerio de Seguridad Pública coordinará con las municipalidades. "
    "El presupuesto del plan prioriza la infraestructura vial y el empleo joven.",
)


def plan_text(pages: Sequence[str] = PLAN_PAGES) -> str:
    total = len(pages)
    return "\n\n".join(
        f"{page_marker(index, total)}\n{text}" for index, text in enumerate(pages, start=1)
    )


@dataclass
class FakePDFSource(PDFSource):
    text: str = field(default_factory=plan_text)
    page_count: int = len(PLAN_PAGES)
    title: Optional[str] = None
    extracted: List[str] = field(default_factory=list)

    def validate(self, path) -> bool:
        return True

    def extract(self, path, document_id=None) -> RawDocument:
        self.extracted.append(str(path))
        metadata = {"file_size": len(self.text), "ocr_performed": False}
        if self.title:
            metadata["title"] = self.title
        return RawDocument(
            document_id=document_id or Path(path).stem,
            text=self.text,
            page_count=self.page_count,
            metadata=metadata,
        )


@dataclass
class FailingEmbeddingProvider(EmbeddingProvider):
    max_input_length: int = 8192
    calls: int = 0

    def get_max_input_length(self) -> int:
        return self.max_input_length

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        self.calls += 1
        raise ConnectionError("embedding service unreachable")


@dataclass
class FailingDocumentStore(DocumentStore):
    documents: List[DocumentMetadata] = field(default_factory=list)

    async def upsert_document(self, metadata: DocumentMetadata) -> str:
        self.documents.append(metadata)
        return "stored-id"

    async def upsert(self, records: Sequence[ChunkRecord]) -> None:
        raise RuntimeError("database is read-only")


@dataclass
class RecordingPacer:
    waits: int = 0

    async def wait(self) -> None:
        self.waits += 1


class ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture(autouse=True)
def _reset_caches() -> Iterator[None]:
    reset_settings_cache()
    reset_embedding_provider_cache()
    reset_document_store_cache()
    yield
    reset_settings_cache()
    reset_embedding_provider_cache()
    reset_document_store_cache()


@pytest.fixture()
def restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    saved = (list(root.handlers), root.level, list(audit.handlers), audit.level, audit.propagate)
    yield
    for handler in audit.handlers:
        if handler not in saved[2]:
            handler.close()
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    audit.handlers[:] = saved[2]
    audit.setLevel(saved[3])
    audit.propagate = saved[4]


@pytest.fixture()
def tokenizer() -> Iterator[Tokenizer]:
    with Tokenizer() as instance:
        yield instance


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        embedding_provider="mock",
        vector_store="memory",
        download_dir=tmp_path / "downloads",
        chroma_persist_dir=tmp_path / "chroma",
        batch_pacing="none",
        download_retry_delay_seconds=0.0,
    )
