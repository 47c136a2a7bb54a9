"""Interfaces for the collaborators the ingestion pipeline talks to."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from ..ingest.models import RawDocument

__all__ = [
    "ChunkRecord",
    "DocumentMetadata",
    "DocumentStore",
    "EmbeddingProvider",
    "EmbeddingResult",
    "PDFSource",
]


@dataclass(frozen=True, slots=True)
class EmbeddingResult:
    embedding: List[float]
    model: str
    tokens: Optional[int] = None


@dataclass(slots=True)
class DocumentMetadata:
    """Document-level record written before any of its chunks."""

    document_id: str
    title: str
    party_id: str
    year: Optional[int] = None
    source_url: Optional[str] = None
    page_count: int = 0
    file_size: Optional[int] = None
    language: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ChunkRecord:
    """One stored chunk: its text, embedding and flattened annotations."""

    chunk_id: str
    document_id: str
    document_uuid: Optional[str]
    content: str
    embedding: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


class EmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def get_max_input_length(self) -> int:
        """Return the largest input, in tokens, the provider accepts."""

    @abstractmethod
    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Embed a single text."""

    async def generate_embeddings(self, texts: Sequence[str]) -> List[EmbeddingResult]:
        return [await self.generate_embedding(text) for text in texts]


class DocumentStore(ABC):
    """Abstract interface for the document/chunk store."""

    @abstractmethod
    async def upsert_document(self, metadata: DocumentMetadata) -> str:
        """Create or update a document record and return its store id."""

    @abstractmethod
    async def upsert(self, records: Sequence[ChunkRecord]) -> None:
        """Create or update chunk records."""


class PDFSource(ABC):
    """Abstract interface for turning a PDF on disk into raw text."""

    @abstractmethod
    def validate(self, path: str | Path) -> bool:
        """Return whether *path* looks like a readable PDF."""

    @abstractmethod
    def extract(self, path: str | Path, document_id: Optional[str] = None) -> RawDocument:
        """Extract the document's text with page markers."""
