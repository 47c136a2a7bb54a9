"""Chroma-backed document store."""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

import chromadb

from ..errors import DownstreamUnavailableError
from ..providers.base import ChunkRecord, DocumentMetadata, DocumentStore
from ..telemetry import emit_vectorstore_event
from .memory_store import document_uuid

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from chromadb.api import ClientAPI
    from chromadb.api.models.Collection import Collection

LOGGER = logging.getLogger(__name__)

DEFAULT_COLLECTION_NAME = "plan_chunks"
DEFAULT_DISTANCE_METRIC = "cosine"

_SCALAR_TYPES = (str, int, float, bool)


def flatten_metadata(metadata: Mapping[str, Any]) -> Dict[str, Any]:
    """Reduce metadata to the scalar values Chroma accepts.

    ``None`` values are dropped, sequences are joined with ``", "`` and nested
    mappings are flattened with ``_``-joined keys.
    """

    flat: Dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, _SCALAR_TYPES):
            flat[key] = value
        elif isinstance(value, Mapping):
            for inner_key, inner_value in flatten_metadata(value).items():
                flat[f"{key}_{inner_key}"] = inner_value
        elif isinstance(value, (list, tuple, set, frozenset)):
            items = sorted(value) if isinstance(value, (set, frozenset)) else value
            flat[key] = ", ".join(str(item) for item in items)
        else:
            flat[key] = str(value)
    return flat


class ChromaDocumentStore(DocumentStore):
    """Persist chunk embeddings in a Chroma collection.

    Document-level metadata has no embedding of its own, so it is kept in a
    JSON registry next to the Chroma files.
    """

    def __init__(
        self,
        persist_dir: str | Path,
        *,
        collection_name: str = DEFAULT_COLLECTION_NAME,
        distance_metric: str = DEFAULT_DISTANCE_METRIC,
        client: Optional["ClientAPI"] = None,
    ) -> None:
        self.persist_dir = Path(persist_dir)
        self.persist_dir.mkdir(parents=True, exist_ok=True)
        self.collection_name = collection_name
        self._registry_path = self.persist_dir / "documents.json"
        try:
            self._client = client or chromadb.PersistentClient(path=str(self.persist_dir))
            self._collection: "Collection" = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": distance_metric},
            )
        except Exception as exc:  # pragma: no cover - depends on chromadb runtime
            raise DownstreamUnavailableError(
                "Failed to initialise Chroma persistent client",
                collaborator="document_store",
                cause=exc,
            ) from exc

    def _load_registry(self) -> Dict[str, Dict[str, Any]]:
        if not self._registry_path.exists():
            return {}
        return json.loads(self._registry_path.read_text(encoding="utf-8"))

    def _save_document(self, store_id: str, metadata: DocumentMetadata) -> None:
        registry = self._load_registry()
        registry[store_id] = asdict(metadata)
        tmp_path = self._registry_path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(registry, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self._registry_path)

    def _upsert_records(self, records: Sequence[ChunkRecord]) -> None:
        ids: List[str] = []
        embeddings: List[List[float]] = []
        documents: List[str] = []
        metadatas: List[Dict[str, Any]] = []
        for record in records:
            ids.append(record.chunk_id)
            embeddings.append([float(value) for value in record.embedding])
            documents.append(record.content)
            metadata = dict(record.metadata)
            metadata["document_id"] = record.document_id
            metadata["document_uuid"] = record.document_uuid
            metadatas.append(flatten_metadata(metadata))
        self._collection.upsert(ids=ids, embeddings=embeddings, documents=documents, metadatas=metadatas)

    async def upsert_document(self, metadata: DocumentMetadata) -> str:
        store_id = document_uuid(metadata.document_id)
        try:
            await asyncio.to_thread(self._save_document, store_id, metadata)
        except OSError as exc:
            emit_vectorstore_event("vectorstore.upsert_document", collection="documents", count=1, error=exc)
            raise DownstreamUnavailableError(
                "Failed to record document metadata", collaborator="document_store", cause=exc
            ) from exc
        emit_vectorstore_event("vectorstore.upsert_document", collection="documents", count=1)
        return store_id

    async def upsert(self, records: Sequence[ChunkRecord]) -> None:
        if not records:
            return
        try:
            await asyncio.to_thread(self._upsert_records, records)
        except Exception as exc:
            emit_vectorstore_event(
                "vectorstore.upsert", collection=self.collection_name, count=len(records), error=exc
            )
            raise DownstreamUnavailableError(
                "Failed to upsert chunks into Chroma", collaborator="document_store", cause=exc
            ) from exc
        emit_vectorstore_event("vectorstore.upsert", collection=self.collection_name, count=len(records))


__all__ = ["ChromaDocumentStore", "flatten_metadata"]
