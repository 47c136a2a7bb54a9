"""Simple in-memory document store for testing purposes."""
from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Optional, Sequence

from ..providers.base import ChunkRecord, DocumentMetadata, DocumentStore
from ..telemetry import emit_vectorstore_event

LOGGER = logging.getLogger(__name__)

DOCUMENT_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "planingest:documents")


def document_uuid(document_id: str) -> str:
    """Return the stable store id for *document_id*."""

    return str(uuid.uuid5(DOCUMENT_NAMESPACE, document_id))


class InMemoryDocumentStore(DocumentStore):
    """Keep documents and chunk records in dictionaries keyed by id."""

    def __init__(self) -> None:
        self.documents: Dict[str, DocumentMetadata] = {}
        self.records: Dict[str, ChunkRecord] = {}

    async def upsert_document(self, metadata: DocumentMetadata) -> str:
        store_id = document_uuid(metadata.document_id)
        self.documents[store_id] = metadata
        emit_vectorstore_event("vectorstore.upsert_document", collection="documents", count=1)
        return store_id

    async def upsert(self, records: Sequence[ChunkRecord]) -> None:
        for record in records:
            self.records[record.chunk_id] = record
        emit_vectorstore_event("vectorstore.upsert", collection="chunks", count=len(records))

    def get_document(self, document_id: str) -> Optional[DocumentMetadata]:
        return self.documents.get(document_uuid(document_id))

    def records_for(self, document_id: str) -> List[ChunkRecord]:
        matching = [record for record in self.records.values() if record.document_id == document_id]
        return sorted(matching, key=lambda record: record.metadata.get("chunk_index", 0))


__all__ = ["InMemoryDocumentStore", "document_uuid"]
