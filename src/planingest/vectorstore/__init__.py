"""Document stores backed by pluggable backends."""

from __future__ import annotations

from functools import lru_cache

from ..config import get_settings
from ..providers.base import DocumentStore
from .memory_store import InMemoryDocumentStore, document_uuid


@lru_cache()
def get_document_store() -> DocumentStore:
    """Return a lazily initialised document store based on ``VECTOR_STORE``."""

    settings = get_settings()
    backend = settings.vector_store

    if backend in {"memory", "mock"}:
        return InMemoryDocumentStore()

    if backend == "chroma":
        from .chroma_store import ChromaDocumentStore

        return ChromaDocumentStore(settings.chroma_persist_dir)

    raise ValueError(f"Unsupported VECTOR_STORE backend: {backend!r}")


def reset_document_store_cache() -> None:
    """Clear the cached document store (primarily for testing)."""

    get_document_store.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "InMemoryDocumentStore",
    "document_uuid",
    "get_document_store",
    "reset_document_store_cache",
]
