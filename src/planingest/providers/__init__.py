"""Embedding providers and collaborator interfaces."""

from __future__ import annotations

from functools import lru_cache

from ..config import get_settings
from .base import (
    ChunkRecord,
    DocumentMetadata,
    DocumentStore,
    EmbeddingProvider,
    EmbeddingResult,
    PDFSource,
)
from .mock_embedding import MockEmbeddingProvider


@lru_cache()
def get_embedding_provider() -> EmbeddingProvider:
    """Return the embedding provider selected by ``EMBEDDING_PROVIDER``."""

    settings = get_settings()
    backend = settings.embedding_provider

    if backend == "mock":
        return MockEmbeddingProvider(max_input_length=settings.embedding_max_tokens)

    if backend in {"sentence-transformers", "sentence_transformers"}:
        from .sentence_transformer import SentenceTransformerProvider

        return SentenceTransformerProvider(
            settings.embedding_model_path,
            device=settings.embedding_device,
            max_input_length=settings.embedding_max_tokens,
        )

    raise ValueError(f"Unsupported EMBEDDING_PROVIDER backend: {backend!r}")


def reset_embedding_provider_cache() -> None:
    """Clear the cached embedding provider (primarily for testing)."""

    get_embedding_provider.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "ChunkRecord",
    "DocumentMetadata",
    "DocumentStore",
    "EmbeddingProvider",
    "EmbeddingResult",
    "MockEmbeddingProvider",
    "PDFSource",
    "get_embedding_provider",
    "reset_embedding_provider_cache",
]
