"""Embedding provider backed by Sentence Transformers."""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import List, Optional, Sequence

from sentence_transformers import SentenceTransformer

from ..errors import DownstreamUnavailableError
from ..telemetry import emit_embeddings_event
from .base import EmbeddingProvider, EmbeddingResult

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"


class SentenceTransformerProvider(EmbeddingProvider):
    """Load a SentenceTransformer model on first use and embed off the event loop."""

    def __init__(
        self,
        model_name_or_path: str = DEFAULT_MODEL_NAME,
        *,
        device: str | None = None,
        max_input_length: int = 8192,
    ) -> None:
        self.model_name = model_name_or_path
        self.device = device
        self.max_input_length = max_input_length
        self._model: Optional[SentenceTransformer] = None
        self._lock = threading.Lock()

    def get_max_input_length(self) -> int:
        return self.max_input_length

    def _load(self) -> SentenceTransformer:
        with self._lock:
            if self._model is None:
                LOGGER.info("Loading sentence-transformers model %s", self.model_name)
                try:
                    self._model = SentenceTransformer(self.model_name, device=self.device)
                except Exception as exc:
                    raise DownstreamUnavailableError(
                        f"Failed to initialise sentence-transformers model {self.model_name!r}",
                        collaborator="embedding",
                        cause=exc,
                    ) from exc
            return self._model

    def _encode(self, texts: Sequence[str]) -> List[List[float]]:
        model = self._load()
        embeddings = model.encode(
            list(texts),
            convert_to_numpy=True,
            show_progress_bar=False,
            normalize_embeddings=False,
        )
        return embeddings.tolist()

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        results = await self.generate_embeddings([text])
        return results[0]

    async def generate_embeddings(self, texts: Sequence[str]) -> List[EmbeddingResult]:
        if not texts:
            return []
        started = time.perf_counter()
        try:
            vectors = await asyncio.to_thread(self._encode, texts)
        except DownstreamUnavailableError as error:
            emit_embeddings_event(
                model=self.model_name,
                count=len(texts),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                errors=[str(error)],
            )
            raise
        except Exception as exc:
            emit_embeddings_event(
                model=self.model_name,
                count=len(texts),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                errors=[str(exc)],
            )
            raise DownstreamUnavailableError(
                "sentence-transformers encoding failed", collaborator="embedding", cause=exc
            ) from exc

        emit_embeddings_event(
            model=self.model_name,
            count=len(texts),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return [EmbeddingResult(embedding=vector, model=self.model_name) for vector in vectors]


__all__ = ["DEFAULT_MODEL_NAME", "SentenceTransformerProvider"]
