"""Deterministic embedding provider for offline runs and tests."""

from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass
from typing import List

from .base import EmbeddingProvider, EmbeddingResult

DEFAULT_DIMENSION = 384


@dataclass
class MockEmbeddingProvider(EmbeddingProvider):
    """Return a pseudo-random vector seeded by the SHA-256 of the text."""

    dimension: int = DEFAULT_DIMENSION
    max_input_length: int = 8192
    model: str = "deterministic-mock"

    def get_max_input_length(self) -> int:
        return self.max_input_length

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        return EmbeddingResult(embedding=self._deterministic_embedding(text), model=self.model)

    def _deterministic_embedding(self, text: str) -> List[float]:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest(), "big")
        rng = random.Random(seed)
        return [rng.uniform(-1.0, 1.0) for _ in range(self.dimension)]


__all__ = ["MockEmbeddingProvider"]
