"""Token counting backed by tiktoken."""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import tiktoken

LOGGER = logging.getLogger(__name__)


class Tokenizer:
    """Owned wrapper around a tiktoken encoding.

    The encoding is loaded once at construction and released by :meth:`close`
    (or on context-manager exit). Any use after closing raises ``RuntimeError``.
    """

    def __init__(self, encoding_name: str = "cl100k_base") -> None:
        self.encoding_name = encoding_name
        self._encoding: Optional[tiktoken.Encoding] = tiktoken.get_encoding(encoding_name)
        LOGGER.debug("Loaded tokenizer encoding %s", encoding_name)

    def __enter__(self) -> "Tokenizer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._encoding is None

    def _require(self) -> tiktoken.Encoding:
        if self._encoding is None:
            raise RuntimeError(f"Tokenizer {self.encoding_name!r} has been closed")
        return self._encoding

    def encode(self, text: str) -> List[int]:
        return self._require().encode(text, disallowed_special=())

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self.encode(text))

    def decode(self, tokens: List[int]) -> str:
        return self._require().decode(tokens)

    def token_offsets(self, text: str) -> Tuple[List[int], List[int]]:
        """Return the tokens of *text* and the character offset each one starts at."""

        encoding = self._require()
        tokens = encoding.encode(text, disallowed_special=())
        _, offsets = encoding.decode_with_offsets(tokens)
        return tokens, offsets

    def close(self) -> None:
        if self._encoding is not None:
            LOGGER.debug("Releasing tokenizer encoding %s", self.encoding_name)
        self._encoding = None


__all__ = ["Tokenizer"]
