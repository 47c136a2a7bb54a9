"""Guess the language of a cleaned plan so it can be stored as document metadata."""
from __future__ import annotations

import logging
import re
from typing import Optional

from langdetect import DetectorFactory, LangDetectException, detect

LOGGER = logging.getLogger(__name__)
DetectorFactory.seed = 0

_MARKER_LINE = re.compile(r"^-- \d+ of \d+ --$", re.MULTILINE)


class LanguageDetector:
    """Detect the language from a window of the text, ignoring page markers.

    Plans open with a cover and an index, so the window starts ``skip_chars``
    into the text when the document is long enough.
    """

    def __init__(self, sample_chars: int = 5000, skip_chars: int = 2000, expected: str = "es") -> None:
        self.sample_chars = sample_chars
        self.skip_chars = skip_chars
        self.expected = expected

    def sample(self, text: str) -> str:
        body = _MARKER_LINE.sub("", text).strip()
        offset = self.skip_chars if len(body) > self.skip_chars + self.sample_chars else 0
        return body[offset : offset + self.sample_chars]

    def detect(self, text: str) -> Optional[str]:
        window = self.sample(text)
        if not window:
            return None
        try:
            language = detect(window)
        except LangDetectException:
            LOGGER.info("Could not detect a language in %s characters of text", len(window))
            return None
        if self.expected and language != self.expected:
            LOGGER.warning("Detected language %s, expected %s", language, self.expected)
        return language


__all__ = ["LanguageDetector"]
