"""Heuristic quality scoring for chunks."""
from __future__ import annotations

import re
from typing import Iterable

from .models import QualityMetrics

RELEVANT_KEYWORDS = (
    "propone",
    "propuesta",
    "gobierno",
    "política",
    "costa rica",
    "nacional",
    "desarrollo",
    "social",
    "económico",
    "plan",
    "educación",
    "salud",
    "seguridad",
    "empleo",
    "ambiente",
    "infraestructura",
    "derechos",
    "ciudadanos",
    "público",
    "estado",
    "ley",
    "programa",
    "proyecto",
    "objetivo",
    "estrategia",
    "acción",
    "compromiso",
    "reforma",
    "presupuesto",
)

# High-frequency Spanish words; readability counts everything else as meaningful.
READABILITY_STOPWORDS = frozenset(
    """
    el la de que y a en un ser se no haber por con su para como estar tener le lo
    todo pero más hacer o poder decir este ir otro ese si me ya ver porque dar
    cuando él muy sin vez mucho saber qué sobre mi alguno mismo yo también hasta
    año dos querer entre así primero desde grande eso ni
    """.split()
)

_SPECIAL_CHAR_RE = re.compile(r"[^A-Za-z0-9_\sáéíóúñüÁÉÍÓÚÑÜ.,;:¿?¡!()\[\]{}\"'\-]")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

_LENGTH_STEPS = ((50, 0.2), (100, 0.5), (200, 0.8))
_QUALITY_LABELS = ((0.8, "Excellent"), (0.6, "Good"), (0.4, "Fair"), (0.2, "Poor"))


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


class QualityScorer:
    """Score a chunk's usability for retrieval on a 0-1 scale.

    The score combines a length band, a penalty for noise characters, a bonus
    for policy-domain vocabulary and a rough readability estimate. Scoring is
    pure; deciding what to discard is left to :func:`should_keep_chunk`.
    """

    def __init__(self, keywords: Iterable[str] = RELEVANT_KEYWORDS, stopwords: Iterable[str] = READABILITY_STOPWORDS) -> None:
        self.keywords = tuple(keywords)
        self.stopwords = frozenset(stopwords)

    def score(self, text: str) -> QualityMetrics:
        special_char_ratio = self.special_char_ratio(text)
        if not any(char.isalnum() for char in text):
            return QualityMetrics(
                quality_score=0.0,
                length_score=0.0,
                special_char_ratio=special_char_ratio,
                has_keywords=False,
                readability=0.0,
            )

        length_score = self.length_score(text)
        has_keywords = self.has_keywords(text)
        readability = self.readability(text)

        penalty = 1.0 - max(0.0, special_char_ratio - 0.2) * 0.5
        bonus = 1.2 if has_keywords else 1.0
        quality = (0.7 + 0.3 * length_score) * penalty * bonus * (0.7 + 0.3 * readability)
        return QualityMetrics(
            quality_score=_clamp01(quality),
            length_score=length_score,
            special_char_ratio=special_char_ratio,
            has_keywords=has_keywords,
            readability=readability,
        )

    @staticmethod
    def length_score(text: str) -> float:
        length = len(text)
        for limit, value in _LENGTH_STEPS:
            if length < limit:
                return value
        if length <= 1000:
            return 1.0
        if length <= 2000:
            return 0.9
        if length <= 3000:
            return 0.7
        return 0.5

    @staticmethod
    def special_char_ratio(text: str) -> float:
        return len(_SPECIAL_CHAR_RE.findall(text)) / max(len(text), 1)

    def has_keywords(self, text: str) -> bool:
        lowered = text.lower()
        return any(keyword in lowered for keyword in self.keywords)

    def readability(self, text: str) -> float:
        words = text.lower().split()
        if not words:
            return 0.0

        avg_word_length = sum(len(word) for word in words) / len(words)
        meaningful_ratio = sum(1 for word in words if word not in self.stopwords) / len(words)
        sentences = [part for part in _SENTENCE_SPLIT_RE.split(text) if part.strip()]
        avg_sentence_words = len(words) / max(len(sentences), 1)

        score = 1.0
        if avg_word_length < 3:
            score *= 0.7
        if avg_word_length > 12:
            score *= 0.8
        if 0.4 <= meaningful_ratio <= 0.7:
            score *= 1.1
        elif meaningful_ratio < 0.2 or meaningful_ratio > 0.9:
            score *= 0.7
        if avg_sentence_words < 5:
            score *= 0.8
        if avg_sentence_words > 40:
            score *= 0.8
        return _clamp01(score)


def should_keep_chunk(metrics: QualityMetrics, threshold: float = 0.5) -> bool:
    return metrics.quality_score >= threshold


def quality_label(score: float) -> str:
    for floor, label in _QUALITY_LABELS:
        if score >= floor:
            return label
    return "Very Poor"


__all__ = ["READABILITY_STOPWORDS", "QualityScorer", "quality_label", "should_keep_chunk"]
