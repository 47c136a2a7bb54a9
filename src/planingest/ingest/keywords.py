"""Keyword and named-entity extraction for Spanish policy text."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Tuple

from .models import KeywordExtractionResult
from .quality import READABILITY_STOPWORDS

# Terms made only of these words are never ranked as keywords.
KEYWORD_STOPWORDS = READABILITY_STOPWORDS | frozenset(
    """
    antes estos mis contra los sus nos durante tanto menos solo nivel forma
    además donde cual cada todas todos hay fue sido será
    """.split()
)

DOMAIN_KEYWORDS = frozenset(
    """
    educación salud seguridad empleo ambiente infraestructura economía desarrollo
    social política gobierno nacional pública derechos ciudadanos programa
    proyecto plan estrategia objetivo reforma presupuesto inversión corrupción
    transparencia justicia vivienda transporte energía agua tecnología innovación
    cultura deporte turismo agricultura comercio industria emprendimiento
    """.split()
)

_CAP = r"[A-ZÁÉÍÓÚÑ][a-záéíóúñü]+"

ENTITY_PATTERNS: Tuple["re.Pattern[str]", ...] = (
    re.compile(r"\b(?:TSE|CCSS|ICE|RECOPE|AyA|JASEC|ESPH|BCR|BNCR|INS|CONAVI|MOPT|MEP|MICITT|MEIC)\b"),
    re.compile(r"\b(?:San José|Alajuela|Cartago|Heredia|Guanacaste|Puntarenas|Limón)\b"),
    re.compile(r"\b(?:Tibás|Moravia|Goicoechea|Desamparados|Escazú|Curridabat|Montes de Oca)\b"),
    re.compile(r"\b(?:Asamblea Legislativa|Poder Ejecutivo|Poder Judicial|Contraloría|Defensoría)\b"),
    re.compile(rf"\bMinisterio del?\s+{_CAP}(?:\s+(?:(?:y|e|de|del|la|las|los)\s+)?{_CAP})*"),
    re.compile(rf"\b{_CAP}\s+(?:de|del|para)\s+{_CAP}(?:\s+(?:(?:y|de|del)\s+)?{_CAP})*"),
)

_WORD_RE = re.compile(r"\w+")


@dataclass(slots=True)
class _TermStats:
    count: int
    first_index: int
    size: int
    capitalized: bool


class KeywordExtractor:
    """Rank 1- to 3-gram keywords and collect named entities from a chunk."""

    def __init__(self, max_ngram: int = 3) -> None:
        self.max_ngram = max_ngram

    def extract(self, text: str, max_keywords: int = 10) -> KeywordExtractionResult:
        return KeywordExtractionResult(
            keywords=tuple(self.extract_keywords(text, max_keywords)),
            entities=self.extract_entities(text),
        )

    def extract_keywords(self, text: str, max_keywords: int = 10) -> List[str]:
        originals = _WORD_RE.findall(text)
        words = [word.lower() for word in originals]

        terms: Dict[str, _TermStats] = {}
        for size in range(1, self.max_ngram + 1):
            for index in range(len(words) - size + 1):
                gram = words[index : index + size]
                term = " ".join(gram)
                capitalized = originals[index][0].isupper()
                stats = terms.get(term)
                if stats is None:
                    terms[term] = _TermStats(1, index, size, capitalized)
                else:
                    stats.count += 1
                    stats.capitalized = stats.capitalized or capitalized

        scored: List[Tuple[float, int, int, str]] = []
        for term, stats in terms.items():
            if len(term) < 3:
                continue
            parts = term.split(" ")
            if all(part in KEYWORD_STOPWORDS for part in parts):
                continue
            score = float(stats.count)
            if any(part in DOMAIN_KEYWORDS for part in parts):
                score *= 2.0
            if stats.size == 2:
                score *= 1.5
            elif stats.size == 3:
                score *= 2.0
            if stats.capitalized:
                score *= 1.3
            scored.append((-score, stats.first_index, stats.size, term))

        scored.sort()
        return [term for *_, term in scored[:max_keywords]]

    @staticmethod
    def extract_entities(text: str) -> frozenset[str]:
        entities = set()
        for pattern in ENTITY_PATTERNS:
            for match in pattern.finditer(text):
                entities.add(match.group(0).strip())
        return frozenset(entities)


__all__ = ["DOMAIN_KEYWORDS", "ENTITY_PATTERNS", "KEYWORD_STOPWORDS", "KeywordExtractor"]
