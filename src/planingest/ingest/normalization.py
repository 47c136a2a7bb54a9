"""Text normalisation for extracted government-plan PDFs."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .models import CleaningResult, PageMarker
from .rules import (
    DEFAULT_RULESET,
    PUNCTUATION_FREE_RULES,
    PUNCTUATION_PRESERVING_RULES,
    Edit,
    RepairRule,
    RuleSet,
    apply_edits,
    shift_positions,
)

LOGGER = logging.getLogger(__name__)

_PAGE_MARKER_RE = re.compile(r"--\s*(\d+)\s+of\s+(\d+)\s*--", re.IGNORECASE)
_LINE_RE = re.compile(r"[^\n]*\n?")

MIN_LINE_LENGTH = 3
MIN_LINE_LETTER_RATIO = 0.3
MIN_SINGLE_CHAR_TOKENS = 3
MAX_REPAIR_PASSES = 8


@dataclass(frozen=True, slots=True)
class NormalizationOptions:
    extract_page_markers: bool = True
    fix_encoding: bool = True
    fix_ocr_errors: bool = True
    remove_special_chars: bool = True
    preserve_punctuation: bool = True
    normalize_whitespace: bool = True


class _TrackedText:
    """Text under repair together with offsets that must follow every edit."""

    __slots__ = ("text", "positions")

    def __init__(self, text: str, positions: Sequence[int] = ()) -> None:
        self.text = text
        self.positions: List[int] = list(positions)

    def apply(self, edits: Sequence[Edit]) -> int:
        """Apply *edits* and return the number of characters they removed."""

        if not edits:
            return 0
        removed = sum(end - start for start, end, _ in edits)
        self.text = apply_edits(self.text, edits)
        if self.positions:
            self.positions = shift_positions(self.positions, edits)
        return removed

    def apply_rule(self, rule: RepairRule) -> int:
        return self.apply(rule.edits(self.text))


def _is_noise_line(line: str) -> bool:
    stripped = line.strip()
    if not stripped:
        return False
    if len(stripped) < MIN_LINE_LENGTH:
        return True
    letters = sum(1 for char in stripped if char.isalpha())
    if letters / len(stripped) < MIN_LINE_LETTER_RATIO:
        return True
    tokens = stripped.split()
    return len(tokens) >= MIN_SINGLE_CHAR_TOKENS and all(len(token) == 1 for token in tokens)


def _noise_line_edits(text: str) -> List[Edit]:
    edits: List[Edit] = []
    for match in _LINE_RE.finditer(text):
        if match.start() == match.end():
            continue
        if _is_noise_line(match.group(0)):
            edits.append((match.start(), match.end(), ""))
    return edits


class TextNormalizer:
    """Repair encoding and OCR damage and recover the page-marker index."""

    def __init__(
        self,
        options: Optional[NormalizationOptions] = None,
        rules: RuleSet = DEFAULT_RULESET,
    ) -> None:
        self.options = options or NormalizationOptions()
        self.rules = rules

    def normalize(self, raw_text: str) -> CleaningResult:
        """Repair *raw_text* in passes until a pass leaves it unchanged."""

        LOGGER.info("Cleaning text (%s characters)", len(raw_text))

        tracked = _TrackedText(raw_text)
        pages: List[tuple[int, int]] = []
        for repair_pass in range(1, MAX_REPAIR_PASSES + 1):
            before = tracked.text
            self._repair(tracked, pages)
            if tracked.text == before:
                break
        else:
            LOGGER.warning("Text still changing after %s repair passes", MAX_REPAIR_PASSES)

        cleaned = tracked.text
        length = len(cleaned)
        markers = tuple(
            PageMarker(page_number=page, total_pages=total, position=min(max(position, 0), length))
            for (page, total), position in zip(pages, tracked.positions)
        )
        LOGGER.info(
            "Text cleaned (%s characters, %s removed, %s page markers extracted, %s passes)",
            length,
            len(raw_text) - length,
            len(markers),
            repair_pass,
        )
        return CleaningResult(cleaned_text=cleaned, page_markers=markers)

    def _repair(self, tracked: _TrackedText, pages: List[tuple[int, int]]) -> None:
        """Run every enabled stage once over *tracked*."""

        options = self.options
        if options.extract_page_markers:
            self._strip_page_markers(tracked, pages)

        if options.fix_encoding:
            for rule in self.rules.for_stage("encoding"):
                removed = tracked.apply_rule(rule)
                if rule.name == "encoding.allow-list" and removed:
                    LOGGER.debug("Stripped %s characters outside the Latin allow-list", removed)

        if options.fix_ocr_errors:
            for rule in self.rules.for_stage("ocr"):
                tracked.apply_rule(rule)

        if options.remove_special_chars:
            skipped = PUNCTUATION_FREE_RULES if options.preserve_punctuation else PUNCTUATION_PRESERVING_RULES
            for rule in self.rules.for_stage("decorative"):
                if rule.name not in skipped:
                    tracked.apply_rule(rule)
            dropped = tracked.apply(_noise_line_edits(tracked.text))
            if dropped:
                LOGGER.debug("Dropped %s characters of noise lines", dropped)

        if options.normalize_whitespace:
            for rule in self.rules.for_stage("whitespace"):
                tracked.apply_rule(rule)

    def clean(self, raw_text: str) -> str:
        return self.normalize(raw_text).cleaned_text

    @staticmethod
    def _strip_page_markers(tracked: _TrackedText, pages: List[tuple[int, int]]) -> None:
        """Remove marker lines, recording each one's page and post-removal offset.

        Markers found on a later pass (a symbol repair can complete one) are
        merged into ``pages`` in text order.
        """

        edits: List[Edit] = []
        found: List[tuple[int, tuple[int, int]]] = []
        removed = 0
        for match in _PAGE_MARKER_RE.finditer(tracked.text):
            found.append((match.start() - removed, (int(match.group(1)), int(match.group(2)))))
            removed += match.end() - match.start()
            edits.append((match.start(), match.end(), ""))
        if not edits:
            return
        tracked.apply(edits)
        merged = sorted(
            list(zip(tracked.positions, pages)) + found,
            key=lambda item: item[0],
        )
        tracked.positions = [position for position, _ in merged]
        pages[:] = [page for _, page in merged]


def normalize(raw_text: str, options: Optional[NormalizationOptions] = None) -> CleaningResult:
    """Clean *raw_text* with the default rule set."""

    return TextNormalizer(options).normalize(raw_text)


def cleaning_stats(original: str, cleaned: str) -> Dict[str, float]:
    original_length = len(original)
    cleaned_length = len(cleaned)
    removed = original_length - cleaned_length
    reduction = (removed / original_length * 100.0) if original_length else 0.0
    return {
        "original_length": original_length,
        "cleaned_length": cleaned_length,
        "removed_chars": removed,
        "reduction_percent": round(reduction, 2),
    }


__all__ = ["NormalizationOptions", "TextNormalizer", "cleaning_stats", "normalize"]
