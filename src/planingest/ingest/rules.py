"""Ordered, versioned text-repair rules for Spanish government-plan PDFs.

Every rule is a pure text-to-text regex transform. Rules run in the order they
appear in :data:`DEFAULT_RULESET`; ``applies_after`` names the earlier rules a
rule relies on, and :class:`RuleSet` refuses to build if a rule is listed
before one of its prerequisites.

Rules are grouped by normalizer stage:

``encoding``
    Unicode composition, mis-decoded UTF-8 sequences, control characters and
    the Latin allow-list.
``ocr``
    Glyph substitutions and missing spaces introduced by PDF text extraction.
``decorative``
    Colour codes, comma debris and stray symbols.
``whitespace``
    Space, line-edge and blank-line normalisation.
"""
from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Sequence, Tuple, Union

Replacement = Union[str, Callable[["re.Match[str]"], str]]
Edit = Tuple[int, int, str]

RULESET_VERSION = "3"

STAGES = ("encoding", "ocr", "decorative", "whitespace")

_LOWER = "a-záéíóúñü"
_UPPER = "A-ZÁÉÍÓÚÑÜ"


@dataclass(frozen=True, slots=True)
class RepairRule:
    name: str
    stage: str
    pattern: "re.Pattern[str]"
    replacement: Replacement
    applies_after: Tuple[str, ...] = ()
    description: str = ""

    def edits(self, text: str) -> List[Edit]:
        """Return the non-overlapping ``(start, end, replacement)`` edits for *text*."""

        found: List[Edit] = []
        for match in self.pattern.finditer(text):
            if callable(self.replacement):
                rendered = self.replacement(match)
            else:
                rendered = match.expand(self.replacement)
            if rendered != match.group(0):
                found.append((match.start(), match.end(), rendered))
        return found

    def apply(self, text: str) -> str:
        return apply_edits(text, self.edits(text))


def apply_edits(text: str, edits: Sequence[Edit]) -> str:
    if not edits:
        return text
    pieces: List[str] = []
    cursor = 0
    for start, end, replacement in edits:
        pieces.append(text[cursor:start])
        pieces.append(replacement)
        cursor = end
    pieces.append(text[cursor:])
    return "".join(pieces)


def shift_positions(positions: Sequence[int], edits: Sequence[Edit]) -> List[int]:
    """Map offsets in the pre-edit text to offsets in the post-edit text.

    *positions* must be sorted ascending. An offset that falls strictly inside
    a replaced span snaps to the end of the replacement, so a page marker
    swallowed by a whitespace repair still points at the text that follows it.
    """

    shifted: List[int] = []
    index = 0
    delta = 0
    for position in positions:
        while index < len(edits) and edits[index][1] <= position:
            start, end, replacement = edits[index]
            delta += len(replacement) - (end - start)
            index += 1
        if index < len(edits) and edits[index][0] < position:
            start, _, replacement = edits[index]
            shifted.append(start + len(replacement) + delta)
        else:
            shifted.append(position + delta)
    return shifted


class RuleSet:
    """An ordered collection of repair rules with validated dependencies."""

    def __init__(self, version: str, rules: Sequence[RepairRule]) -> None:
        self.version = version
        self._rules: Tuple[RepairRule, ...] = tuple(rules)
        seen: Dict[str, RepairRule] = {}
        for rule in self._rules:
            if rule.stage not in STAGES:
                raise ValueError(f"Rule {rule.name!r} has unknown stage {rule.stage!r}")
            if rule.name in seen:
                raise ValueError(f"Duplicate rule name {rule.name!r}")
            for prerequisite in rule.applies_after:
                if prerequisite not in seen:
                    raise ValueError(
                        f"Rule {rule.name!r} must run after {prerequisite!r}, "
                        "which is missing or ordered later"
                    )
            seen[rule.name] = rule
        self._by_name = seen

    def __iter__(self) -> Iterator[RepairRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def get(self, name: str) -> RepairRule:
        return self._by_name[name]

    def for_stage(self, stage: str) -> Tuple[RepairRule, ...]:
        return tuple(rule for rule in self._rules if rule.stage == stage)


def _table_rule(name: str, stage: str, table: Dict[str, str], **kwargs: object) -> RepairRule:
    alternation = "|".join(re.escape(key) for key in sorted(table, key=len, reverse=True))
    return RepairRule(
        name=name,
        stage=stage,
        pattern=re.compile(alternation),
        replacement=lambda match: table[match.group(0)],
        **kwargs,  # type: ignore[arg-type]
    )


# Correctly decoded punctuation that falls outside the Latin allow-list.
TYPOGRAPHIC_TABLE: Dict[str, str] = {
    "“": '"',
    "”": '"',
    "„": '"',
    "‘": "'",
    "’": "'",
    "–": "-",
    "—": "-",
    "…": "...",
    "•": "-",
    "\u00a0": " ",
}

_MOJIBAKE_SOURCES = "áéíóúñüÁÉÍÓÚÑÜ¿¡ºª"


def _build_mojibake_table() -> Dict[str, str]:
    table: Dict[str, str] = {}
    for char in _MOJIBAKE_SOURCES + "".join(TYPOGRAPHIC_TABLE):
        encoded = char.encode("utf-8")
        for codec in ("latin-1", "cp1252"):
            try:
                garbled = encoded.decode(codec)
            except UnicodeDecodeError:
                continue
            table[garbled] = TYPOGRAPHIC_TABLE.get(char, char)
    return table


# UTF-8 bytes that were decoded as Latin-1 or Windows-1252 ("Ã³" for "ó").
MOJIBAKE_TABLE: Dict[str, str] = _build_mojibake_table()

# Policy-domain words that PDF extraction frequently glues to the preceding
# function word ("lademocracia", "lasfamilias").
RUN_TOGETHER_WORDS: Tuple[str, ...] = (
    "agricultura",
    "ambiente",
    "calidad",
    "centro",
    "ciudades",
    "confianza",
    "corrupción",
    "costos",
    "cultura",
    "decisiones",
    "democracia",
    "desarrollo",
    "economía",
    "educación",
    "empleo",
    "empresas",
    "energía",
    "estrategia",
    "familia",
    "familias",
    "infraestructura",
    "iniciativas",
    "innovación",
    "inversión",
    "justicia",
    "modelo",
    "motor",
    "nación",
    "país",
    "persona",
    "personas",
    "población",
    "política",
    "políticas",
    "problema",
    "problemas",
    "producción",
    "pueblo",
    "riesgos",
    "salud",
    "seguridad",
    "servicios",
    "sistema",
    "tecnología",
    "transparencia",
    "turismo",
    "vivienda",
    "vocación",
    "zonas",
)

RUN_TOGETHER_PREFIXES: Tuple[str, ...] = (
    "el",
    "la",
    "los",
    "las",
    "de",
    "del",
    "un",
    "una",
    "que",
    "se",
    "más",
    "este",
    "esta",
    "por",
    "para",
    "sus",
)

# Words that earlier splitting heuristics are known to break apart.
BROKEN_WORD_PAIRS: Tuple[Tuple[str, str], ...] = (
    (r"\bde\s+mocracia", "democracia"),
    (r"\bde\s+se\s+ncantad", "desencantad"),
    (r"\bde\s+sa\s+rrollo", "desarrollo"),
    (r"\bde\s+ci\s+siones", "decisiones"),
    (r"\bfavorde\b", "favor de"),
)

TRUNCATED_ENDINGS: Tuple[str, ...] = (
    "corrupció",
    "descentralizació",
    "educació",
    "innovació",
    "inversió",
    "població",
    "producció",
    "visió",
)


def _compose(match: "re.Match[str]") -> str:
    return unicodedata.normalize("NFC", match.group(0))


def _build_default_rules() -> List[RepairRule]:
    run_together = re.compile(
        r"\b(" + "|".join(RUN_TOGETHER_PREFIXES) + r")(" + "|".join(RUN_TOGETHER_WORDS) + r")\b",
        re.IGNORECASE,
    )
    broken_pairs = {pattern: fixed for pattern, fixed in BROKEN_WORD_PAIRS}
    broken_pattern = re.compile("|".join(f"(?:{pattern})" for pattern in broken_pairs))

    def _join_broken(match: "re.Match[str]") -> str:
        text = match.group(0)
        for pattern, fixed in broken_pairs.items():
            if re.fullmatch(pattern, text):
                return fixed
        return text

    return [
        # -- encoding -------------------------------------------------------
        RepairRule(
            name="encoding.newlines",
            stage="encoding",
            pattern=re.compile(r"\r\n?"),
            replacement="\n",
            description="Normalise Windows and classic Mac line endings.",
        ),
        RepairRule(
            name="encoding.compose",
            stage="encoding",
            pattern=re.compile("[^\u0300-\u036f][\u0300-\u036f]+"),
            replacement=_compose,
            description="Compose base letters with combining accents (NFC).",
        ),
        _table_rule(
            "encoding.mojibake",
            "encoding",
            MOJIBAKE_TABLE,
            applies_after=("encoding.compose",),
            description="Repair double-encoded UTF-8 read as Latin-1 or cp1252.",
        ),
        _table_rule(
            "encoding.typographic",
            "encoding",
            TYPOGRAPHIC_TABLE,
            applies_after=("encoding.mojibake",),
            description="Fold curly quotes, dashes, ellipses and bullets to ASCII.",
        ),
        RepairRule(
            name="encoding.control-chars",
            stage="encoding",
            pattern=re.compile(
                "[\x00-\x08\x0b-\x1f\x7f-\x9f\u00ad\u2000-\u200f\u2028-\u202f\u205f-\u206f\ufeff]+"
            ),
            replacement="",
            applies_after=("encoding.newlines", "encoding.mojibake"),
            description="Strip control and format characters, keeping tabs and newlines.",
        ),
        RepairRule(
            name="encoding.allow-list",
            stage="encoding",
            pattern=re.compile("[^\t\n\x20-\x7e\u00a0-\u024f]+"),
            replacement="",
            applies_after=("encoding.typographic", "encoding.control-chars"),
            description="Drop characters outside ASCII and Latin-1/Extended-A/B.",
        ),
        # -- ocr --------------------------------------------------------------
        RepairRule(
            name="ocr.software-glyph",
            stage="ocr",
            pattern=re.compile(r"\bso[A-Z]ware"),
            replacement="software",
            description="'soRware' is the 'ft' ligature read as a capital letter.",
        ),
        RepairRule(
            name="ocr.colon-ti-vowel",
            stage="ocr",
            pattern=re.compile(r":(?=[aeiouáéíóú])"),
            replacement="ti",
            description="The 'ti' ligature extracted as a colon before a vowel ('par:cipan' style).",
        ),
        RepairRule(
            name="ocr.colon-ti-consonant",
            stage="ocr",
            pattern=re.compile(rf"(?<=[{_LOWER}]):(?=[bcdfgjklmnpqrstvz][{_LOWER}])"),
            replacement="ti",
            applies_after=("ocr.colon-ti-vowel",),
            description="The 'ti' ligature inside a word before a consonant ('perspec:vas').",
        ),
        RepairRule(
            name="ocr.truncated-endings",
            stage="ocr",
            pattern=re.compile(r"\b(" + "|".join(TRUNCATED_ENDINGS) + r")(?=[\s,.;:]|$)", re.IGNORECASE),
            replacement=r"\1n",
            description="Restore the final 'n' dropped after an accented 'ó'.",
        ),
        RepairRule(
            name="ocr.truncated-accented",
            stage="ocr",
            pattern=re.compile(r"\b(ademá|má|paí)(?=[\s,.;:]|$)", re.IGNORECASE),
            replacement=r"\1s",
            description="Restore the final 's' dropped after an accented vowel.",
        ),
        RepairRule(
            name="ocr.case-split",
            stage="ocr",
            pattern=re.compile(rf"(?<=[{_LOWER}]{{2}})(?=[{_UPPER}])"),
            replacement=" ",
            applies_after=("ocr.software-glyph", "ocr.colon-ti-consonant"),
            description="Insert the space lost between a lowercase run and a capital.",
        ),
        RepairRule(
            name="ocr.number-word",
            stage="ocr",
            pattern=re.compile(rf"(?<=\d)(?=[{_UPPER}][{_LOWER}])"),
            replacement=" ",
            description="Insert the space lost between a number and a capitalised word.",
        ),
        RepairRule(
            name="ocr.sentence-period",
            stage="ocr",
            pattern=re.compile(rf"(?<=[{_LOWER}]{{2}})\.(?=[{_UPPER}][{_LOWER}])"),
            replacement=". ",
            description="Insert the space lost after a sentence-final period.",
        ),
        RepairRule(
            name="ocr.run-together",
            stage="ocr",
            pattern=run_together,
            replacement=r"\1 \2",
            applies_after=("ocr.case-split", "ocr.truncated-endings", "ocr.truncated-accented"),
            description="Separate policy-domain words glued to a preceding function word.",
        ),
        RepairRule(
            name="ocr.broken-pairs",
            stage="ocr",
            pattern=broken_pattern,
            replacement=_join_broken,
            applies_after=("ocr.run-together",),
            description="Re-join known words that earlier splitting broke apart.",
        ),
        # -- decorative -------------------------------------------------------
        RepairRule(
            name="decorative.color-codes",
            stage="decorative",
            pattern=re.compile(r"#(?:[0-9A-Fa-f]{6}|[0-9A-Fa-f]{3})\b"),
            replacement="",
            description="Strip hexadecimal colour codes such as #FFD700.",
        ),
        RepairRule(
            name="decorative.comma-runs",
            stage="decorative",
            pattern=re.compile(r",(?:[ \t]*,)+"),
            replacement=",",
            applies_after=("decorative.color-codes",),
            description="Collapse comma lists left behind by removed colour codes.",
        ),
        RepairRule(
            name="decorative.leading-commas",
            stage="decorative",
            pattern=re.compile(r"^[ \t]*,+[ \t]*", re.MULTILINE),
            replacement="",
            applies_after=("decorative.comma-runs",),
            description="Drop commas stranded at the start of a line.",
        ),
        RepairRule(
            name="decorative.symbols-between-words",
            stage="decorative",
            pattern=re.compile(r"(?<=\w)[^\w\s\-.,;:!?¿¡()\"'%/]+(?=\w)"),
            replacement=" ",
            applies_after=("decorative.color-codes",),
            description="Replace symbols wedged between two words with a space.",
        ),
        RepairRule(
            name="decorative.symbols",
            stage="decorative",
            pattern=re.compile(r"[^\w\s\-.,;:!?¿¡()\"'%/]+"),
            replacement="",
            applies_after=("decorative.symbols-between-words",),
            description="Drop remaining symbols outside the Spanish punctuation allow-list.",
        ),
        RepairRule(
            name="decorative.punctuation-between-words",
            stage="decorative",
            pattern=re.compile(r"(?<=\w)[^\w\s]+(?=\w)"),
            replacement=" ",
            description="Punctuation-free variant: replace punctuation between words with a space.",
        ),
        RepairRule(
            name="decorative.punctuation",
            stage="decorative",
            pattern=re.compile(r"[^\w\s]+"),
            replacement="",
            applies_after=("decorative.punctuation-between-words",),
            description="Punctuation-free variant: drop all remaining punctuation.",
        ),
        # -- whitespace -------------------------------------------------------
        RepairRule(
            name="whitespace.horizontal",
            stage="whitespace",
            pattern=re.compile(r"[ \t]{2,}|\t"),
            replacement=" ",
            description="Collapse runs of spaces and tabs.",
        ),
        RepairRule(
            name="whitespace.line-edges",
            stage="whitespace",
            pattern=re.compile(r"^ +| +$", re.MULTILINE),
            replacement="",
            applies_after=("whitespace.horizontal",),
            description="Trim spaces at the start and end of every line.",
        ),
        RepairRule(
            name="whitespace.blank-lines",
            stage="whitespace",
            pattern=re.compile(r"\n{3,}"),
            replacement="\n\n",
            applies_after=("whitespace.line-edges",),
            description="Keep at most one blank line between paragraphs.",
        ),
        RepairRule(
            name="whitespace.trim",
            stage="whitespace",
            pattern=re.compile(r"\A\s+|\s+\Z"),
            replacement="",
            applies_after=("whitespace.blank-lines",),
            description="Trim the document.",
        ),
    ]


DEFAULT_RULESET = RuleSet(RULESET_VERSION, _build_default_rules())

PUNCTUATION_FREE_RULES = frozenset(
    {"decorative.punctuation-between-words", "decorative.punctuation"}
)
PUNCTUATION_PRESERVING_RULES = frozenset(
    {"decorative.symbols-between-words", "decorative.symbols"}
)


__all__ = [
    "BROKEN_WORD_PAIRS",
    "DEFAULT_RULESET",
    "MOJIBAKE_TABLE",
    "PUNCTUATION_FREE_RULES",
    "PUNCTUATION_PRESERVING_RULES",
    "RULESET_VERSION",
    "RUN_TOGETHER_WORDS",
    "RepairRule",
    "RuleSet",
    "apply_edits",
    "shift_positions",
]
