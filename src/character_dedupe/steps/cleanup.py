from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from character_dedupe.models import CharacterRecord
from character_dedupe.schema import TEXT_FIELDS, FieldTag

# Shorter fields are compared as whole strings instead of token sets.
MIN_TOKENIZE_LENGTH = 50
MIN_TOKEN_LENGTH = 3

_EDIT_WORDS = r"updated|update|fixed|fix|alt|alternate|copy|new|edited|edit|remake"

_NAME_SUFFIXES = (
    # "(v2)", "[v1.2]", "(2)"
    re.compile(r"\s*[\(\[]\s*v?\d+(?:\.\d+)*\s*[\)\]]$"),
    # " v3", " - v1.2", "-v2"
    re.compile(r"(?:\s+|\s*[-_]\s*)v\d+(?:\.\d+)*$"),
    # "(updated)", "[copy]"
    re.compile(rf"\s*[\(\[]\s*(?:{_EDIT_WORDS})\s*[\)\]]$"),
    # " copy", " - updated"
    re.compile(r"(?:\s+|\s*-\s*)(?:updated|copy|fixed|edited)$"),
)
_WHITESPACE = re.compile(r"\s+")
_WORD = re.compile(r"\w+")


def normalize_name(name: str) -> str:
    """Lowercase and strip re-upload markers so "Aria (v2)" compares as "aria"."""
    value = _WHITESPACE.sub(" ", (name or "").lower()).strip()
    changed = True
    while changed and value:
        changed = False
        for pattern in _NAME_SUFFIXES:
            stripped = pattern.sub("", value).strip()
            if stripped != value:
                value = stripped
                changed = True
    return value


def tokenize(text: str) -> frozenset[str]:
    if not text or len(text) < MIN_TOKENIZE_LENGTH:
        return frozenset()
    return frozenset(word for word in _WORD.findall(text.lower()) if len(word) >= MIN_TOKEN_LENGTH)


@dataclass(frozen=True, slots=True)
class NormalizedRecord:
    """Per-scan derived view of a record; word sets exist only for long fields."""

    id: str
    name_lower: str
    name_normalized: str
    creator_lower: str
    source: str = ""
    texts: dict[FieldTag, str] = field(default_factory=dict)
    word_sets: dict[FieldTag, frozenset[str]] = field(default_factory=dict)

    def text(self, tag: FieldTag) -> str:
        return self.texts.get(tag, "")


class RecordNormalizer:
    """Precomputes normalized names and token sets once per scan.

    Optional per-field transforms run on the raw text first, e.g. to strip
    `{{char}}` placeholders or markup before comparison.
    """

    def __init__(self, tag_transforms: dict[FieldTag, Callable[[str], str]] | None = None) -> None:
        self._tag_transforms = tag_transforms or {}

    def normalize(self, record: CharacterRecord) -> NormalizedRecord:
        name = self._apply(FieldTag.NAME, record.name)
        creator = self._apply(FieldTag.CREATOR, record.creator)

        texts: dict[FieldTag, str] = {}
        word_sets: dict[FieldTag, frozenset[str]] = {}
        for tag in TEXT_FIELDS:
            text = self._apply(tag, getattr(record, tag.value))
            texts[tag] = text
            if len(text) >= MIN_TOKENIZE_LENGTH:
                word_sets[tag] = tokenize(text)

        return NormalizedRecord(
            id=record.id,
            name_lower=name.lower().strip(),
            name_normalized=normalize_name(name),
            creator_lower=creator.lower().strip(),
            source=(record.source or "").strip(),
            texts=texts,
            word_sets=word_sets,
        )

    def clean(self, records: Sequence[CharacterRecord]) -> list[NormalizedRecord]:
        return [self.normalize(record) for record in records]

    def _apply(self, tag: FieldTag, value: object) -> str:
        text = value if isinstance(value, str) else ""
        transform = self._tag_transforms.get(tag)
        if transform is not None:
            text = transform(text)
        return text
