from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum

from character_dedupe.models import CharacterRecord


class FieldTag(StrEnum):
    CREATED_AT = "created_at"
    CREATOR = "creator"
    DESCRIPTION = "description"
    FIRST_MESSAGE = "first_message"
    ID = "id"
    NAME = "name"
    PERSONALITY = "personality"
    SCENARIO = "scenario"
    SOURCE = "source"
    TAGS = "tags"


# Long free-text fields compared by content similarity, in scoring order.
TEXT_FIELDS = (
    FieldTag.DESCRIPTION,
    FieldTag.FIRST_MESSAGE,
    FieldTag.PERSONALITY,
    FieldTag.SCENARIO,
)


@dataclass(frozen=True)
class RecordSchema:
    """Maps dotted key paths in raw card payloads to stable record fields.

    The first path that resolves to a non-empty value wins, so a schema can
    list the nested v2 location before the flat v1 fallback.
    """

    tag_to_paths: Mapping[FieldTag, tuple[str, ...]]

    @classmethod
    def from_mapping(cls, mapping: Mapping[FieldTag, Sequence[str]]) -> "RecordSchema":
        frozen = {tag: tuple(paths) for tag, paths in mapping.items()}
        return cls(tag_to_paths=frozen)

    def paths_for(self, tag: FieldTag) -> tuple[str, ...]:
        return self.tag_to_paths.get(tag, ())

    def first_value(self, payload: Mapping[str, object], tag: FieldTag) -> object | None:
        for path in self.paths_for(tag):
            value = _resolve(payload, path)
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            return value
        return None

    def text_for(self, payload: Mapping[str, object], tag: FieldTag) -> str:
        return as_text(self.first_value(payload, tag))

    def build_record(self, payload: Mapping[str, object]) -> CharacterRecord:
        """Coerce a raw payload into a record; malformed fields become empty."""
        return CharacterRecord(
            id=self.text_for(payload, FieldTag.ID).strip(),
            name=self.text_for(payload, FieldTag.NAME),
            creator=self.text_for(payload, FieldTag.CREATOR),
            description=self.text_for(payload, FieldTag.DESCRIPTION),
            personality=self.text_for(payload, FieldTag.PERSONALITY),
            scenario=self.text_for(payload, FieldTag.SCENARIO),
            first_message=self.text_for(payload, FieldTag.FIRST_MESSAGE),
            tags=_as_tags(self.first_value(payload, FieldTag.TAGS)),
            created_at=_as_datetime(self.first_value(payload, FieldTag.CREATED_AT)),
            source=self.text_for(payload, FieldTag.SOURCE).strip(),
        )


def _resolve(payload: Mapping[str, object], path: str) -> object | None:
    current: object = payload
    for key in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def as_text(value: object | None) -> str:
    """Text for a loosely typed field; anything unusable becomes ""."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def _as_tags(value: object | None) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        items: list[object] = list(value.split(","))
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
    else:
        return frozenset()
    tags = {as_text(item).strip() for item in items}
    tags.discard("")
    return frozenset(tags)


def _as_datetime(value: object | None) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # Epoch values above ~1e11 are milliseconds.
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
        try:
            return _as_datetime(float(text))
        except ValueError:
            return None
    return None
