from __future__ import annotations

from typing import Any

from character_dedupe.models import CharacterRecord
from character_dedupe.schema import FieldTag, RecordSchema

# Character card layouts: v2 keeps the payload under "data", v1 is flat.
CARD_SCHEMA = RecordSchema.from_mapping(
    {
        FieldTag.ID: ["avatar", "id", "file_name"],
        FieldTag.NAME: ["data.name", "name", "char_name"],
        FieldTag.CREATOR: ["data.creator", "creator"],
        FieldTag.DESCRIPTION: ["data.description", "description"],
        FieldTag.PERSONALITY: ["data.personality", "personality"],
        FieldTag.SCENARIO: ["data.scenario", "scenario"],
        FieldTag.FIRST_MESSAGE: ["data.first_mes", "first_mes", "first_message"],
        FieldTag.TAGS: ["data.tags", "tags", "topics"],
        FieldTag.CREATED_AT: ["create_date", "created_at", "createdAt"],
        FieldTag.SOURCE: [
            "data.extensions.chub.full_path",
            "data.extensions.chub.fullPath",
            "fullPath",
            "full_path",
            "source",
        ],
    }
)


def record_to_card(record: CharacterRecord) -> dict[str, Any]:
    """Serialize a record as a v2 character card (inverse of CARD_SCHEMA)."""
    extensions: dict[str, Any] = {}
    if record.source:
        extensions["chub"] = {"full_path": record.source}
    card: dict[str, Any] = {
        "avatar": record.id,
        "spec": "chara_card_v2",
        "data": {
            "name": record.name,
            "creator": record.creator,
            "description": record.description,
            "personality": record.personality,
            "scenario": record.scenario,
            "first_mes": record.first_message,
            "tags": sorted(record.tags),
            "extensions": extensions,
        },
    }
    if record.created_at is not None:
        card["create_date"] = record.created_at.isoformat()
    return card
