"""Near-duplicate detection and related-record ranking for character collections."""

from character_dedupe.models import (
    CharacterRecord,
    Confidence,
    DuplicateGroup,
    RecordMatch,
    RelatedMatch,
    ScanProgress,
    SimilarityResult,
)
from character_dedupe.schema import FieldTag, RecordSchema

__all__ = [
    "CharacterRecord",
    "Confidence",
    "DuplicateGroup",
    "FieldTag",
    "RecordMatch",
    "RecordSchema",
    "RelatedMatch",
    "ScanProgress",
    "SimilarityResult",
]
