from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


@dataclass(frozen=True, slots=True)
class CharacterRecord:
    """Read-only view of a character record as supplied by the repository."""

    id: str
    name: str = ""
    creator: str = ""
    description: str = ""
    personality: str = ""
    scenario: str = ""
    first_message: str = ""
    tags: frozenset[str] = frozenset()
    created_at: datetime | None = None
    source: str = ""


class Confidence(StrEnum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANKS[self]


_CONFIDENCE_RANKS = {
    Confidence.NONE: 0,
    Confidence.LOW: 1,
    Confidence.MEDIUM: 2,
    Confidence.HIGH: 3,
}


@dataclass(frozen=True, slots=True)
class SimilarityResult:
    """Weighted score for a record pair, with per-field points and reasons."""

    score: int = 0
    breakdown: dict[str, int] = field(default_factory=dict)
    confidence: Confidence = Confidence.NONE
    match_reasons: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RecordMatch:
    record: CharacterRecord
    result: SimilarityResult


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    """A reference record and the records presumed to duplicate it."""

    reference: CharacterRecord
    members: tuple[RecordMatch, ...]
    confidence: Confidence

    @property
    def max_score(self) -> int:
        return max((member.result.score for member in self.members), default=0)

    @property
    def record_ids(self) -> list[str]:
        return [self.reference.id, *(member.record.id for member in self.members)]


@dataclass(frozen=True, slots=True)
class RelatedMatch:
    record: CharacterRecord
    score: int
    reasons: tuple[str, ...] = ()
    breakdown: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ScanProgress:
    processed: int
    total: int
    groups_found: int
