from __future__ import annotations

from dataclasses import dataclass

from character_dedupe.models import CharacterRecord, Confidence, SimilarityResult
from character_dedupe.schema import TEXT_FIELDS, FieldTag
from character_dedupe.steps.cleanup import NormalizedRecord, RecordNormalizer
from character_dedupe.steps.similarity import (
    round_points,
    string_similarity,
    word_set_similarity,
)

DEFAULT_MIN_SCORE = 35
MAX_MATCH_REASONS = 3
SOURCE_MATCH_SCORE = 100

_FIELD_LABELS = {
    FieldTag.DESCRIPTION: "Description",
    FieldTag.FIRST_MESSAGE: "First message",
    FieldTag.PERSONALITY: "Personality",
    FieldTag.SCENARIO: "Scenario",
}


@dataclass(frozen=True)
class ScoringWeights:
    """Hand-tuned points, floors and tier thresholds for pairwise scoring."""

    name_exact: int = 25
    name_variant: int = 20
    name_fuzzy: int = 15
    creator: int = 20
    description: int = 20
    first_message: int = 15
    personality: int = 10
    scenario: int = 5

    name_fuzzy_floor: float = 0.70
    name_fuzzy_reason: float = 0.85
    min_name_length: int = 2
    content_floor: float = 0.30
    content_reason: float = 0.70
    personality_reason: float = 0.80

    high_score: int = 60
    medium_score: int = 40

    def content_weight(self, tag: FieldTag) -> int:
        return getattr(self, tag.value)

    def reason_floor(self, tag: FieldTag) -> float:
        if tag == FieldTag.PERSONALITY:
            return self.personality_reason
        return self.content_reason


DEFAULT_WEIGHTS = ScoringWeights()


class PairwiseScorer:
    """Scores a record pair from fixed per-field weights.

    Names act as a gate: a pair with no name points scores zero without the
    content fields being compared. Pass `require_name_match=False` to score
    content regardless.
    """

    def __init__(
        self,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
        min_score: int = DEFAULT_MIN_SCORE,
        require_name_match: bool = True,
        normalizer: RecordNormalizer | None = None,
    ) -> None:
        if min_score < 0:
            raise ValueError(f"min_score must be >= 0, got {min_score}")
        self.weights = weights
        self.min_score = min_score
        self.require_name_match = require_name_match
        self.normalizer = normalizer or RecordNormalizer()

    def with_min_score(self, min_score: int) -> "PairwiseScorer":
        if min_score == self.min_score:
            return self
        return PairwiseScorer(
            weights=self.weights,
            min_score=min_score,
            require_name_match=self.require_name_match,
            normalizer=self.normalizer,
        )

    def confidence_for(self, score: int) -> Confidence:
        if score < self.min_score:
            return Confidence.NONE
        if score >= self.weights.high_score:
            return Confidence.HIGH
        if score >= self.weights.medium_score:
            return Confidence.MEDIUM
        return Confidence.LOW

    def score_records(self, left: CharacterRecord, right: CharacterRecord) -> SimilarityResult:
        return self.score(self.normalizer.normalize(left), self.normalizer.normalize(right))

    def score(self, left: NormalizedRecord, right: NormalizedRecord) -> SimilarityResult:
        w = self.weights
        breakdown: dict[str, int] = {}
        reasons: list[str] = []

        if left.name_lower and left.name_lower == right.name_lower:
            breakdown["name"] = w.name_exact
            reasons.append("Exact name match")
        elif (
            len(left.name_normalized) > w.min_name_length
            and left.name_normalized == right.name_normalized
        ):
            breakdown["name"] = w.name_variant
            reasons.append("Name variant match")
        elif len(left.name_normalized) > w.min_name_length and len(right.name_normalized) > w.min_name_length:
            similarity = string_similarity(left.name_normalized, right.name_normalized)
            if similarity >= w.name_fuzzy_floor:
                breakdown["name"] = round_points(similarity * w.name_fuzzy)
                if similarity >= w.name_fuzzy_reason:
                    reasons.append(f"Similar name ({_percent(similarity)}%)")

        if self.require_name_match and not breakdown.get("name"):
            return SimilarityResult()

        if left.creator_lower and left.creator_lower == right.creator_lower:
            breakdown["creator"] = w.creator
            reasons.append(f"Same creator ({left.creator_lower})")

        for tag in TEXT_FIELDS:
            similarity = _field_similarity(left, right, tag)
            if similarity < w.content_floor:
                continue
            breakdown[tag.value] = round_points(similarity * w.content_weight(tag))
            if similarity >= w.reason_floor(tag):
                reasons.append(f"{_FIELD_LABELS[tag]} {_percent(similarity)}% similar")

        score = sum(breakdown.values())
        return SimilarityResult(
            score=score,
            breakdown=breakdown,
            confidence=self.confidence_for(score),
            match_reasons=tuple(reasons[:MAX_MATCH_REASONS]),
        )

    def source_match(self, candidate: NormalizedRecord, existing: NormalizedRecord) -> SimilarityResult | None:
        """Certainty shortcut: the candidate came from the same external source path."""
        if not candidate.source or not existing.source:
            return None
        if candidate.source != existing.source and candidate.source not in existing.source:
            return None
        return SimilarityResult(
            score=SOURCE_MATCH_SCORE,
            breakdown={"source": SOURCE_MATCH_SCORE},
            confidence=Confidence.HIGH,
            match_reasons=(f"Same source ({candidate.source})",),
        )


def _field_similarity(left: NormalizedRecord, right: NormalizedRecord, tag: FieldTag) -> float:
    left_words = left.word_sets.get(tag)
    right_words = right.word_sets.get(tag)
    if left_words is not None and right_words is not None:
        return word_set_similarity(left_words, right_words)
    return string_similarity(left.text(tag), right.text(tag))


def _percent(similarity: float) -> int:
    return round_points(similarity * 100)

