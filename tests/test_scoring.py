import itertools

import pytest

from character_dedupe.models import Confidence
from character_dedupe.steps.cleanup import RecordNormalizer
from character_dedupe.steps.scoring import PairwiseScorer, ScoringWeights
from conftest import EIGHTY_PERCENT_TEXT, FULL_TEXT

_LONG_DESCRIPTION = (
    "A wandering swordswoman who guards the northern pass and trades stories for bread at every inn."
)
_LONG_GREETING = (
    "*She lowers her blade and studies you carefully.* Another traveler on the northern pass this late?"
)


def test_variant_name_same_creator_and_overlapping_text_is_high(make_record) -> None:
    original = make_record(
        "a", "Aria", creator="jdoe", description=FULL_TEXT, first_message="Hello traveler"
    )
    reupload = make_record(
        "b", "Aria (v2)", creator="jdoe", description=EIGHTY_PERCENT_TEXT, first_message="Hello traveler"
    )

    result = PairwiseScorer().score_records(original, reupload)

    assert result.breakdown == {"name": 20, "creator": 20, "description": 16, "first_message": 15}
    assert result.score == 71
    assert result.confidence == Confidence.HIGH
    assert result.match_reasons == ("Name variant match", "Same creator (jdoe)", "Description 80% similar")


def test_variant_name_without_greeting_lands_medium(make_record) -> None:
    original = make_record("a", "Aria", creator="jdoe", description=FULL_TEXT)
    reupload = make_record("b", "Aria (v2)", creator="jdoe", description=EIGHTY_PERCENT_TEXT)

    result = PairwiseScorer().score_records(original, reupload)

    assert result.score == 56
    assert result.confidence == Confidence.MEDIUM


def test_fuzzy_name_only_scores_below_threshold(make_record) -> None:
    # 7 substitutions over 25 characters -> 72% similar
    left = make_record("a", "abcdefghijklmnopqrstuvwxy")
    right = make_record("b", "abcdefghijklmnopqrzzzzzzz")

    result = PairwiseScorer().score_records(left, right)

    assert result.score == 11
    assert result.breakdown == {"name": 11}
    assert result.confidence == Confidence.NONE
    assert result.match_reasons == ()


def test_high_similarity_fuzzy_name_is_listed_as_reason(make_record) -> None:
    left = make_record("a", "Seraphina Nightshade", creator="jdoe")
    right = make_record("b", "Seraphina Nightshode", creator="jdoe")

    result = PairwiseScorer().score_records(left, right)

    assert result.breakdown == {"name": 14, "creator": 20}
    assert result.match_reasons == ("Similar name (95%)", "Same creator (jdoe)")
    assert result.confidence == Confidence.NONE


def test_unrelated_names_short_circuit_before_content(make_record) -> None:
    left = make_record("a", "Aria", creator="jdoe", description=FULL_TEXT)
    right = make_record("b", "Morgana", creator="jdoe", description=FULL_TEXT)

    result = PairwiseScorer().score_records(left, right)

    assert result.score == 0
    assert result.breakdown == {}
    assert result.confidence == Confidence.NONE


def test_name_gate_can_be_disabled(make_record) -> None:
    left = make_record("a", "Aria", creator="jdoe", description=FULL_TEXT)
    right = make_record("b", "Morgana", creator="jdoe", description=FULL_TEXT)

    result = PairwiseScorer(require_name_match=False).score_records(left, right)

    assert result.breakdown == {"creator": 20, "description": 20}
    assert result.confidence == Confidence.MEDIUM


def test_no_match_results_do_not_share_state(make_record) -> None:
    scorer = PairwiseScorer()
    aria = make_record("a", "Aria", creator="jdoe")
    morgana = make_record("b", "Morgana", creator="jdoe")

    first = scorer.score_records(aria, morgana)
    first.breakdown["name"] = 99
    second = scorer.score_records(aria, morgana)

    assert first is not second
    assert second.breakdown == {}
    assert second.score == 0


def test_identical_record_scores_every_populated_weight(make_record) -> None:
    record = make_record(
        "a",
        "Aria",
        creator="jdoe",
        description=_LONG_DESCRIPTION,
        first_message=_LONG_GREETING,
        personality="Patient, wry, protective of strangers.",
        scenario="A snowed-in inn at the top of the pass.",
    )

    result = PairwiseScorer().score_records(record, record)

    assert result.score == 25 + 20 + 20 + 15 + 10 + 5
    assert result.confidence == Confidence.HIGH
    assert len(result.match_reasons) == 3


def test_identical_record_without_creator_or_text(make_record) -> None:
    record = make_record("a", "Aria")

    assert PairwiseScorer().score_records(record, record).score == 25


def test_scores_are_symmetric(make_record) -> None:
    records = [
        make_record("a", "Aria", creator="jdoe", description=FULL_TEXT, first_message="Hello traveler"),
        make_record("b", "Aria (v2)", creator="JDoe", description=EIGHTY_PERCENT_TEXT),
        make_record("c", "Arya", creator="someone", personality="Calm and kind."),
        make_record("d", "aria", scenario="A quiet inn.", first_message="Hello, traveler!"),
        make_record("e", "Morgana", creator="jdoe", description=FULL_TEXT),
    ]
    scorer = PairwiseScorer()

    for left, right in itertools.permutations(records, 2):
        assert scorer.score_records(left, right) == scorer.score_records(right, left)


def test_confidence_is_monotonic_in_score() -> None:
    scorer = PairwiseScorer()
    ranks = [scorer.confidence_for(score).rank for score in range(0, 101)]

    assert ranks == sorted(ranks)
    assert scorer.confidence_for(34) == Confidence.NONE
    assert scorer.confidence_for(35) == Confidence.LOW
    assert scorer.confidence_for(40) == Confidence.MEDIUM
    assert scorer.confidence_for(59) == Confidence.MEDIUM
    assert scorer.confidence_for(60) == Confidence.HIGH


def test_confidence_respects_raised_threshold() -> None:
    scorer = PairwiseScorer(min_score=50)

    assert scorer.confidence_for(45) == Confidence.NONE
    assert scorer.confidence_for(55) == Confidence.MEDIUM


def test_negative_threshold_is_rejected() -> None:
    with pytest.raises(ValueError):
        PairwiseScorer(min_score=-1)


def test_custom_weights_change_points(make_record) -> None:
    weights = ScoringWeights(creator=30)
    left = make_record("a", "Aria", creator="jdoe")
    right = make_record("b", "Aria", creator="jdoe")

    result = PairwiseScorer(weights=weights).score_records(left, right)

    assert result.breakdown == {"name": 25, "creator": 30}
    assert result.confidence == Confidence.MEDIUM


def test_source_match_short_circuits_to_certainty(make_record) -> None:
    normalizer = RecordNormalizer()
    candidate = normalizer.normalize(make_record("", "Completely Different", source="jdoe/aria"))
    existing = normalizer.normalize(make_record("a", "Aria", source="jdoe/aria-4821"))

    result = PairwiseScorer().source_match(candidate, existing)

    assert result is not None
    assert result.score == 100
    assert result.confidence == Confidence.HIGH


def test_source_match_requires_both_sources(make_record) -> None:
    normalizer = RecordNormalizer()
    candidate = normalizer.normalize(make_record("", "Aria"))
    existing = normalizer.normalize(make_record("a", "Aria", source="jdoe/aria"))

    assert PairwiseScorer().source_match(candidate, existing) is None
