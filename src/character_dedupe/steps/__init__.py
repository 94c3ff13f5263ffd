from character_dedupe.steps.cleanup import NormalizedRecord, RecordNormalizer, normalize_name, tokenize
from character_dedupe.steps.clustering import DuplicateClusterer, ScanCache, ScanCancelled
from character_dedupe.steps.related import (
    CreatorSignal,
    KeywordSignal,
    RelatedOptions,
    RelatedRanker,
    TagSignal,
)
from character_dedupe.steps.scoring import DEFAULT_WEIGHTS, PairwiseScorer, ScoringWeights
from character_dedupe.steps.similarity import (
    content_similarity,
    round_points,
    string_similarity,
    word_set_similarity,
)
from character_dedupe.steps.tags import TagFrequencyCache, TagFrequencyTable, tag_frequencies, tag_weight

__all__ = [
    "CreatorSignal",
    "DEFAULT_WEIGHTS",
    "DuplicateClusterer",
    "KeywordSignal",
    "NormalizedRecord",
    "PairwiseScorer",
    "RecordNormalizer",
    "RelatedOptions",
    "RelatedRanker",
    "ScanCache",
    "ScanCancelled",
    "ScoringWeights",
    "TagFrequencyCache",
    "TagFrequencyTable",
    "TagSignal",
    "content_similarity",
    "normalize_name",
    "round_points",
    "string_similarity",
    "tag_frequencies",
    "tag_weight",
    "tokenize",
    "word_set_similarity",
]
