from __future__ import annotations

import math
from collections.abc import Set

from rapidfuzz.distance import Levenshtein

from character_dedupe.steps.cleanup import MIN_TOKENIZE_LENGTH, tokenize

# Strings whose lengths differ by more than this share of the longer one are
# never near-duplicates, so the edit distance is not computed.
MAX_LENGTH_DIFF_RATIO = 0.5


def round_points(value: float) -> int:
    """Half-up rounding (round() would send 10.5 to 10)."""
    return int(math.floor(value + 0.5))


def string_similarity(left: str, right: str) -> float:
    """Normalized Levenshtein similarity in [0, 1]."""
    a = (left or "").lower().strip()
    b = (right or "").lower().strip()
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    longest = max(len(a), len(b))
    if abs(len(a) - len(b)) > MAX_LENGTH_DIFF_RATIO * longest:
        return 0.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def word_set_similarity(left: Set[str], right: Set[str]) -> float:
    if not left or not right:
        return 0.0
    union = len(left | right)
    return len(left & right) / union if union else 0.0


def content_similarity(left: str, right: str) -> float:
    """Token-set Jaccard for long text, edit-distance similarity for short text."""
    left = left or ""
    right = right or ""
    if len(left) < MIN_TOKENIZE_LENGTH or len(right) < MIN_TOKENIZE_LENGTH:
        return string_similarity(left, right)
    return word_set_similarity(tokenize(left), tokenize(right))
