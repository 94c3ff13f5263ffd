from __future__ import annotations

import logging
import math
import time
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from character_dedupe.models import CharacterRecord
from character_dedupe.steps.similarity import round_points

logger = logging.getLogger(__name__)

TAG_WEIGHT_FLOOR = 2
TAG_RARITY_SCALE = 6
DEFAULT_TAG_CACHE_TTL = 60.0


def normalize_tags(tags: Iterable[str] | None) -> frozenset[str]:
    cleaned = {tag.strip().lower() for tag in tags or () if isinstance(tag, str)}
    cleaned.discard("")
    return frozenset(cleaned)


@dataclass(frozen=True, slots=True)
class TagFrequencyTable:
    """How many records carry each lowercase tag."""

    counts: dict[str, int] = field(default_factory=dict)
    total_records: int = 0

    def count(self, tag: str) -> int:
        return self.counts.get(tag.strip().lower(), 0)


def tag_frequencies(records: Sequence[CharacterRecord]) -> TagFrequencyTable:
    counts: Counter[str] = Counter()
    for record in records:
        counts.update(normalize_tags(record.tags))
    return TagFrequencyTable(counts=dict(counts), total_records=len(records))


def tag_weight(tag: str, frequencies: TagFrequencyTable) -> int:
    """Rarer tags weigh more; a tag on every record weighs the floor of 2."""
    count = frequencies.count(tag)
    if count <= 0 or frequencies.total_records <= 0:
        return TAG_WEIGHT_FLOOR
    frequency = min(1.0, count / frequencies.total_records)
    return round_points(TAG_WEIGHT_FLOOR + max(0.0, -math.log10(frequency) * TAG_RARITY_SCALE))


class TagFrequencyCache:
    """TTL cache of the tag table, rebuilt when the collection size or version changes."""

    def __init__(self, ttl: float = DEFAULT_TAG_CACHE_TTL, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._table: TagFrequencyTable | None = None
        self._version: int | None = None
        self._built_at = 0.0
        self.builds = 0

    def get(self, records: Sequence[CharacterRecord], version: int | None = None) -> TagFrequencyTable:
        now = self._clock()
        table = self._table
        if (
            table is not None
            and table.total_records == len(records)
            and self._version == version
            and now - self._built_at < self._ttl
        ):
            return table

        table = tag_frequencies(records)
        self._table = table
        self._version = version
        self._built_at = now
        self.builds += 1
        logger.debug("tag table rebuilt: %d tags over %d records", len(table.counts), table.total_records)
        return table

    def invalidate(self) -> None:
        self._table = None
