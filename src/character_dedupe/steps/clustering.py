from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable, Generator, Sequence
from dataclasses import dataclass

from character_dedupe.interfaces import ProgressCallback
from character_dedupe.models import (
    CharacterRecord,
    Confidence,
    DuplicateGroup,
    RecordMatch,
    ScanProgress,
)
from character_dedupe.steps.scoring import PairwiseScorer

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_SCAN_CACHE_TTL = 300.0

Sweep = Generator[ScanProgress, None, list[DuplicateGroup]]


class ScanCancelled(Exception):
    """Raised when a caller cancels an in-flight duplicate scan."""


@dataclass(frozen=True, slots=True)
class ScanCache:
    timestamp: float
    record_count: int
    version: int | None
    min_score: int
    groups: tuple[DuplicateGroup, ...]


class DuplicateClusterer:
    """Greedy O(n^2) grouping of records into duplicate clusters.

    Each unclaimed record in collection order becomes the reference of a group
    holding every later unclaimed record it matches; claimed records are never
    considered again, so a record belongs to at most one group. The sweep
    yields progress every `batch_size` outer iterations so hosts can stay
    responsive or cancel.
    """

    def __init__(
        self,
        scorer: PairwiseScorer,
        batch_size: int = DEFAULT_BATCH_SIZE,
        cache_ttl: float = DEFAULT_SCAN_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._scorer = scorer
        self._batch_size = batch_size
        self._cache_ttl = cache_ttl
        self._clock = clock
        self._cache: ScanCache | None = None
        self.stats = {"sweeps": 0, "cache_hits": 0, "pairs_scored": 0}

    def invalidate(self) -> None:
        self._cache = None

    def cached_groups(self, record_count: int, version: int | None, min_score: int) -> list[DuplicateGroup] | None:
        cache = self._cache
        if cache is None:
            return None
        if cache.record_count != record_count or cache.version != version or cache.min_score != min_score:
            return None
        if self._clock() - cache.timestamp >= self._cache_ttl:
            return None
        return list(cache.groups)

    def sweep(self, records: Sequence[CharacterRecord], scorer: PairwiseScorer | None = None) -> Sweep:
        scorer = scorer or self._scorer
        normalized = scorer.normalizer.clean(records)
        total = len(normalized)
        claimed = [False] * total
        groups: list[DuplicateGroup] = []
        self.stats["sweeps"] += 1

        for i in range(total):
            if not claimed[i]:
                reference = normalized[i]
                candidates: list[tuple[int, RecordMatch]] = []
                for j in range(i + 1, total):
                    if claimed[j]:
                        continue
                    result = scorer.score(reference, normalized[j])
                    self.stats["pairs_scored"] += 1
                    if result.confidence is not Confidence.NONE:
                        candidates.append((j, RecordMatch(record=records[j], result=result)))

                if candidates:
                    claimed[i] = True
                    for j, _ in candidates:
                        claimed[j] = True
                    groups.append(_build_group(records[i], [match for _, match in candidates]))

            processed = i + 1
            if processed % self._batch_size == 0 and processed < total:
                yield ScanProgress(processed=processed, total=total, groups_found=len(groups))

        return sort_groups(groups)

    def scan(
        self,
        records: Sequence[CharacterRecord],
        *,
        force_refresh: bool = False,
        version: int | None = None,
        min_score: int | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[DuplicateGroup]:
        scorer = self._scorer_for(min_score)
        if not force_refresh:
            cached = self._lookup(records, version, scorer.min_score)
            if cached is not None:
                return cached

        logger.info("duplicate scan started: records=%d min_score=%d", len(records), scorer.min_score)
        sweep = self.sweep(records, scorer)
        while True:
            try:
                progress = next(sweep)
            except StopIteration as stop:
                groups = stop.value
                break
            if cancel_event is not None and cancel_event.is_set():
                sweep.close()
                logger.info("duplicate scan cancelled at %d/%d", progress.processed, progress.total)
                raise ScanCancelled(f"scan cancelled after {progress.processed} of {progress.total} records")
            self._report(progress, on_progress)

        return self._finish(records, groups, version, scorer.min_score, on_progress)

    async def ascan(
        self,
        records: Sequence[CharacterRecord],
        *,
        force_refresh: bool = False,
        version: int | None = None,
        min_score: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> list[DuplicateGroup]:
        """Asyncio twin of `scan`; awaits between batches, cancel the task to stop."""
        scorer = self._scorer_for(min_score)
        if not force_refresh:
            cached = self._lookup(records, version, scorer.min_score)
            if cached is not None:
                return cached

        logger.info("duplicate scan started: records=%d min_score=%d", len(records), scorer.min_score)
        sweep = self.sweep(records, scorer)
        try:
            while True:
                try:
                    progress = next(sweep)
                except StopIteration as stop:
                    groups = stop.value
                    break
                self._report(progress, on_progress)
                await asyncio.sleep(0)
        finally:
            sweep.close()

        return self._finish(records, groups, version, scorer.min_score, on_progress)

    def _scorer_for(self, min_score: int | None) -> PairwiseScorer:
        if min_score is None:
            return self._scorer
        return self._scorer.with_min_score(min_score)

    def _lookup(
        self, records: Sequence[CharacterRecord], version: int | None, min_score: int
    ) -> list[DuplicateGroup] | None:
        cached = self.cached_groups(len(records), version, min_score)
        if cached is not None:
            self.stats["cache_hits"] += 1
            logger.info("duplicate scan served from cache: groups=%d", len(cached))
        return cached

    def _report(self, progress: ScanProgress, on_progress: ProgressCallback | None) -> None:
        logger.debug(
            "duplicate scan progress %d/%d groups=%d",
            progress.processed,
            progress.total,
            progress.groups_found,
        )
        if on_progress is not None:
            on_progress(progress)

    def _finish(
        self,
        records: Sequence[CharacterRecord],
        groups: list[DuplicateGroup],
        version: int | None,
        min_score: int,
        on_progress: ProgressCallback | None,
    ) -> list[DuplicateGroup]:
        self._cache = ScanCache(
            timestamp=self._clock(),
            record_count=len(records),
            version=version,
            min_score=min_score,
            groups=tuple(groups),
        )
        if on_progress is not None:
            on_progress(ScanProgress(processed=len(records), total=len(records), groups_found=len(groups)))
        logger.info("duplicate scan finished: records=%d groups=%d", len(records), len(groups))
        return list(groups)


def sort_groups(groups: Sequence[DuplicateGroup]) -> list[DuplicateGroup]:
    """High-confidence groups first, then by best member score."""
    return sorted(groups, key=lambda group: (-group.confidence.rank, -group.max_score))


def _build_group(reference: CharacterRecord, matches: list[RecordMatch]) -> DuplicateGroup:
    members = sorted(matches, key=lambda match: match.result.score, reverse=True)
    confidence = max((match.result.confidence for match in members), key=lambda c: c.rank)
    return DuplicateGroup(reference=reference, members=tuple(members), confidence=confidence)
