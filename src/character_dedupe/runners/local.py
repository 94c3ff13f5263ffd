from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping, Sequence

from character_dedupe.config import EngineSettings
from character_dedupe.datasets.profiles import CARD_SCHEMA
from character_dedupe.interfaces import ProgressCallback, RecordRepository, RelatednessSignal
from character_dedupe.models import (
    CharacterRecord,
    Confidence,
    DuplicateGroup,
    RecordMatch,
    RelatedMatch,
)
from character_dedupe.repository import InMemoryRepository
from character_dedupe.steps.clustering import DuplicateClusterer
from character_dedupe.steps.related import RelatedOptions, RelatedRanker
from character_dedupe.steps.scoring import DEFAULT_WEIGHTS, PairwiseScorer, ScoringWeights
from character_dedupe.steps.tags import TagFrequencyCache

logger = logging.getLogger(__name__)


class LocalDedupeEngine:
    """In-process engine exposing duplicate scans, related ranking and pre-insert checks.

    Caches are owned by the instance and keyed on the repository version, so
    any mutation made through the repository invalidates them. Call
    `invalidate_caches()` after mutating the collection by other means.
    """

    def __init__(
        self,
        repository: RecordRepository,
        settings: EngineSettings | None = None,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
        signals: Sequence[RelatednessSignal] = (),
    ) -> None:
        self._repository = repository
        self._settings = settings or EngineSettings()
        self._scorer = PairwiseScorer(weights=weights, min_score=self._settings.min_score)
        self._clusterer = DuplicateClusterer(
            self._scorer,
            batch_size=self._settings.yield_every,
            cache_ttl=self._settings.scan_cache_ttl,
        )
        self._tag_cache = TagFrequencyCache(ttl=self._settings.tag_cache_ttl)
        self._ranker = RelatedRanker(tag_cache=self._tag_cache, extra_signals=signals)

    @classmethod
    def from_records(
        cls,
        records: Iterable[CharacterRecord],
        settings: EngineSettings | None = None,
        **kwargs,
    ) -> "LocalDedupeEngine":
        return cls(InMemoryRepository(records), settings=settings, **kwargs)

    @property
    def repository(self) -> RecordRepository:
        return self._repository

    @property
    def scorer(self) -> PairwiseScorer:
        return self._scorer

    @property
    def clusterer(self) -> DuplicateClusterer:
        return self._clusterer

    @property
    def tag_cache(self) -> TagFrequencyCache:
        return self._tag_cache

    def resolve(self, record_id: str) -> CharacterRecord | None:
        return self._repository.get(record_id)

    def invalidate_caches(self) -> None:
        self._clusterer.invalidate()
        self._tag_cache.invalidate()

    def scan_for_duplicates(
        self,
        min_score: int | None = None,
        force_refresh: bool = False,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[DuplicateGroup]:
        _check_min_score(min_score)
        return self._clusterer.scan(
            self._repository.list_records(),
            force_refresh=force_refresh,
            version=self._repository.version,
            min_score=min_score,
            on_progress=on_progress,
            cancel_event=cancel_event,
        )

    async def ascan_for_duplicates(
        self,
        min_score: int | None = None,
        force_refresh: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> list[DuplicateGroup]:
        _check_min_score(min_score)
        return await self._clusterer.ascan(
            self._repository.list_records(),
            force_refresh=force_refresh,
            version=self._repository.version,
            min_score=min_score,
            on_progress=on_progress,
        )

    def rank_related(
        self,
        source: CharacterRecord,
        options: RelatedOptions = RelatedOptions(),
        limit: int | None = None,
    ) -> list[RelatedMatch]:
        return self._ranker.rank(
            source,
            self._repository.list_records(),
            options=options,
            version=self._repository.version,
            limit=limit,
        )

    def check_before_insert(self, candidate: CharacterRecord | Mapping[str, object]) -> list[RecordMatch]:
        """Existing records the candidate likely duplicates, best match first.

        The candidate may be partial (e.g. only name, creator and source
        fetched so far). Never raises: a record that fails to score is logged
        and skipped.
        """
        try:
            if isinstance(candidate, Mapping):
                candidate = CARD_SCHEMA.build_record(candidate)
            normalized = self._scorer.normalizer.normalize(candidate)
            existing = self._repository.list_records()
        except Exception:
            logger.exception("pre-insert check could not prepare candidate")
            return []

        matches: list[RecordMatch] = []
        for record in existing:
            try:
                other = self._scorer.normalizer.normalize(record)
                result = self._scorer.source_match(normalized, other) or self._scorer.score(normalized, other)
            except Exception:
                logger.exception("pre-insert check failed to score record id=%s", record.id)
                continue
            if result.confidence is not Confidence.NONE:
                matches.append(RecordMatch(record=record, result=result))

        matches.sort(key=lambda match: match.result.score, reverse=True)
        logger.info("pre-insert check for %r: %d potential duplicates", candidate.name, len(matches))
        return matches


def _check_min_score(min_score: int | None) -> None:
    if min_score is not None and min_score < 0:
        raise ValueError(f"min_score must be >= 0, got {min_score}")
