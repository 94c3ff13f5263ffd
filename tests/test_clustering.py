import asyncio
import threading

import pytest

from character_dedupe.datasets import ReferenceDatasetGenerator
from character_dedupe.models import Confidence
from character_dedupe.steps.clustering import DuplicateClusterer, ScanCancelled
from character_dedupe.steps.scoring import PairwiseScorer
from conftest import EIGHTY_PERCENT_TEXT, FULL_TEXT


def _clusterer(**kwargs) -> DuplicateClusterer:
    return DuplicateClusterer(PairwiseScorer(), **kwargs)


def _small_collection(make_record):
    return [
        make_record("aria", "Aria", creator="jdoe", description=FULL_TEXT, first_message="Hello traveler"),
        make_record("morgana", "Morgana", creator="velvetink"),
        make_record(
            "aria-v2", "Aria (v2)", creator="jdoe", description=EIGHTY_PERCENT_TEXT, first_message="Hello traveler"
        ),
        make_record("morgana-copy", "Morgana (copy)", creator="velvetink"),
        make_record("loner", "Quill", creator="someone"),
    ]


def test_scan_groups_duplicates_highest_confidence_first(make_record) -> None:
    groups = _clusterer().scan(_small_collection(make_record))

    assert [group.reference.id for group in groups] == ["aria", "morgana"]
    assert [[m.record.id for m in group.members] for group in groups] == [["aria-v2"], ["morgana-copy"]]
    assert groups[0].confidence == Confidence.HIGH
    assert groups[1].confidence == Confidence.MEDIUM
    assert groups[0].max_score == 71


def test_first_reference_wins_for_chained_matches(make_record) -> None:
    shared = "The lighthouse keeper waits for ships that never come back to harbor."
    a = make_record("a", "Lyra", creator="x")
    b = make_record("b", "Lyra (v2)", creator="x", description=shared)
    c = make_record("c", "Lyra (v2)", creator="y", description=shared)

    in_order = _clusterer().scan([a, b, c])
    assert [group.record_ids for group in in_order] == [["a", "b"]]

    b_first = _clusterer().scan([b, a, c])
    assert [group.record_ids for group in b_first] == [["b", "c", "a"]]


def test_scan_partitions_records(make_record) -> None:
    records = ReferenceDatasetGenerator(seed=3).generate(size=120, duplicate_rate=0.2)

    groups = _clusterer().scan(records)

    seen = [record_id for group in groups for record_id in group.record_ids]
    assert groups
    assert len(seen) == len(set(seen))
    for group in groups:
        scores = [member.result.score for member in group.members]
        assert scores == sorted(scores, reverse=True)
        assert group.confidence == max((m.result.confidence for m in group.members), key=lambda c: c.rank)


def test_second_scan_is_served_from_cache(make_record, clock) -> None:
    records = _small_collection(make_record)
    clusterer = _clusterer(clock=clock)

    first = clusterer.scan(records, version=1)
    second = clusterer.scan(records, version=1)

    assert second == first
    assert clusterer.stats["sweeps"] == 1
    assert clusterer.stats["cache_hits"] == 1


def test_cache_is_bypassed_when_anything_changes(make_record, clock) -> None:
    records = _small_collection(make_record)
    clusterer = _clusterer(clock=clock, cache_ttl=100)
    clusterer.scan(records, version=1)

    clusterer.scan(records, version=1, force_refresh=True)
    assert clusterer.stats["sweeps"] == 2

    clusterer.scan(records, version=2)
    assert clusterer.stats["sweeps"] == 3

    clusterer.scan(records[:-1], version=2)
    assert clusterer.stats["sweeps"] == 4

    clusterer.scan(records[:-1], version=2, min_score=50)
    assert clusterer.stats["sweeps"] == 5

    clock.advance(101)
    clusterer.scan(records[:-1], version=2, min_score=50)
    assert clusterer.stats["sweeps"] == 6

    clusterer.invalidate()
    clusterer.scan(records[:-1], version=2, min_score=50)
    assert clusterer.stats["sweeps"] == 7
    assert clusterer.stats["cache_hits"] == 0


def test_raised_threshold_drops_weaker_groups(make_record) -> None:
    groups = _clusterer().scan(_small_collection(make_record), min_score=50)

    assert [group.reference.id for group in groups] == ["aria"]


def test_progress_is_reported_every_batch() -> None:
    records = ReferenceDatasetGenerator(seed=1).generate(size=120)
    seen = []

    _clusterer(batch_size=50).scan(records, on_progress=seen.append)

    assert [progress.processed for progress in seen] == [50, 100, 120]
    assert all(progress.total == 120 for progress in seen)


def test_cancelled_scan_raises_and_leaves_no_cache() -> None:
    records = ReferenceDatasetGenerator(seed=1).generate(size=120)
    clusterer = _clusterer(batch_size=50)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(ScanCancelled):
        clusterer.scan(records, cancel_event=cancel)

    assert clusterer.cached_groups(len(records), None, 35) is None


def test_async_scan_matches_sync_scan() -> None:
    records = ReferenceDatasetGenerator(seed=5).generate(size=80, duplicate_rate=0.25)
    seen = []

    async_groups = asyncio.run(_clusterer(batch_size=20).ascan(records, on_progress=seen.append))

    assert async_groups == _clusterer().scan(records)
    assert [progress.processed for progress in seen] == [20, 40, 60, 80]


def test_cancelled_async_scan_leaves_no_cache() -> None:
    records = ReferenceDatasetGenerator(seed=1).generate(size=120)
    clusterer = _clusterer(batch_size=50)
    seen = []

    async def cancel_after_first_batch() -> None:
        task = asyncio.current_task()

        def on_progress(progress) -> None:
            seen.append(progress.processed)
            task.cancel()

        await clusterer.ascan(records, on_progress=on_progress)

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(cancel_after_first_batch())

    assert seen == [50]
    assert clusterer.cached_groups(len(records), None, 35) is None


def test_invalid_batch_size_is_rejected() -> None:
    with pytest.raises(ValueError):
        _clusterer(batch_size=0)
