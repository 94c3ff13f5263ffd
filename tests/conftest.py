from collections.abc import Iterable

import pytest

from character_dedupe.models import CharacterRecord

# Ten tokens; the first eight alone still exceed the 50-character tokenize floor.
LONG_WORDS = ["lantern", "meadow", "harbor", "crimson", "whisper", "quarry", "thistle", "falcon", "ember", "willow"]
FULL_TEXT = " ".join(LONG_WORDS)
EIGHTY_PERCENT_TEXT = " ".join(LONG_WORDS[:8])


def _make_record(record_id: str, name: str = "", tags: Iterable[str] = (), **fields: object) -> CharacterRecord:
    return CharacterRecord(id=record_id, name=name, tags=frozenset(tags), **fields)


@pytest.fixture
def make_record():
    return _make_record


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
