from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from character_dedupe.models import CharacterRecord, ScanProgress

ProgressCallback = Callable[[ScanProgress], None]


class RecordRepository(Protocol):
    """Supplies read-only snapshots of the collection.

    `version` must increase on every insert, replace or delete so that caches
    can detect same-size mutations.
    """

    @property
    def version(self) -> int:
        ...

    def list_records(self) -> list[CharacterRecord]:
        ...

    def get(self, record_id: str) -> CharacterRecord | None:
        ...


class RelatednessSignal(Protocol):
    """Plugin contributing points to the related-records ranking."""

    name: str

    def score(self, source: CharacterRecord, candidate: CharacterRecord) -> tuple[int, list[str]]:
        ...
