from __future__ import annotations

import logging
from collections.abc import Iterable

from character_dedupe.models import CharacterRecord

logger = logging.getLogger(__name__)


class InMemoryRepository:
    """Ordered in-memory collection with a monotonic mutation version."""

    def __init__(self, records: Iterable[CharacterRecord] = ()) -> None:
        self._records: dict[str, CharacterRecord] = {}
        self._version = 0
        for record in records:
            self._records[record.id] = record

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._records)

    def list_records(self) -> list[CharacterRecord]:
        return list(self._records.values())

    def get(self, record_id: str) -> CharacterRecord | None:
        return self._records.get(record_id)

    def upsert(self, record: CharacterRecord) -> None:
        self._records[record.id] = record
        self._bump("upsert", record.id)

    def delete(self, record_id: str) -> bool:
        if self._records.pop(record_id, None) is None:
            return False
        self._bump("delete", record_id)
        return True

    def replace_all(self, records: Iterable[CharacterRecord]) -> None:
        self._records = {record.id: record for record in records}
        self._bump("replace_all", "*")

    def _bump(self, action: str, record_id: str) -> None:
        self._version += 1
        logger.debug("repository %s id=%s version=%d", action, record_id, self._version)
