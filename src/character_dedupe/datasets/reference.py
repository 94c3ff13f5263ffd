from __future__ import annotations

import random
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from character_dedupe.models import CharacterRecord

_FIRST_NAMES = [
    "Aria",
    "Kael",
    "Seraphina",
    "Dorian",
    "Lyra",
    "Magnus",
    "Nyx",
    "Elowen",
    "Corvin",
    "Isolde",
    "Thorne",
    "Wren",
    "Valen",
    "Mirelle",
    "Oberon",
    "Sable",
]
_LAST_NAMES = [
    "Ashford",
    "Blackwood",
    "Crowley",
    "Duskmere",
    "Everhart",
    "Fairwind",
    "Grimshaw",
    "Hollow",
    "Ironveil",
    "Moonwhisper",
    "Nightshade",
    "Stormrider",
]
_CREATORS = ["jdoe", "moonlit_quill", "cardsmith", "velvetink", "anon_writer", "pixelbard"]
_ROLES = ["knight", "librarian", "mercenary", "alchemist", "bard", "smuggler", "priestess", "detective"]
_PLACES = ["a crumbling border fortress", "the floating city of Vey", "a rain-soaked harbor town",
           "an academy for battle mages", "a neon-lit megacity", "a haunted mountain monastery"]
_TRAITS = ["stubborn", "soft-spoken", "reckless", "secretive", "cheerful", "sardonic", "protective"]
_HOOKS = [
    "Years ago {name} swore an oath that still dictates every choice.",
    "{name} keeps a journal of every person who ever lied to them.",
    "Rumors say {name} once bargained with something that should not be named.",
    "{name} collects broken compasses and refuses to explain why.",
    "Nobody has seen {name} sleep, and nobody dares to ask about it.",
]
_TAGS = ["fantasy", "romance", "adventure", "sci-fi", "horror", "comedy", "drama", "mystery",
         "female", "male", "oc", "tsundere", "yandere", "slice of life", "villain", "knight"]
_VERSION_SUFFIXES = [" (v2)", " v3", " - v1.2", " (updated)", " (copy)", " (fixed)", " (alt)"]


class ReferenceDatasetGenerator:
    """Generate synthetic character collections with drifted re-uploads for tests and benchmarks."""

    def __init__(self, seed: int = 7) -> None:
        self._rng = random.Random(seed)

    def generate(self, size: int, duplicate_rate: float = 0.15) -> list[CharacterRecord]:
        if size <= 0:
            return []

        unique_count = int(size * (1.0 - duplicate_rate))
        unique_count = max(1, min(unique_count, size))

        records = [self._profile(i) for i in range(unique_count)]
        while len(records) < size:
            source = self._rng.choice(records[:unique_count])
            records.append(self._perturb(source, len(records)))

        self._rng.shuffle(records)
        return records

    def generate_with_truth(
        self, size: int, duplicate_rate: float = 0.15
    ) -> tuple[list[CharacterRecord], dict[str, str]]:
        """Like `generate`, plus a map of duplicate id -> original id."""
        records = self.generate(size, duplicate_rate)
        by_id = {record.id: record for record in records}
        truth = {
            record.id: record.source.split("#", maxsplit=1)[1]
            for record in records
            if "#" in record.source and record.source.split("#", maxsplit=1)[1] in by_id
        }
        return records, truth

    def _profile(self, idx: int) -> CharacterRecord:
        first = _FIRST_NAMES[idx % len(_FIRST_NAMES)]
        last = _LAST_NAMES[(idx // len(_FIRST_NAMES)) % len(_LAST_NAMES)]
        cycle = idx // (len(_FIRST_NAMES) * len(_LAST_NAMES))
        name = f"{first} {last}" if cycle == 0 else f"{first} {last} {_roman(cycle + 1)}"
        creator = self._rng.choice(_CREATORS)
        role = self._rng.choice(_ROLES)
        place = self._rng.choice(_PLACES)
        trait, second_trait = self._rng.sample(_TRAITS, 2)
        hook = self._rng.choice(_HOOKS).format(name=first)

        description = (
            f"{name} is a {trait} {role} from {place}. "
            f"{hook} "
            f"Those who travel with {first} learn quickly that the {role} never forgets a debt. "
            f"Record {idx} in the archive."
        )
        personality = f"{trait.capitalize()}, {second_trait}, observant, fiercely loyal to a chosen few."
        scenario = f"{{{{user}}}} meets {first} at the gates of {place} after a long journey."
        first_message = (
            f"*{first} looks up from a battered map.* You're late. "
            f"I expected someone from {place} hours ago, and the {role}s here do not wait forever."
        )
        created_at = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(hours=idx)
        slug = f"{first}-{last}".lower()

        return CharacterRecord(
            id=f"char_{idx:05d}.png",
            name=name,
            creator=creator,
            description=description,
            personality=personality,
            scenario=scenario,
            first_message=first_message,
            tags=frozenset(self._rng.sample(_TAGS, 4)),
            created_at=created_at,
            source=f"{creator}/{slug}-{idx}",
        )

    def _perturb(self, source: CharacterRecord, idx: int) -> CharacterRecord:
        mutation = self._rng.choice(["rename", "text", "tags", "mixed"])
        name = source.name
        description = source.description
        first_message = source.first_message
        tags = source.tags

        if mutation in {"rename", "mixed"}:
            name = f"{source.name}{self._rng.choice(_VERSION_SUFFIXES)}"

        if mutation in {"text", "mixed"}:
            sentences = [s for s in description.split(". ") if s]
            if len(sentences) > 2:
                sentences.pop(self._rng.randrange(1, len(sentences)))
            description = ". ".join(sentences)
            first_message = first_message.replace("You're late.", "Finally, you're here.")

        if mutation in {"tags", "mixed"} and len(tags) > 1:
            tags = frozenset(sorted(tags)[1:])

        # "#<original id>" marks the re-upload so tests can recover ground truth.
        return replace(
            source,
            id=f"char_{idx:05d}.png",
            name=name,
            description=description,
            first_message=first_message,
            tags=tags,
            created_at=(source.created_at or datetime(2024, 1, 1, tzinfo=timezone.utc)) + timedelta(days=30),
            source=f"{source.source}#{source.id}",
        )


def _roman(value: int) -> str:
    numerals = [(10, "X"), (9, "IX"), (5, "V"), (4, "IV"), (1, "I")]
    result = []
    for number, numeral in numerals:
        while value >= number:
            result.append(numeral)
            value -= number
    return "".join(result)
