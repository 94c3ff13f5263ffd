from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from character_dedupe.interfaces import RelatednessSignal
from character_dedupe.models import CharacterRecord, RelatedMatch
from character_dedupe.schema import as_text
from character_dedupe.steps.tags import TagFrequencyCache, TagFrequencyTable, normalize_tags, tag_weight

CREATOR_BONUS = 10
FRANCHISE_POINTS = 15
THEME_POINTS = 5
MAX_KEYWORD_BONUS = 35
MAX_LISTED_TAGS = 5

_FRANCHISES = {
    "Genshin Impact": r"\bgenshin\b",
    "Honkai": r"\bhonkai\b|\bhsr\b",
    "Pokemon": r"\bpok[eé]mon\b",
    "Naruto": r"\bnaruto\b|\bkonoha\b",
    "One Piece": r"\bone piece\b",
    "My Hero Academia": r"\bmy hero academia\b|\bb?nha\b|\bmha\b",
    "Jujutsu Kaisen": r"\bjujutsu kaisen\b|\bjjk\b",
    "Demon Slayer": r"\bdemon slayer\b|\bkimetsu\b",
    "Attack on Titan": r"\battack on titan\b|\bshingeki\b",
    "Blue Archive": r"\bblue archive\b",
    "Hololive": r"\bhololive\b",
    "Touhou": r"\btouhou\b|\bgensokyo\b",
    "Fate": r"\bfate/|\bchaldea\b",
    "Final Fantasy": r"\bfinal fantasy\b",
    "Zelda": r"\bzelda\b|\bhyrule\b",
    "Overwatch": r"\boverwatch\b",
    "League of Legends": r"\bleague of legends\b|\brunterra\b",
    "Star Wars": r"\bstar wars\b|\bjedi\b|\bsith\b",
    "Harry Potter": r"\bharry potter\b|\bhogwarts\b",
    "Marvel": r"\bmarvel\b|\bavengers\b",
    "DC": r"\bdc comics\b|\bgotham\b",
    "Elden Ring": r"\belden ring\b|\bthe lands between\b",
    "Warhammer": r"\bwarhammer\b",
}

_THEMES = {
    "fantasy": r"\bfantasy\b",
    "sci-fi": r"\bsci-?fi\b|\bscience fiction\b",
    "cyberpunk": r"\bcyberpunk\b",
    "horror": r"\bhorror\b",
    "romance": r"\bromance\b|\bromantic\b",
    "isekai": r"\bisekai\b",
    "post-apocalyptic": r"\bpost-?apocalyptic\b",
    "yandere": r"\byandere\b",
    "tsundere": r"\btsundere\b",
    "kuudere": r"\bkuudere\b",
    "dandere": r"\bdandere\b",
    "vampire": r"\bvampires?\b",
    "werewolf": r"\bwerewol(?:f|ves)\b",
    "elf": r"\belf\b|\belves\b|\belven\b",
    "demon": r"\bdemons?\b|\bsuccubus\b",
    "monster girl": r"\bmonster girls?\b",
    "maid": r"\bmaids?\b",
    "knight": r"\bknights?\b",
    "school": r"\bschool\b|\bacademy\b",
    "mafia": r"\bmafia\b|\byakuza\b",
}

_FRANCHISE_PATTERNS = {label: re.compile(pattern, re.IGNORECASE) for label, pattern in _FRANCHISES.items()}
_THEME_PATTERNS = {label: re.compile(pattern, re.IGNORECASE) for label, pattern in _THEMES.items()}


@dataclass(frozen=True, slots=True)
class RelatedOptions:
    use_tags: bool = True
    use_creator: bool = True
    use_content: bool = True


def extract_keywords(record: CharacterRecord) -> tuple[frozenset[str], frozenset[str]]:
    """Franchise and theme keywords found in the record's name, tags and text."""
    text = " ".join(
        [
            as_text(record.name),
            " ".join(sorted(normalize_tags(record.tags))),
            as_text(record.description),
            as_text(record.personality),
            as_text(record.scenario),
        ]
    )
    franchises = frozenset(label for label, pattern in _FRANCHISE_PATTERNS.items() if pattern.search(text))
    themes = frozenset(label for label, pattern in _THEME_PATTERNS.items() if pattern.search(text))
    return franchises, themes


class TagSignal:
    name = "tags"

    def __init__(self, frequencies: TagFrequencyTable) -> None:
        self._frequencies = frequencies

    def score(self, source: CharacterRecord, candidate: CharacterRecord) -> tuple[int, list[str]]:
        shared = normalize_tags(source.tags) & normalize_tags(candidate.tags)
        if not shared:
            return 0, []
        weighted = sorted(shared, key=lambda tag: (-tag_weight(tag, self._frequencies), tag))
        points = sum(tag_weight(tag, self._frequencies) for tag in shared)
        listed = ", ".join(weighted[:MAX_LISTED_TAGS])
        noun = "tag" if len(shared) == 1 else "tags"
        return points, [f"{len(shared)} shared {noun}: {listed}"]


class CreatorSignal:
    name = "creator"

    def __init__(self, bonus: int = CREATOR_BONUS) -> None:
        self._bonus = bonus

    def score(self, source: CharacterRecord, candidate: CharacterRecord) -> tuple[int, list[str]]:
        creator = as_text(source.creator).strip()
        if not creator or creator.lower() != as_text(candidate.creator).strip().lower():
            return 0, []
        return self._bonus, [f"Same creator ({creator})"]


class KeywordSignal:
    name = "content"

    def __init__(self, cap: int = MAX_KEYWORD_BONUS) -> None:
        self._cap = cap
        self._source_keywords: tuple[str, tuple[frozenset[str], frozenset[str]]] | None = None

    def score(self, source: CharacterRecord, candidate: CharacterRecord) -> tuple[int, list[str]]:
        source_franchises, source_themes = self._keywords_for_source(source)
        if not source_franchises and not source_themes:
            return 0, []
        franchises, themes = extract_keywords(candidate)
        shared_franchises = sorted(source_franchises & franchises)
        shared_themes = sorted(source_themes & themes)

        points = min(self._cap, FRANCHISE_POINTS * len(shared_franchises) + THEME_POINTS * len(shared_themes))
        reasons: list[str] = []
        if shared_franchises:
            reasons.append(f"Same franchise: {', '.join(shared_franchises)}")
        if shared_themes:
            reasons.append(f"Shared themes: {', '.join(shared_themes)}")
        return points, reasons

    def _keywords_for_source(self, source: CharacterRecord) -> tuple[frozenset[str], frozenset[str]]:
        if self._source_keywords is None or self._source_keywords[0] != source.id:
            self._source_keywords = (source.id, extract_keywords(source))
        return self._source_keywords[1]


class RelatedRanker:
    """Ranks records by tag rarity, shared creator and shared keywords."""

    def __init__(
        self,
        tag_cache: TagFrequencyCache | None = None,
        extra_signals: Sequence[RelatednessSignal] = (),
    ) -> None:
        self._tag_cache = tag_cache or TagFrequencyCache()
        self._extra_signals = list(extra_signals)

    def rank(
        self,
        source: CharacterRecord,
        records: Sequence[CharacterRecord],
        options: RelatedOptions = RelatedOptions(),
        version: int | None = None,
        limit: int | None = None,
    ) -> list[RelatedMatch]:
        signals = self._signals(records, options, version)
        matches: list[RelatedMatch] = []
        for candidate in records:
            if candidate.id == source.id:
                continue
            breakdown: dict[str, int] = {}
            reasons: list[str] = []
            for signal in signals:
                points, signal_reasons = signal.score(source, candidate)
                if points > 0:
                    breakdown[signal.name] = breakdown.get(signal.name, 0) + points
                    reasons.extend(signal_reasons)
            total = sum(breakdown.values())
            if total > 0:
                matches.append(
                    RelatedMatch(record=candidate, score=total, reasons=tuple(reasons), breakdown=breakdown)
                )

        matches.sort(key=lambda match: match.score, reverse=True)
        return matches[:limit] if limit is not None else matches

    def _signals(
        self,
        records: Sequence[CharacterRecord],
        options: RelatedOptions,
        version: int | None,
    ) -> list[RelatednessSignal]:
        signals: list[RelatednessSignal] = []
        if options.use_tags:
            signals.append(TagSignal(self._tag_cache.get(records, version)))
        if options.use_creator:
            signals.append(CreatorSignal())
        if options.use_content:
            signals.append(KeywordSignal())
        signals.extend(self._extra_signals)
        return signals
