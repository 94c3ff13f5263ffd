import pytest

from character_dedupe.models import CharacterRecord
from character_dedupe.schema import FieldTag
from character_dedupe.steps.cleanup import RecordNormalizer, normalize_name, tokenize
from conftest import EIGHTY_PERCENT_TEXT, FULL_TEXT


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Aria (v2)", "aria"),
        ("Aria v3", "aria"),
        ("Aria - v1.2", "aria"),
        ("Aria-v2", "aria"),
        ("Aria [2]", "aria"),
        ("Aria (Updated)", "aria"),
        ("Aria (fixed)", "aria"),
        ("Aria (alt)", "aria"),
        ("Aria (copy)", "aria"),
        ("Aria copy", "aria"),
        ("Aria (v2) (copy)", "aria"),
        ("  Aria   Blackwood  (fixed) ", "aria blackwood"),
        ("Dev3", "dev3"),
        ("Vivi", "vivi"),
        ("", ""),
    ],
)
def test_normalize_name_strips_reupload_markers(raw: str, expected: str) -> None:
    assert normalize_name(raw) == expected


def test_tokenize_ignores_short_text() -> None:
    assert tokenize("A short line about a knight.") == frozenset()


def test_tokenize_collapses_duplicates_and_short_words() -> None:
    text = "The Knight and the knight's squire ride to an old keep by the sea at dawn"
    tokens = tokenize(text)

    assert "knight" in tokens
    assert "squire" in tokens
    assert "the" in tokens
    assert "to" not in tokens
    assert "an" not in tokens
    assert all(token == token.lower() for token in tokens)


def test_normalizer_builds_word_sets_only_for_long_fields() -> None:
    record = CharacterRecord(
        id="1",
        name="Aria (v2)",
        creator=" JDoe ",
        description=FULL_TEXT,
        personality="Calm.",
    )

    normalized = RecordNormalizer().normalize(record)

    assert normalized.name_lower == "aria (v2)"
    assert normalized.name_normalized == "aria"
    assert normalized.creator_lower == "jdoe"
    assert normalized.word_sets[FieldTag.DESCRIPTION] == frozenset(FULL_TEXT.split())
    assert FieldTag.PERSONALITY not in normalized.word_sets
    assert normalized.text(FieldTag.PERSONALITY) == "Calm."
    assert normalized.text(FieldTag.SCENARIO) == ""


def test_normalizer_applies_field_transforms_before_tokenizing() -> None:
    normalizer = RecordNormalizer(
        tag_transforms={FieldTag.DESCRIPTION: lambda text: text.replace("{{char}}", "")}
    )
    record = CharacterRecord(id="1", name="Aria", description="{{char}} " + EIGHTY_PERCENT_TEXT)

    normalized = normalizer.normalize(record)

    assert "char" not in normalized.word_sets[FieldTag.DESCRIPTION]
