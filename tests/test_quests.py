from __future__ import annotations

import random
from pathlib import Path

import pytest

from habitquest.errors import InvalidXpTier
from habitquest.quests import (
    EMOJIS,
    Difficulty,
    Quest,
    QuestCatalog,
    default_quests,
    difficulty_stars,
    load_quest_file,
    random_emoji,
)


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text.strip() + "\n", encoding="utf-8")


def test_difficulty_classification() -> None:
    assert difficulty_stars(10) is Difficulty.EASY
    assert difficulty_stars(29) is Difficulty.EASY
    assert difficulty_stars(30) is Difficulty.NORMAL
    assert difficulty_stars(49) is Difficulty.NORMAL
    assert difficulty_stars(50) is Difficulty.HARD
    assert [d.stars for d in Difficulty] == ["★", "★★", "★★★"]


def test_default_quests_are_seeded_in_order() -> None:
    quests = default_quests()
    assert [q.id for q in quests] == [1, 2, 3]
    assert [q.xp for q in quests] == [10, 30, 50]


def test_add_appends_in_insertion_order() -> None:
    catalog = QuestCatalog(default_quests())
    first = catalog.add_quest("Read a chapter", 10, "📖")
    second = catalog.add_quest("  Run 5k  ", 50)
    assert first is not None and second is not None
    assert second.title == "Run 5k"
    assert second.emoji in EMOJIS
    assert [q.id for q in catalog.list_quests()][-2:] == [first.id, second.id]
    assert len({q.id for q in catalog.list_quests()}) == len(catalog)


def test_blank_title_is_rejected_without_change() -> None:
    catalog = QuestCatalog(default_quests())
    assert catalog.add_quest("   ", 10, "⭐") is None
    assert catalog.add_quest("", 30) is None
    assert len(catalog) == 3


def test_add_rejects_unknown_tier() -> None:
    catalog = QuestCatalog()
    with pytest.raises(InvalidXpTier):
        catalog.add_quest("Meditate", 20)
    assert len(catalog) == 0


def test_new_ids_never_collide_with_existing_ones() -> None:
    far_future = 10**15
    catalog = QuestCatalog([Quest(id=far_future, title="Future", emoji="🔮", xp=10)])
    quest = catalog.add_quest("Next", 10, "📜")
    assert quest is not None
    assert quest.id == far_future + 1


def test_delete_missing_id_is_idempotent() -> None:
    catalog = QuestCatalog(default_quests())
    before = catalog.list_quests()
    assert catalog.delete_quest(999) is False
    assert catalog.delete_quest(999) is False
    assert catalog.list_quests() == before


def test_delete_removes_matching_quest() -> None:
    catalog = QuestCatalog(default_quests())
    assert catalog.delete_quest(2) is True
    assert [q.id for q in catalog.list_quests()] == [1, 3]
    assert catalog.get(2) is None


def test_list_is_a_copy() -> None:
    catalog = QuestCatalog(default_quests())
    listing = catalog.list_quests()
    listing.clear()
    assert len(catalog) == 3


def test_duplicate_ids_are_rejected() -> None:
    with pytest.raises(ValueError):
        QuestCatalog([Quest(1, "a", "⚔️", 10), Quest(1, "b", "⚔️", 10)])


def test_random_emoji_uses_fixed_set() -> None:
    assert random_emoji(random.Random(7)) in EMOJIS


def test_load_quest_file_reads_entries(tmp_path: Path) -> None:
    path = tmp_path / "quests.yaml"
    _write(
        path,
        """
quests:
  - title: Stretch
    xp: 10
    emoji: "🏹"
  - title: Deep work
    xp: 50
""",
    )
    entries = load_quest_file(path)
    assert entries == [
        {"title": "Stretch", "xp": 10, "emoji": "🏹"},
        {"title": "Deep work", "xp": 50, "emoji": None},
    ]


def test_load_quest_file_rejects_wrong_shape(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    _write(path, "- just a list")
    with pytest.raises(ValueError):
        load_quest_file(path)


def test_load_quest_file_missing_path_raises_value_error(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="could not be read"):
        load_quest_file(tmp_path / "missing.yaml")
