from __future__ import annotations

import random
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .errors import InvalidXpTier


XP_TIERS = (10, 30, 50)
EMOJIS = ("⚔️", "🛡️", "🧙‍♂️", "🐉", "💎", "📜", "🏹", "🔥", "😤", "📖", "🌚", "🔮", "👸", "👑", "❤️")


class Difficulty(Enum):
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"

    @property
    def stars(self) -> str:
        return {"easy": "★", "normal": "★★", "hard": "★★★"}[self.value]


def difficulty_stars(xp: int) -> Difficulty:
    if xp >= 50:
        return Difficulty.HARD
    if xp >= 30:
        return Difficulty.NORMAL
    return Difficulty.EASY


def random_emoji(rng: random.Random | None = None) -> str:
    return (rng or random).choice(EMOJIS)


@dataclass(frozen=True)
class Quest:
    id: int
    title: str
    emoji: str
    xp: int

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "emoji": self.emoji, "xp": self.xp}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Quest":
        return cls(id=int(data["id"]), title=str(data["title"]), emoji=str(data["emoji"]), xp=int(data["xp"]))


def default_quests() -> list[Quest]:
    """Seed catalog written on the very first run."""

    return [
        Quest(id=1, title="Wake up early", emoji="🌅", xp=10),
        Quest(id=2, title="Strength training", emoji="💪", xp=30),
        Quest(id=3, title="Development", emoji="💻", xp=50),
    ]


class QuestCatalog:
    """Ordered in-memory quest list; display order is insertion order."""

    def __init__(self, quests: list[Quest] | None = None) -> None:
        self._quests: list[Quest] = []
        seen: set[int] = set()
        for quest in quests or []:
            if quest.id in seen:
                raise ValueError(f"Duplicate quest id: {quest.id}")
            seen.add(quest.id)
            self._quests.append(quest)

    def __len__(self) -> int:
        return len(self._quests)

    def _next_id(self) -> int:
        candidate = time.time_ns() // 1_000_000
        if self._quests:
            candidate = max(candidate, max(quest.id for quest in self._quests) + 1)
        return candidate

    def list_quests(self) -> list[Quest]:
        return list(self._quests)

    def get(self, quest_id: int) -> Quest | None:
        for quest in self._quests:
            if quest.id == quest_id:
                return quest
        return None

    def add_quest(self, title: str, xp_tier: int, emoji: str | None = None) -> Quest | None:
        """Append a quest, or return None when the trimmed title is empty."""

        text = (title or "").strip()
        if not text:
            return None
        if isinstance(xp_tier, bool) or xp_tier not in XP_TIERS:
            raise InvalidXpTier(xp=xp_tier, allowed=list(XP_TIERS))
        quest = Quest(id=self._next_id(), title=text, emoji=emoji or random_emoji(), xp=int(xp_tier))
        self._quests.append(quest)
        return quest

    def delete_quest(self, quest_id: int) -> bool:
        remaining = [quest for quest in self._quests if quest.id != quest_id]
        if len(remaining) == len(self._quests):
            return False
        self._quests = remaining
        return True

    def replace_all(self, quests: list[Quest]) -> None:
        self._quests = list(QuestCatalog(quests).list_quests())


def load_quest_file(path: Path) -> list[dict[str, Any]]:
    """Read quest definitions from a YAML file with a top-level `quests` list."""

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ValueError(f"Quest file could not be read: {path}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"Quest file is not valid YAML: {path}") from exc
    if not isinstance(data, dict) or not isinstance(data.get("quests"), list):
        raise ValueError(f"Quest file must be a mapping with a 'quests' list: {path}")
    entries: list[dict[str, Any]] = []
    for item in data["quests"]:
        if not isinstance(item, dict):
            raise ValueError(f"Quest entries must be mappings: {path}")
        entries.append(
            {
                "title": str(item.get("title") or ""),
                "xp": item.get("xp"),
                "emoji": item.get("emoji") if isinstance(item.get("emoji"), str) else None,
            }
        )
    return entries
