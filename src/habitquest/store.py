from __future__ import annotations

"""Single-document JSON persistence for profile, quests, bonus and settings."""

import json
import time
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from .bonus import BonusState
from .progression import Profile
from .quests import XP_TIERS, Quest, default_quests


STATE_SCHEMA_VERSION = "0.1"

STATE_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["level", "xp", "quests"],
    "properties": {
        "state_schema_version": {"type": "string"},
        "level": {"type": "integer", "minimum": 1},
        "xp": {"type": "integer", "minimum": 0},
        "quests": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "title", "emoji", "xp"],
                "properties": {
                    "id": {"type": "integer"},
                    "title": {"type": "string", "minLength": 1},
                    "emoji": {"type": "string"},
                    "xp": {"type": "integer", "enum": list(XP_TIERS)},
                },
            },
        },
        "last_login_date": {"type": ["string", "null"]},
        "muted": {"type": "boolean"},
        "dark_mode": {"type": "boolean"},
        "updated_at": {"type": "string"},
    },
}

_VALIDATOR = Draft202012Validator(STATE_SCHEMA)


@dataclass(frozen=True)
class Settings:
    """Flags owned by the audio and theme collaborators."""

    muted: bool = False
    dark_mode: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {"muted": self.muted, "dark_mode": self.dark_mode}


@dataclass
class LoadedState:
    profile: Profile = field(default_factory=Profile)
    quests: list[Quest] = field(default_factory=default_quests)
    bonus: BonusState = field(default_factory=BonusState)
    settings: Settings = field(default_factory=Settings)
    recovered: bool = False


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def _parse_day(value: Any) -> date | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _save_json(path: Path, value: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.parent / f".{path.name}.tmp"
    payload = json.dumps(value, indent=2, ensure_ascii=False)
    for attempt in range(5):
        temp_path.write_text(payload, encoding="utf-8")
        try:
            temp_path.replace(path)
            return
        except PermissionError:
            if attempt == 4:
                raise
            # On Windows, AV/indexers can briefly lock newly-written temp files.
            time.sleep(0.02 * (attempt + 1))


class PersistenceStore:
    """Reads and writes the whole game state as one JSON document."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._bonus = BonusState()
        self._settings = Settings()

    def exists(self) -> bool:
        return self.path.exists()

    def _read_document(self) -> dict[str, Any] | None:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            return None
        if not isinstance(payload, dict):
            return None
        if next(_VALIDATOR.iter_errors(payload), None) is not None:
            return None
        return payload

    def load(self) -> LoadedState:
        """Return stored state, or defaults when absent or unreadable.

        Corrupt documents never raise; they come back as defaults with
        `recovered=True` so the caller can report it.
        """

        if not self.path.exists():
            state = LoadedState()
        else:
            document = self._read_document()
            state = self._decode(document) if document is not None else None
            if state is None:
                state = LoadedState(recovered=True)
        self._bonus = state.bonus
        self._settings = state.settings
        return state

    def _decode(self, document: dict[str, Any]) -> LoadedState | None:
        quests = [Quest.from_dict(item) for item in document["quests"]]
        if len({quest.id for quest in quests}) != len(quests):
            return None
        return LoadedState(
            profile=Profile(level=int(document["level"]), xp=int(document["xp"])),
            quests=quests,
            bonus=BonusState(last_claimed_date=_parse_day(document.get("last_login_date"))),
            settings=Settings(
                muted=bool(document.get("muted", False)),
                dark_mode=bool(document.get("dark_mode", False)),
            ),
        )

    def save(
        self,
        profile: Profile,
        quests: list[Quest],
        *,
        bonus: BonusState | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Persist profile and quests (plus bonus/settings) in a single write."""

        if bonus is not None:
            self._bonus = bonus
        if settings is not None:
            self._settings = settings
        document = {
            "state_schema_version": STATE_SCHEMA_VERSION,
            "level": profile.level,
            "xp": profile.xp,
            "quests": [quest.to_dict() for quest in quests],
            "last_login_date": self._bonus.to_dict()["last_claimed_date"],
            "muted": self._settings.muted,
            "dark_mode": self._settings.dark_mode,
            "updated_at": _now_iso(),
        }
        _save_json(self.path, document)

    def clear(self) -> bool:
        self._bonus = BonusState()
        self._settings = Settings()
        if not self.path.exists():
            return False
        self.path.unlink()
        return True
