from __future__ import annotations

"""Game service: the single owner of profile, quests, bonus and settings state."""

import hashlib
import json
from dataclasses import dataclass
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from .bonus import BONUS_XP, DailyBonusPolicy, local_today
from .errors import EmptyTitle, GameError
from .paths import ensure_home_dirs, game_home, telemetry_retention_days
from .progression import LevelUpResult, ProgressionEngine
from .quests import Quest, QuestCatalog, default_quests, difficulty_stars, load_quest_file
from .store import PersistenceStore, Settings
from .telemetry import TelemetryLogger, parse_range


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def quest_view(quest: Quest) -> dict[str, Any]:
    difficulty = difficulty_stars(quest.xp)
    return {**quest.to_dict(), "difficulty": difficulty.value, "stars": difficulty.stars}


@dataclass
class GameService:
    """Stateful local service; every mutating call persists before returning."""

    home: Path
    dirs: dict[str, Path]
    store: PersistenceStore
    engine: ProgressionEngine
    catalog: QuestCatalog
    bonus: DailyBonusPolicy
    settings: Settings
    telemetry: TelemetryLogger
    source: str = "cli"

    @classmethod
    def create(cls, home: Path | None = None, *, source: str = "cli") -> "GameService":
        """Resolve the home directory, load saved state and log the session start."""

        resolved = home or game_home()
        dirs = ensure_home_dirs(resolved)
        store = PersistenceStore(dirs["state"] / "game_state.json")
        loaded = store.load()
        service = cls(
            home=resolved,
            dirs=dirs,
            store=store,
            engine=ProgressionEngine(loaded.profile),
            catalog=QuestCatalog(loaded.quests),
            bonus=DailyBonusPolicy(loaded.bonus),
            settings=loaded.settings,
            telemetry=TelemetryLogger(dirs["telemetry"] / "events.jsonl"),
            source=source,
        )
        if loaded.recovered:
            service._emit_event(
                "state.recovered",
                data={"path_hash": hashlib.sha256(str(store.path).encode("utf-8")).hexdigest()},
            )
        service._emit_event(
            "session.started",
            data={"level": service.engine.level, "quest_count": len(service.catalog), "first_run": not store.exists()},
        )
        return service

    def _emit_event(self, event_type: str, *, data: dict[str, Any], trace_id: str | None = None) -> None:
        self.telemetry.log_event(event_type, source=self.source, data=data, trace_id=trace_id)

    def _save(self) -> None:
        self.store.save(
            self.engine.profile,
            self.catalog.list_quests(),
            bonus=self.bonus.state,
            settings=self.settings,
        )

    def _record_award(self, result: LevelUpResult, *, reason: str, trace_id: str | None) -> None:
        if result.xp_awarded == 0:
            return
        self._emit_event(
            "xp.awarded",
            trace_id=trace_id,
            data={"reason": reason, "xp_awarded": result.xp_awarded, "level": result.level, "xp": self.engine.xp},
        )
        if result.leveled_up:
            self._emit_event(
                "level.up",
                trace_id=trace_id,
                data={"level": result.level, "levels_gained": result.levels_gained},
            )

    def status(self) -> dict[str, Any]:
        return {
            "level": self.engine.level,
            "xp": self.engine.xp,
            "needed_xp": self.engine.needed_xp,
            "xp_to_next_level": self.engine.xp_to_next_level(),
            "progress": round(self.engine.progress_fraction(), 4),
            "quest_count": len(self.catalog),
        }

    def award_xp(self, amount: int, *, trace_id: str | None = None) -> dict[str, Any]:
        """Apply a raw XP award; `InvalidAmount` propagates with no state change."""

        result = self.engine.award_xp(amount)
        if result.xp_awarded:
            self._save()
        self._record_award(result, reason="manual", trace_id=trace_id)
        return {**result.to_dict(), "status": self.status()}

    def complete_quest(self, quest_id: int, *, trace_id: str | None = None) -> dict[str, Any]:
        quest = self.catalog.get(quest_id)
        if quest is None:
            raise KeyError(f"Quest not found: {quest_id}")
        result = self.engine.award_xp(quest.xp)
        self._save()
        self._emit_event(
            "quest.completed",
            trace_id=trace_id,
            data={"quest_id": quest.id, "title": quest.title, "xp": quest.xp},
        )
        self._record_award(result, reason="quest", trace_id=trace_id)
        return {"quest": quest_view(quest), **result.to_dict(), "status": self.status()}

    def list_quests(self) -> list[dict[str, Any]]:
        return [quest_view(quest) for quest in self.catalog.list_quests()]

    def add_quest(
        self,
        title: str,
        xp_tier: int,
        emoji: str | None = None,
        *,
        trace_id: str | None = None,
    ) -> dict[str, Any] | None:
        """Append a quest and persist; None means the title was blank."""

        quest = self.catalog.add_quest(title, xp_tier, emoji)
        if quest is None:
            return None
        self._save()
        self._emit_event("quest.added", trace_id=trace_id, data={"quest_id": quest.id, "xp": quest.xp})
        return quest_view(quest)

    def delete_quest(self, quest_id: int, *, trace_id: str | None = None) -> bool:
        removed = self.catalog.delete_quest(quest_id)
        if removed:
            self._save()
            self._emit_event("quest.deleted", trace_id=trace_id, data={"quest_id": quest_id})
        return removed

    def import_quests(self, path: Path, *, trace_id: str | None = None) -> dict[str, Any]:
        """Add quests from a YAML file in file order, persisting once."""

        added: list[dict[str, Any]] = []
        skipped: list[dict[str, Any]] = []
        for index, entry in enumerate(load_quest_file(path)):
            try:
                quest = self.catalog.add_quest(entry["title"], entry["xp"], entry["emoji"])
            except GameError as exc:
                skipped.append({"index": index, **exc.to_dict()})
                continue
            if quest is None:
                skipped.append({"index": index, **EmptyTitle().to_dict()})
                continue
            added.append(quest_view(quest))
        if added:
            self._save()
            for quest in added:
                self._emit_event("quest.added", trace_id=trace_id, data={"quest_id": quest["id"], "xp": quest["xp"]})
        return {"added": added, "skipped": skipped}

    def bonus_status(self, today: date | None = None) -> dict[str, Any]:
        day = today or local_today()
        return {
            "today": day.isoformat(),
            "owed": self.bonus.is_owed(day),
            "bonus_xp": BONUS_XP,
            **self.bonus.state.to_dict(),
        }

    def claim_bonus_if_owed(self, today: date | None = None, *, trace_id: str | None = None) -> dict[str, Any]:
        """Grant the daily login bonus at most once per local calendar day."""

        day = today or local_today()
        if not self.bonus.is_owed(day):
            return {"claimed": False, "bonus_xp": 0, "level_up": None, "status": self.status()}
        result = self.engine.award_xp(BONUS_XP)
        self.bonus.claim(day)
        self._save()
        self._emit_event("bonus.claimed", trace_id=trace_id, data={"date": day.isoformat(), "bonus_xp": BONUS_XP})
        self._record_award(result, reason="login_bonus", trace_id=trace_id)
        return {"claimed": True, "bonus_xp": BONUS_XP, "level_up": result.to_dict(), "status": self.status()}

    def get_settings(self) -> dict[str, bool]:
        return self.settings.to_dict()

    def update_settings(
        self,
        *,
        muted: bool | None = None,
        dark_mode: bool | None = None,
        trace_id: str | None = None,
    ) -> dict[str, bool]:
        updated = Settings(
            muted=self.settings.muted if muted is None else muted,
            dark_mode=self.settings.dark_mode if dark_mode is None else dark_mode,
        )
        if updated != self.settings:
            self.settings = updated
            self._save()
            self._emit_event("settings.updated", trace_id=trace_id, data=updated.to_dict())
        return self.settings.to_dict()

    def export_state(self, out_path: Path, *, trace_id: str | None = None) -> dict[str, Any]:
        """Write a readable snapshot of the current state to `out_path`."""

        export = {
            "exported_at": _now_iso(),
            "status": self.status(),
            "quests": self.list_quests(),
            "bonus": self.bonus.state.to_dict(),
            "settings": self.get_settings(),
        }
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(export, indent=2, ensure_ascii=False), encoding="utf-8")
        self._emit_event("state.exported", trace_id=trace_id, data={"quest_count": len(export["quests"])})
        return export

    def reset(self, *, trace_id: str | None = None) -> dict[str, Any]:
        """Wipe all progress, quests and settings back to first-run defaults."""

        self.store.clear()
        self.engine.reset()
        self.catalog.replace_all(default_quests())
        self.bonus = DailyBonusPolicy()
        self.settings = Settings()
        self._save()
        self._emit_event("state.reset", trace_id=trace_id, data={"quest_count": len(self.catalog)})
        return self.status()

    def telemetry_status(self) -> dict[str, Any]:
        return {
            "enabled": True,
            "path": str(self.telemetry.events_path),
            "event_count": self.telemetry.count_events(),
            "retention_days": telemetry_retention_days(),
        }

    def telemetry_summary(self, range_value: str = "7d") -> dict[str, Any]:
        return self.telemetry.summarize(range_value)

    def telemetry_purge(self, *, older_than: str | None = None, trace_id: str | None = None) -> dict[str, Any]:
        effective_window = older_than or f"{telemetry_retention_days()}d"
        result = self.telemetry.purge_older_than(parse_range(effective_window))
        self._emit_event(
            "telemetry.purged",
            trace_id=trace_id,
            data={"window": effective_window, "purged_count": result["purged_count"], "kept_count": result["kept_count"]},
        )
        return {"window": effective_window, **result}
