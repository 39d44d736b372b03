from __future__ import annotations

"""Local JSONL event log with sanitization, retention purge and summaries."""

import hashlib
import json
import platform
import re
import sys
import unicodedata
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from importlib.metadata import PackageNotFoundError, version as package_version
from pathlib import Path
from typing import Any


SCHEMA_VERSION = "0.1"
VALID_EVENT_TYPES = {
    "session.started",
    "state.recovered",
    "xp.awarded",
    "level.up",
    "quest.added",
    "quest.deleted",
    "quest.completed",
    "bonus.claimed",
    "settings.updated",
    "state.reset",
    "state.exported",
    "telemetry.purged",
    "risk.flagged",
}
VALID_SOURCES = {"cli", "api"}
MAX_STRING_LENGTH = 200
RANGE_PATTERN = re.compile(r"^(\d+)([dh])$")


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _utc_now_rfc3339() -> str:
    return _utc_now().replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _parse_ts(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    normalized = value.replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _safe_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def _strip_control_chars(value: str) -> str:
    return "".join(ch for ch in value if not unicodedata.category(ch).startswith("C"))


@dataclass(frozen=True)
class BuildInfo:
    """Runtime metadata attached to every event."""

    version: str
    python_version: str
    platform: str

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "python_version": self.python_version, "platform": self.platform}


def _sanitize_text(value: str) -> tuple[str, bool]:
    cleaned = _strip_control_chars(value).strip()
    if len(cleaned) > MAX_STRING_LENGTH:
        return f"{cleaned[:MAX_STRING_LENGTH]}...[truncated]", True
    return cleaned, False


def sanitize_event_data(data: Any) -> tuple[Any, int]:
    """Recursively strip control characters and truncate long strings.

    Returns the sanitized payload and the number of truncated fields.
    """

    if isinstance(data, dict):
        sanitized: dict[str, Any] = {}
        truncated = 0
        for key, value in data.items():
            key_text, key_cut = _sanitize_text(str(key))
            value_sanitized, value_cut = sanitize_event_data(value)
            sanitized[key_text] = value_sanitized
            truncated += int(key_cut) + value_cut
        return sanitized, truncated
    if isinstance(data, (list, tuple)):
        items: list[Any] = []
        truncated = 0
        for item in data:
            item_sanitized, item_cut = sanitize_event_data(item)
            items.append(item_sanitized)
            truncated += item_cut
        return items, truncated
    if data is None or isinstance(data, (int, float, bool)):
        return data, 0
    text, cut = _sanitize_text(str(data))
    return text, int(cut)


def parse_range(range_value: str) -> timedelta:
    """Parse compact duration windows such as `7d` or `24h`."""

    match = RANGE_PATTERN.match(range_value.strip().lower())
    if not match:
        raise ValueError("range must be like 7d or 24h")
    amount = int(match.group(1))
    unit = match.group(2)
    if amount <= 0:
        raise ValueError("range amount must be > 0")
    if unit == "d":
        return timedelta(days=amount)
    return timedelta(hours=amount)


def detect_version() -> str:
    try:
        return package_version("habitquest")
    except PackageNotFoundError:
        return "0.1.0"


def hashlib_sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class TelemetryLogger:
    """Append-only event logger; write failures never reach the caller."""

    def __init__(self, events_path: Path) -> None:
        self.events_path = events_path
        self.events_path.parent.mkdir(parents=True, exist_ok=True)
        self.build = BuildInfo(
            version=detect_version(),
            python_version=sys.version.split()[0],
            platform=platform.platform(),
        )

    def _normalize_source(self, source: str) -> str:
        if source in VALID_SOURCES:
            return source
        return "cli"

    def _append_jsonl(self, payload: dict[str, Any]) -> None:
        self.events_path.parent.mkdir(parents=True, exist_ok=True)
        with self.events_path.open("a", encoding="utf-8", newline="\n") as handle:
            handle.write(_safe_json(payload))
            handle.write("\n")

    def _base_event(
        self,
        *,
        event_type: str,
        source: str,
        trace_id: str | None,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        if event_type not in VALID_EVENT_TYPES:
            data = {
                "reason": "invalid_event_type",
                "invalid_event_type_hash": hashlib_sha256_hex(event_type),
            }
            event_type = "risk.flagged"
        return {
            "schema_version": SCHEMA_VERSION,
            "event_id": str(uuid.uuid4()),
            "ts": _utc_now_rfc3339(),
            "event_type": event_type,
            "source": self._normalize_source(source),
            "trace_id": trace_id,
            "build": self.build.to_dict(),
            "data": data,
        }

    def log_event(
        self,
        event_type: str,
        *,
        source: str = "cli",
        data: dict[str, Any] | None = None,
        trace_id: str | None = None,
    ) -> None:
        try:
            sanitized, truncated = sanitize_event_data(data or {})
            if truncated:
                sanitized["fields_truncated_count"] = truncated
            self._append_jsonl(
                self._base_event(event_type=event_type, source=source, trace_id=trace_id, data=sanitized)
            )
        except Exception as exc:  # noqa: BLE001
            print(f"[telemetry] failed to append event: {exc}", file=sys.stderr)

    def iter_events(self) -> list[dict[str, Any]]:
        if not self.events_path.exists():
            return []
        events: list[dict[str, Any]] = []
        with self.events_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    payload = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if isinstance(payload, dict):
                    events.append(payload)
        return events

    def count_events(self) -> int:
        if not self.events_path.exists():
            return 0
        count = 0
        with self.events_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                if line.strip():
                    count += 1
        return count

    def purge_older_than(self, window: timedelta) -> dict[str, Any]:
        """Drop events older than `window`, rewriting the log in place."""

        cutoff = _utc_now() - window
        kept: list[dict[str, Any]] = []
        purged = 0
        for event in self.iter_events():
            ts = _parse_ts(event.get("ts"))
            if ts is not None and ts < cutoff:
                purged += 1
                continue
            kept.append(event)
        if purged:
            temp_path = self.events_path.parent / f".{self.events_path.name}.tmp"
            with temp_path.open("w", encoding="utf-8", newline="\n") as handle:
                for event in kept:
                    handle.write(_safe_json(event))
                    handle.write("\n")
            temp_path.replace(self.events_path)
        return {"purged_count": purged, "kept_count": len(kept), "cutoff": cutoff.isoformat()}

    def summarize(self, range_value: str) -> dict[str, Any]:
        """Aggregate XP, level-up and quest activity within a time window."""

        window = parse_range(range_value)
        end = _utc_now()
        start = end - window
        in_window: list[dict[str, Any]] = []
        for event in self.iter_events():
            ts = _parse_ts(event.get("ts"))
            if ts is None or not (start <= ts <= end):
                continue
            in_window.append(event)

        by_type = Counter(str(event.get("event_type")) for event in in_window)
        completions = Counter(
            str(event.get("data", {}).get("title", "unknown"))
            for event in in_window
            if event.get("event_type") == "quest.completed"
        )
        xp_total = sum(
            int(event.get("data", {}).get("xp_awarded", 0) or 0)
            for event in in_window
            if event.get("event_type") == "xp.awarded"
        )
        levels_gained = sum(
            int(event.get("data", {}).get("levels_gained", 0) or 0)
            for event in in_window
            if event.get("event_type") == "level.up"
        )
        return {
            "schema_version": SCHEMA_VERSION,
            "generated_at": end.isoformat(),
            "range": range_value,
            "window_start": start.isoformat(),
            "window_end": end.isoformat(),
            "event_count": len(in_window),
            "events_by_type": dict(sorted(by_type.items())),
            "xp_awarded_total": xp_total,
            "levels_gained_total": levels_gained,
            "bonus_claims": by_type.get("bonus.claimed", 0),
            "top_completed_quests": [
                {"title": title, "count": count}
                for title, count in sorted(completions.items(), key=lambda item: (-item[1], item[0]))[:5]
            ],
        }
