from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from habitquest.telemetry import TelemetryLogger, parse_range, sanitize_event_data


def _read_jsonl(path: Path) -> list[dict]:
    if not path.exists():
        return []
    rows: list[dict] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        rows.append(json.loads(line))
    return rows


def test_sanitize_strips_controls_and_truncates() -> None:
    payload = {"title": "Run\x00 fast\n", "nested": {"note": "a" * 250}, "xp": 10}
    sanitized, truncated = sanitize_event_data(payload)
    assert sanitized["title"] == "Run fast"
    assert sanitized["nested"]["note"].endswith("...[truncated]")
    assert sanitized["xp"] == 10
    assert truncated == 1


def test_event_logger_appends_valid_jsonl(tmp_path: Path) -> None:
    events_path = tmp_path / "telemetry" / "events.jsonl"
    logger = TelemetryLogger(events_path=events_path)
    logger.log_event("session.started", source="cli", data={"level": 1}, trace_id="cli:abc")
    rows = _read_jsonl(events_path)
    assert len(rows) == 1
    row = rows[0]
    assert row["schema_version"] == "0.1"
    assert row["event_type"] == "session.started"
    assert row["source"] == "cli"
    assert row["trace_id"] == "cli:abc"
    assert row["data"] == {"level": 1}
    assert "build" in row


def test_unknown_event_type_is_flagged(tmp_path: Path) -> None:
    events_path = tmp_path / "events.jsonl"
    logger = TelemetryLogger(events_path=events_path)
    logger.log_event("totally.made.up", source="somewhere", data={"secret": "x"})
    row = _read_jsonl(events_path)[0]
    assert row["event_type"] == "risk.flagged"
    assert row["data"]["reason"] == "invalid_event_type"
    assert row["source"] == "cli"


def test_purge_older_than_drops_old_events(tmp_path: Path) -> None:
    events_path = tmp_path / "events.jsonl"
    logger = TelemetryLogger(events_path=events_path)
    old_ts = (datetime.now(tz=UTC) - timedelta(days=40)).replace(microsecond=0).isoformat()
    events_path.write_text(json.dumps({"event_type": "xp.awarded", "ts": old_ts, "data": {}}) + "\n", encoding="utf-8")
    logger.log_event("xp.awarded", data={"xp_awarded": 10})

    result = logger.purge_older_than(timedelta(days=30))
    assert result["purged_count"] == 1
    assert result["kept_count"] == 1
    assert logger.count_events() == 1


def test_summary_aggregates_window(tmp_path: Path) -> None:
    logger = TelemetryLogger(events_path=tmp_path / "events.jsonl")
    logger.log_event("xp.awarded", data={"xp_awarded": 30})
    logger.log_event("xp.awarded", data={"xp_awarded": 50})
    logger.log_event("level.up", data={"levels_gained": 2})
    logger.log_event("bonus.claimed", data={"bonus_xp": 50})
    summary = logger.summarize("7d")
    assert summary["xp_awarded_total"] == 80
    assert summary["levels_gained_total"] == 2
    assert summary["bonus_claims"] == 1
    assert summary["event_count"] == 4


def test_parse_range() -> None:
    assert parse_range("7d") == timedelta(days=7)
    assert parse_range("24h") == timedelta(hours=24)
    with pytest.raises(ValueError):
        parse_range("soon")
    with pytest.raises(ValueError):
        parse_range("0d")
