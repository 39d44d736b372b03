from __future__ import annotations

import os
from pathlib import Path


DEFAULT_TELEMETRY_RETENTION_DAYS = 30


def game_home() -> Path:
    configured = os.environ.get("HABITQUEST_HOME")
    if configured:
        return Path(configured).expanduser().resolve()
    return Path.home() / ".habitquest"


def ensure_home_dirs(base: Path) -> dict[str, Path]:
    state = base / "state"
    telemetry = base / "telemetry"
    for path in (base, state, telemetry):
        path.mkdir(parents=True, exist_ok=True)
    return {"base": base, "state": state, "telemetry": telemetry}


def env_days(name: str, fallback: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return fallback
    try:
        value = int(raw)
    except ValueError:
        return fallback
    if value <= 0:
        return fallback
    return value


def telemetry_retention_days() -> int:
    return env_days("HABITQUEST_TELEMETRY_RETENTION_DAYS", DEFAULT_TELEMETRY_RETENTION_DAYS)
