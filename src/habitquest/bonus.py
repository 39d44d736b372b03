from __future__ import annotations

"""Once-per-calendar-day login bonus."""

from dataclasses import dataclass
from datetime import date, datetime


BONUS_XP = 50


def local_today() -> date:
    return date.today()


def _as_date(value: date | datetime | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value


def is_bonus_owed(today: date | datetime, last_claimed_date: date | datetime | None) -> bool:
    """True unless the bonus was already claimed on the same local calendar day."""

    last = _as_date(last_claimed_date)
    if last is None:
        return True
    return last != _as_date(today)


@dataclass(frozen=True)
class BonusState:
    last_claimed_date: date | None = None

    def to_dict(self) -> dict[str, str | None]:
        value = self.last_claimed_date.isoformat() if self.last_claimed_date else None
        return {"last_claimed_date": value}


class DailyBonusPolicy:
    def __init__(self, state: BonusState | None = None) -> None:
        self.state = state or BonusState()

    def is_owed(self, today: date | datetime) -> bool:
        return is_bonus_owed(today, self.state.last_claimed_date)

    def claim(self, today: date | datetime) -> BonusState:
        self.state = BonusState(last_claimed_date=_as_date(today))
        return self.state
