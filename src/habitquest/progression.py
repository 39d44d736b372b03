from __future__ import annotations

"""Level and XP rules for the character profile."""

import math
from dataclasses import dataclass
from typing import Any

from .errors import InvalidAmount


BASE_XP = 100
XP_STEP_LEVEL = 5
XP_STEP = 100


def needed_xp_for(level: int) -> int:
    """XP required to clear `level`; grows by 100 every five levels."""

    if level < 1:
        raise ValueError("level must be >= 1")
    return BASE_XP + (level // XP_STEP_LEVEL) * XP_STEP


@dataclass
class Profile:
    level: int = 1
    xp: int = 0

    @property
    def needed_xp(self) -> int:
        return needed_xp_for(self.level)

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level, "xp": self.xp, "needed_xp": self.needed_xp}


@dataclass(frozen=True)
class LevelUpResult:
    """Outcome of one XP award, used by the presentation layer to pick cues."""

    leveled_up: bool
    level: int
    levels_gained: int = 0
    xp_awarded: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "leveled_up": self.leveled_up,
            "level": self.level,
            "levels_gained": self.levels_gained,
            "xp_awarded": self.xp_awarded,
        }


def _validate_amount(amount: Any) -> int:
    # bool is an int subclass but never a meaningful award.
    if isinstance(amount, bool) or not isinstance(amount, int):
        if isinstance(amount, float) and not math.isfinite(amount):
            raise InvalidAmount("XP amount must be finite.", amount=str(amount))
        raise InvalidAmount(amount=str(amount))
    if amount < 0:
        raise InvalidAmount("XP amount must not be negative.", amount=amount)
    return amount


class ProgressionEngine:
    """Owns one `Profile` and applies XP awards to it."""

    def __init__(self, profile: Profile | None = None) -> None:
        self.profile = profile if profile is not None else Profile()
        if self.profile.level < 1:
            self.profile.level = 1
        if self.profile.xp < 0:
            self.profile.xp = 0
        self._settle()

    @property
    def level(self) -> int:
        return self.profile.level

    @property
    def xp(self) -> int:
        return self.profile.xp

    @property
    def needed_xp(self) -> int:
        return self.profile.needed_xp

    def _settle(self) -> int:
        gained = 0
        while self.profile.xp >= self.profile.needed_xp:
            self.profile.xp -= self.profile.needed_xp
            self.profile.level += 1
            gained += 1
        return gained

    def award_xp(self, amount: int) -> LevelUpResult:
        """Add XP and resolve every level-up it triggers.

        Raises `InvalidAmount` for negative, fractional or non-finite values;
        the profile is untouched in that case. An award of zero is a no-op.
        """

        value = _validate_amount(amount)
        if value == 0:
            return LevelUpResult(leveled_up=False, level=self.profile.level)
        self.profile.xp += value
        gained = self._settle()
        return LevelUpResult(
            leveled_up=gained > 0,
            level=self.profile.level,
            levels_gained=gained,
            xp_awarded=value,
        )

    def progress_fraction(self) -> float:
        return self.profile.xp / self.profile.needed_xp

    def xp_to_next_level(self) -> int:
        return self.profile.needed_xp - self.profile.xp

    def reset(self) -> None:
        self.profile = Profile()
