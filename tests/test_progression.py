from __future__ import annotations

import math

import pytest

from habitquest.errors import InvalidAmount
from habitquest.progression import Profile, ProgressionEngine, needed_xp_for


def test_needed_xp_steps_every_five_levels() -> None:
    assert needed_xp_for(1) == 100
    assert needed_xp_for(4) == 100
    assert needed_xp_for(5) == 200
    assert needed_xp_for(9) == 200
    assert needed_xp_for(10) == 300


def test_needed_xp_is_monotonic() -> None:
    values = [needed_xp_for(level) for level in range(1, 60)]
    assert values == sorted(values)


def test_needed_xp_rejects_level_zero() -> None:
    with pytest.raises(ValueError):
        needed_xp_for(0)


def test_needed_xp_follows_level_changes() -> None:
    profile = Profile(level=4, xp=0)
    assert profile.needed_xp == 100
    profile.level = 5
    assert profile.needed_xp == 200


def test_single_award_resolves_multiple_level_ups() -> None:
    engine = ProgressionEngine(Profile(level=1, xp=90))
    result = engine.award_xp(250)
    assert result.leveled_up is True
    assert result.levels_gained == 3
    assert (engine.level, engine.xp, engine.needed_xp) == (4, 40, 100)


def test_award_below_threshold_does_not_level() -> None:
    engine = ProgressionEngine()
    result = engine.award_xp(30)
    assert result.leveled_up is False
    assert result.level == 1
    assert engine.xp == 30


def test_award_exactly_at_threshold_levels_with_zero_xp() -> None:
    engine = ProgressionEngine(Profile(level=1, xp=50))
    result = engine.award_xp(50)
    assert result.leveled_up is True
    assert (engine.level, engine.xp) == (2, 0)


def test_award_crossing_step_uses_new_requirement() -> None:
    engine = ProgressionEngine(Profile(level=4, xp=90))
    engine.award_xp(150)
    # 240 -> clears level 4 (100) -> level 5 needs 200, 140 left
    assert (engine.level, engine.xp, engine.needed_xp) == (5, 140, 200)


def test_zero_award_is_noop() -> None:
    engine = ProgressionEngine(Profile(level=3, xp=20))
    result = engine.award_xp(0)
    assert result.leveled_up is False
    assert result.xp_awarded == 0
    assert (engine.level, engine.xp) == (3, 20)


@pytest.mark.parametrize("amount", [-1, 1.5, math.inf, math.nan, "10", None, True])
def test_invalid_amounts_are_rejected_without_change(amount) -> None:  # type: ignore[no-untyped-def]
    engine = ProgressionEngine(Profile(level=2, xp=10))
    with pytest.raises(InvalidAmount) as excinfo:
        engine.award_xp(amount)
    assert excinfo.value.code == "INVALID_AMOUNT"
    assert (engine.level, engine.xp) == (2, 10)


def test_progress_fraction_and_remaining_xp() -> None:
    engine = ProgressionEngine(Profile(level=5, xp=50))
    assert engine.progress_fraction() == pytest.approx(0.25)
    assert engine.xp_to_next_level() == 150


def test_invariant_holds_across_many_awards() -> None:
    engine = ProgressionEngine()
    for amount in [10, 30, 50, 500, 0, 999, 1, 2500]:
        engine.award_xp(amount)
        assert engine.level >= 1
        assert 0 <= engine.xp < engine.needed_xp
        assert 0 <= engine.progress_fraction() < 1


def test_stored_overflow_is_settled_on_construction() -> None:
    engine = ProgressionEngine(Profile(level=1, xp=250))
    assert (engine.level, engine.xp) == (3, 50)


def test_reset_returns_to_level_one() -> None:
    engine = ProgressionEngine(Profile(level=7, xp=12))
    engine.reset()
    assert (engine.level, engine.xp, engine.needed_xp) == (1, 0, 100)
