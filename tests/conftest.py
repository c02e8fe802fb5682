"""Shared test fixtures."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Callable, Optional, Sequence

import pytest

from tdeecoach.coaching.models import GoalType, Macros, SubjectiveCheckIn, UserGoalProfile
from tdeecoach.tracking.models import IntakeSample, WeightSample

# A Monday, so weekday offsets line up with calendar weekdays
START = date(2024, 1, 1)


@pytest.fixture
def start_date() -> date:
    return START


@pytest.fixture
def make_weights() -> Callable[..., list[WeightSample]]:
    """Build daily weight samples from a list of values.

    ``None`` entries are skipped, leaving a gap on that day.
    """

    def _make(values: Sequence[Optional[float]], start: date = START) -> list[WeightSample]:
        return [
            WeightSample(date=start + timedelta(days=i), raw_weight_kg=v)
            for i, v in enumerate(values)
            if v is not None
        ]

    return _make


@pytest.fixture
def make_intake() -> Callable[..., list[IntakeSample]]:
    """Build daily intake samples from a list of calorie totals.

    Macros are filled with fixed values unless given. ``None`` entries are
    skipped.
    """

    def _make(
        calories: Sequence[Optional[float]],
        start: date = START,
        protein_g: float = 150.0,
        carbs_g: float = 200.0,
        fat_g: float = 70.0,
    ) -> list[IntakeSample]:
        return [
            IntakeSample(
                date=start + timedelta(days=i),
                calories=c,
                protein_g=protein_g,
                carbs_g=carbs_g,
                fat_g=fat_g,
            )
            for i, c in enumerate(calories)
            if c is not None
        ]

    return _make


@pytest.fixture
def target_macros() -> Macros:
    return Macros(calories=2000.0, protein_g=150.0, carbs_g=200.0, fat_g=70.0)


@pytest.fixture
def cut_profile(target_macros: Macros) -> UserGoalProfile:
    return UserGoalProfile(
        goal_type=GoalType.CUT,
        prior_tdee=2500.0,
        target_macros=target_macros,
    )


@pytest.fixture
def neutral_check_in() -> SubjectiveCheckIn:
    return SubjectiveCheckIn(energy_level=3, hunger_level=3, training_performance=3)


@pytest.fixture
def snapshot_data(start_date: date) -> dict:
    """Three weeks of steady loss on a cut, as a plain document."""
    days = [(start_date + timedelta(days=i)).isoformat() for i in range(21)]
    return {
        "weights": [
            {"date": day, "weight_kg": round(85.0 - 0.07 * i, 2)} for i, day in enumerate(days)
        ],
        "intake": [
            {"date": day, "calories": 2000, "protein_g": 150, "carbs_g": 200, "fat_g": 70}
            for day in days
        ],
        "profile": {
            "goal_type": "cut",
            "prior_tdee": 2500,
            "target_macros": {"calories": 2000, "protein_g": 150, "carbs_g": 200, "fat_g": 70},
        },
        "check_in": {"energy_level": 3, "hunger_level": 3, "training_performance": 3},
    }
