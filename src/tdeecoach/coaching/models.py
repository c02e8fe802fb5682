"""Data models for goals, check-ins and macro targets."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from tdeecoach.errors import InvalidInputError, require_finite


class GoalType(Enum):
    """Body composition goal."""
    CUT = "cut"                      # lose fat
    GAIN = "gain"                    # build muscle with a surplus
    MAINTENANCE = "maintenance"      # hold weight
    RECOMP = "recomp"                # lose fat, keep or build muscle


class TrainingExperience(Enum):
    """Resistance-training history, limits safe gain rates."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Sex(Enum):
    """Biological sex, adjusts calorie floors."""
    MALE = "male"
    FEMALE = "female"


class ActivityLevel(Enum):
    """Self-reported activity level, drives the formula TDEE and NEAT share."""
    SEDENTARY = "sedentary"          # Little or no exercise
    LIGHT = "light"                  # Light exercise 1-3 days/week
    MODERATE = "moderate"            # Moderate exercise 3-5 days/week
    ACTIVE = "active"                # Hard exercise 6-7 days/week
    VERY_ACTIVE = "very_active"      # Very hard exercise, physical job


def parse_enum(enum_cls: type[Enum], value: Any, name: str) -> Enum:
    """Coerce a string (or member) into ``enum_cls`` with a clear error."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        valid = [m.value for m in enum_cls]
        raise InvalidInputError(f"{name} must be one of {valid}, got '{value}'") from None


@dataclass(frozen=True)
class Macros:
    """Daily calorie and macronutrient targets."""

    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float
    fiber_g: Optional[float] = None

    def __post_init__(self) -> None:
        require_finite(self.calories, "calories")
        require_finite(self.protein_g, "protein_g")
        require_finite(self.carbs_g, "carbs_g")
        require_finite(self.fat_g, "fat_g")
        if self.fiber_g is not None:
            require_finite(self.fiber_g, "fiber_g")

    @property
    def macro_calories(self) -> float:
        """Calories implied by protein/carbs (4 kcal/g) and fat (9 kcal/g)."""
        return self.protein_g * 4 + self.carbs_g * 4 + self.fat_g * 9

    def to_dict(self) -> dict[str, Any]:
        return {
            "calories": round(self.calories),
            "protein_g": round(self.protein_g),
            "carbs_g": round(self.carbs_g),
            "fat_g": round(self.fat_g),
            "fiber_g": round(self.fiber_g) if self.fiber_g is not None else None,
        }


# The lean-mass BMR equation is used only for body fat readings in this range
LEAN_MASS_BODY_FAT_RANGE = (0.0, 50.0)


def uses_lean_mass_bmr(body_fat_pct: Optional[float]) -> bool:
    if body_fat_pct is None:
        return False
    low, high = LEAN_MASS_BODY_FAT_RANGE
    return low < body_fat_pct < high


@dataclass(frozen=True)
class UserGoalProfile:
    """
    A user's declared goal and current targets.

    Attributes:
        goal_type: Cut, gain, maintenance or recomp
        prior_tdee: Previous TDEE estimate (kcal/day)
        target_macros: Current daily targets
        activity_level: Self-reported activity level
        training_experience: Limits gain rates; beginners may gain faster
        sex: Optional, adjusts calorie floors and selects the BMR equation
        age: Years, for the BMR equation
        height_cm: Height, for the BMR equation
        body_fat_pct: Switches BMR to the lean-mass equation when known
        exercise_minutes_per_week: Planned exercise, for the EAT component
        steps_per_day: Average steps, raises NEAT when they imply more
    """

    goal_type: GoalType
    prior_tdee: float
    target_macros: Macros
    activity_level: ActivityLevel = ActivityLevel.MODERATE
    training_experience: Optional[TrainingExperience] = None
    sex: Optional[Sex] = None
    age: Optional[int] = None
    height_cm: Optional[float] = None
    body_fat_pct: Optional[float] = None
    exercise_minutes_per_week: Optional[float] = None
    steps_per_day: Optional[float] = None

    def __post_init__(self) -> None:
        require_finite(self.prior_tdee, "prior_tdee")
        if self.prior_tdee == 0:
            raise InvalidInputError("prior_tdee must be positive")
        for name in (
            "age",
            "height_cm",
            "body_fat_pct",
            "exercise_minutes_per_week",
            "steps_per_day",
        ):
            value = getattr(self, name)
            if value is not None:
                require_finite(value, name)
        if self.body_fat_pct is not None and self.body_fat_pct >= 100:
            raise InvalidInputError(f"body_fat_pct must be below 100, got {self.body_fat_pct}")

    @property
    def has_body_metrics(self) -> bool:
        """Enough is known to compute a BMR."""
        if self.age is None or self.height_cm is None:
            return False
        return self.sex is not None or uses_lean_mass_bmr(self.body_fat_pct)

    def to_dict(self) -> dict[str, Any]:
        return {
            "goal_type": self.goal_type.value,
            "prior_tdee": round(self.prior_tdee),
            "target_macros": self.target_macros.to_dict(),
            "activity_level": self.activity_level.value,
            "training_experience": (
                self.training_experience.value if self.training_experience else None
            ),
            "sex": self.sex.value if self.sex else None,
            "age": self.age,
            "height_cm": self.height_cm,
            "body_fat_pct": self.body_fat_pct,
            "exercise_minutes_per_week": self.exercise_minutes_per_week,
            "steps_per_day": self.steps_per_day,
        }


# Ratings at or beyond these values call for easing off a deficit
LOW_ENERGY_RATING = 2
HIGH_HUNGER_RATING = 4
VERY_HIGH_HUNGER_RATING = 5
POOR_PERFORMANCE_RATING = 2


@dataclass(frozen=True)
class SubjectiveCheckIn:
    """Weekly self-reported ratings, each on a 1-5 scale."""

    energy_level: int
    hunger_level: int
    training_performance: int

    def __post_init__(self) -> None:
        for name in ("energy_level", "hunger_level", "training_performance"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
                raise InvalidInputError(f"{name} must be an integer from 1 to 5, got {value!r}")

    @property
    def low_energy(self) -> bool:
        return self.energy_level <= LOW_ENERGY_RATING

    @property
    def high_hunger(self) -> bool:
        return self.hunger_level >= HIGH_HUNGER_RATING

    @property
    def very_high_hunger(self) -> bool:
        return self.hunger_level >= VERY_HIGH_HUNGER_RATING

    @property
    def poor_training(self) -> bool:
        return self.training_performance <= POOR_PERFORMANCE_RATING

    def to_dict(self) -> dict[str, int]:
        return {
            "energy_level": self.energy_level,
            "hunger_level": self.hunger_level,
            "training_performance": self.training_performance,
        }
