"""Energy expenditure split into its components.

    TDEE = BMR + TEF + EAT + NEAT

BMR uses the Mifflin-St Jeor equation, or Katch-McArdle
(370 + 21.6 × lean mass) when a plausible body fat reading is known. TEF is
the thermic effect of food, EAT covers planned exercise, and NEAT is the rest
of daily movement, modelled as a share of BMR set by activity level.

The formulas only give a starting point. Once the adaptive estimator has
measured a TDEE, NEAT absorbs the difference: it varies most between people
and is where metabolic adaptation shows up during a diet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from tdeecoach.coaching.models import (
    ActivityLevel,
    Sex,
    UserGoalProfile,
    uses_lean_mass_bmr,
)
from tdeecoach.errors import InvalidInputError, require_finite, safe_ratio
from tdeecoach.tracking.estimator import MAX_TDEE, MIN_TDEE

logger = logging.getLogger(__name__)


class ExerciseIntensity(Enum):
    """Typical intensity of planned exercise."""
    LOW = "low"                      # Walking, light yoga
    MODERATE = "moderate"            # Jogging, cycling
    HIGH = "high"                    # Running, HIIT


# Activity level multipliers (Harris-Benedict activity factors)
ACTIVITY_MULTIPLIERS = {
    ActivityLevel.SEDENTARY: 1.2,
    ActivityLevel.LIGHT: 1.375,
    ActivityLevel.MODERATE: 1.55,
    ActivityLevel.ACTIVE: 1.725,
    ActivityLevel.VERY_ACTIVE: 1.9,
}

# NEAT as a fraction of BMR, exercise excluded
NEAT_FRACTIONS = {
    ActivityLevel.SEDENTARY: 0.15,
    ActivityLevel.LIGHT: 0.25,
    ActivityLevel.MODERATE: 0.35,
    ActivityLevel.ACTIVE: 0.45,
    ActivityLevel.VERY_ACTIVE: 0.55,
}

EXERCISE_METS = {
    ExerciseIntensity.LOW: 3.5,
    ExerciseIntensity.MODERATE: 6.0,
    ExerciseIntensity.HIGH: 9.0,
}

TEF_FRACTION = 0.10
PROTEIN_TEF = 0.25
CARBS_TEF = 0.075
FAT_TEF = 0.02

KCAL_PER_STEP = 0.04

# Changes at or below these sizes (kcal/day) are not worth explaining
STABLE_TDEE_CHANGE = 50
BMR_CHANGE_THRESHOLD = 20
NEAT_CHANGE_THRESHOLD = 50
EAT_CHANGE_THRESHOLD = 30

COMPONENT_DESCRIPTIONS = {
    "bmr": "Basal metabolic rate - calories burned at rest",
    "tef": "Thermic effect of food - calories burned digesting",
    "eat": "Exercise activity - calories from planned exercise",
    "neat": "Daily activity - calories from movement and fidgeting",
}


def calculate_bmr(
    weight_kg: float,
    height_cm: float,
    age: float,
    sex: Optional[Sex] = None,
    body_fat_pct: Optional[float] = None,
) -> float:
    """Calculate Basal Metabolic Rate.

    Args:
        weight_kg: Body weight
        height_cm: Height
        age: Age in years
        sex: Biological sex, required unless a body fat reading is given
        body_fat_pct: Body fat percentage; readings in (0, 50) switch to
            the lean-mass equation

    Returns:
        BMR in calories per day

    Raises:
        InvalidInputError: Neither sex nor a usable body fat reading
    """
    require_finite(weight_kg, "weight_kg")
    if uses_lean_mass_bmr(body_fat_pct):
        lean_mass_kg = weight_kg * (1 - body_fat_pct / 100)
        return 370 + 21.6 * lean_mass_kg

    if sex is None:
        raise InvalidInputError("BMR needs sex or a body fat reading below 50%")

    # Mifflin-St Jeor equation
    bmr = (10 * weight_kg) + (6.25 * height_cm) - (5 * age)
    return bmr + 5 if sex is Sex.MALE else bmr - 161


def calculate_tdee(bmr: float, activity_level: ActivityLevel) -> float:
    """Formula TDEE: BMR times the activity multiplier."""
    return bmr * ACTIVITY_MULTIPLIERS[activity_level]


def calculate_tef(
    calories: float,
    protein_g: Optional[float] = None,
    carbs_g: Optional[float] = None,
    fat_g: Optional[float] = None,
) -> float:
    """Thermic effect of food.

    Per-macro rates (protein 25%, carbs 7.5%, fat 2%) when all three macros
    are known, otherwise 10% of calories.
    """
    if protein_g is None or carbs_g is None or fat_g is None:
        return calories * TEF_FRACTION
    return protein_g * 4 * PROTEIN_TEF + carbs_g * 4 * CARBS_TEF + fat_g * 9 * FAT_TEF


def calculate_eat(
    weight_kg: float,
    exercise_minutes_per_week: float = 0.0,
    intensity: ExerciseIntensity = ExerciseIntensity.MODERATE,
) -> float:
    """Daily exercise calories: METs × kg × hours per day."""
    hours_per_day = exercise_minutes_per_week / 7 / 60
    return EXERCISE_METS[intensity] * weight_kg * hours_per_day


def calculate_neat(
    bmr: float,
    activity_level: ActivityLevel,
    steps_per_day: Optional[float] = None,
) -> float:
    """Non-exercise activity; a step count replaces the estimate when higher."""
    neat = bmr * NEAT_FRACTIONS[activity_level]
    if steps_per_day:
        neat = max(neat, steps_per_day * KCAL_PER_STEP)
    return neat


@dataclass(frozen=True)
class EnergyComponents:
    """
    TDEE broken into components (kcal/day).

    When ``reconciled`` is True, ``total`` is the measured TDEE and NEAT was
    adjusted toward it. The parts sum to ``total`` unless NEAT had to stop
    at zero.

    Attributes:
        confidence: 0-1, grows with body fat, exercise and step data and with
            a measured TDEE
    """

    bmr: float
    tef: float
    eat: float
    neat: float
    total: float
    confidence: float
    reconciled: bool = False

    def breakdown(self) -> list[dict[str, Any]]:
        """Each component with its share of the total."""
        rows = []
        for name in ("bmr", "tef", "eat", "neat"):
            value = getattr(self, name)
            share = safe_ratio(value, self.total, default=0.0)
            rows.append({
                "label": name.upper(),
                "kcal": round(value),
                "percentage": round(share * 100, 1),
                "description": COMPONENT_DESCRIPTIONS[name],
            })
        return rows

    def to_dict(self) -> dict[str, Any]:
        return {
            "bmr": round(self.bmr),
            "tef": round(self.tef),
            "eat": round(self.eat),
            "neat": round(self.neat),
            "total": round(self.total),
            "confidence": round(self.confidence, 2),
            "reconciled": self.reconciled,
            "breakdown": self.breakdown(),
        }


def profile_bmr(profile: UserGoalProfile, weight_kg: float) -> float:
    if not profile.has_body_metrics:
        raise InvalidInputError(
            "profile needs age, height_cm and sex (or body_fat_pct) for a BMR"
        )
    return calculate_bmr(
        weight_kg,
        profile.height_cm,
        profile.age,
        sex=profile.sex,
        body_fat_pct=profile.body_fat_pct,
    )


def formula_prior(profile: UserGoalProfile, weight_kg: float) -> float:
    """
    Starting TDEE for a new user from BMR and activity level.

    Clamped to the same absolute bounds as the adaptive estimate.

    Raises:
        InvalidInputError: Profile lacks the body metrics a BMR needs
    """
    tdee = calculate_tdee(profile_bmr(profile, weight_kg), profile.activity_level)
    return max(MIN_TDEE, min(MAX_TDEE, tdee))


def calculate_energy_components(
    profile: UserGoalProfile,
    weight_kg: float,
    intake_kcal: float,
    measured_tdee: Optional[float] = None,
    intensity: ExerciseIntensity = ExerciseIntensity.MODERATE,
) -> EnergyComponents:
    """
    Break TDEE into components, reconciled to a measured TDEE when given.

    Args:
        profile: Supplies age, height, sex/body fat, activity and exercise
        weight_kg: Current (trend) weight
        intake_kcal: Average daily intake, for TEF
        measured_tdee: Adaptive estimate; NEAT absorbs the difference from
            the formula total
        intensity: Exercise intensity for EAT

    Returns:
        EnergyComponents

    Raises:
        InvalidInputError: Profile lacks the body metrics a BMR needs
    """
    bmr = profile_bmr(profile, weight_kg)
    tef = calculate_tef(intake_kcal)
    eat = calculate_eat(weight_kg, profile.exercise_minutes_per_week or 0.0, intensity)
    neat = calculate_neat(bmr, profile.activity_level, profile.steps_per_day)
    total = bmr + tef + eat + neat

    reconciled = measured_tdee is not None and measured_tdee > 0
    if reconciled:
        neat = max(0.0, neat + measured_tdee - total)
        logger.debug(
            "NEAT adjusted by %+.0f kcal to match measured TDEE %.0f",
            measured_tdee - total,
            measured_tdee,
        )
        total = measured_tdee

    confidence = 0.5
    if profile.body_fat_pct:
        confidence += 0.1
    if profile.exercise_minutes_per_week:
        confidence += 0.1
    if profile.steps_per_day:
        confidence += 0.1
    if reconciled:
        confidence += 0.2

    return EnergyComponents(
        bmr=bmr,
        tef=tef,
        eat=eat,
        neat=neat,
        total=total,
        confidence=min(confidence, 1.0),
        reconciled=reconciled,
    )


def explain_tdee_change(
    previous: EnergyComponents,
    current: EnergyComponents,
) -> list[str]:
    """Explain which components account for a change in TDEE."""
    if abs(current.total - previous.total) < STABLE_TDEE_CHANGE:
        return ["Your TDEE has remained stable."]

    explanations = []
    bmr_change = current.bmr - previous.bmr
    if abs(bmr_change) > BMR_CHANGE_THRESHOLD:
        if bmr_change > 0:
            explanations.append(
                f"BMR increased by {bmr_change:.0f} calories due to weight gain."
            )
        else:
            explanations.append(
                f"BMR decreased by {-bmr_change:.0f} calories due to weight loss."
            )

    neat_change = current.neat - previous.neat
    if abs(neat_change) > NEAT_CHANGE_THRESHOLD:
        if neat_change > 0:
            explanations.append(
                f"Daily activity increased by {neat_change:.0f} calories - "
                "you're moving more."
            )
        else:
            explanations.append(
                f"Daily activity decreased by {-neat_change:.0f} calories - "
                "possible metabolic adaptation."
            )

    eat_change = current.eat - previous.eat
    if abs(eat_change) > EAT_CHANGE_THRESHOLD:
        if eat_change > 0:
            explanations.append(f"Exercise burn increased by {eat_change:.0f} calories.")
        else:
            explanations.append(f"Exercise burn decreased by {-eat_change:.0f} calories.")

    return explanations
