"""Goal constraints and macro target calculation.

Weekly rates are expressed in percent of body weight per week. For cut and
gain the constraint bounds describe progress in the goal direction (a cut
losing 0.5%/week has progress 0.5); maintenance and recomp use a signed band
around zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from tdeecoach.coaching.models import (
    GoalType,
    Macros,
    Sex,
    SubjectiveCheckIn,
    TrainingExperience,
)
from tdeecoach.errors import InvalidInputError, require_finite

# Macro energy densities (kcal/g)
PROTEIN_KCAL = 4
CARB_KCAL = 4
FAT_KCAL = 9

# Carbs never go below this (g/day)
MIN_CARBS_G = 50

# Fiber target per 1000 kcal
FIBER_G_PER_1000_KCAL = 14

# Protein boost when hunger is very high
HUNGER_PROTEIN_BOOST = 1.1

# Fat floor by goal (g per kg body weight); never below 0.7
FAT_FLOOR_G_PER_KG = {
    GoalType.CUT: 0.7,
    GoalType.GAIN: 0.8,
    GoalType.MAINTENANCE: 0.8,
    GoalType.RECOMP: 0.8,
}

# Safety margin around the constraint band for assess_rate_safety
SAFE_LOWER_FACTOR = 0.8
SAFE_UPPER_FACTOR = 1.2


@dataclass(frozen=True)
class GoalConstraint:
    """
    Evidence-based limits for one goal.

    Attributes:
        goal_type: Goal the constraint applies to
        min_weekly_rate_pct: Slowest acceptable progress (%/week)
        max_weekly_rate_pct: Fastest safe progress (%/week)
        recommended_rate_pct: Target progress (%/week)
        min_calorie_floor: Calorie target never goes below this
        protein_multiplier_per_kg: Protein target (g per kg body weight)
        description: One-line summary
    """

    goal_type: GoalType
    min_weekly_rate_pct: float
    max_weekly_rate_pct: float
    recommended_rate_pct: float
    min_calorie_floor: float
    protein_multiplier_per_kg: float
    description: str = ""

    def __post_init__(self) -> None:
        if not self.min_weekly_rate_pct <= self.recommended_rate_pct <= self.max_weekly_rate_pct:
            raise InvalidInputError(
                "recommended rate must lie between the min and max weekly rates"
            )

    @property
    def progress_sign(self) -> int:
        """Multiplier turning a signed weekly rate into goal progress."""
        return -1 if self.goal_type is GoalType.CUT else 1

    def progress(self, weekly_rate_pct: float) -> float:
        """Signed weekly rate expressed in this goal's direction."""
        return self.progress_sign * weekly_rate_pct

    @property
    def fat_floor_g_per_kg(self) -> float:
        return FAT_FLOOR_G_PER_KG[self.goal_type]

    def to_dict(self) -> dict:
        return {
            "goal_type": self.goal_type.value,
            "min_weekly_rate_pct": self.min_weekly_rate_pct,
            "max_weekly_rate_pct": self.max_weekly_rate_pct,
            "recommended_rate_pct": self.recommended_rate_pct,
            "min_calorie_floor": self.min_calorie_floor,
            "protein_multiplier_per_kg": self.protein_multiplier_per_kg,
            "description": self.description,
        }


def get_goal_constraint(
    goal: GoalType,
    sex: Optional[Sex] = None,
    training_experience: Optional[TrainingExperience] = None,
) -> GoalConstraint:
    """
    Default constraint for a goal.

    Args:
        goal: Goal type
        sex: Optional; females get a lower max cut rate, males higher floors
        training_experience: Beginners may gain faster

    Returns:
        GoalConstraint
    """
    if goal is GoalType.CUT:
        return GoalConstraint(
            goal_type=goal,
            min_weekly_rate_pct=0.25,
            max_weekly_rate_pct=0.75 if sex is Sex.FEMALE else 1.0,
            recommended_rate_pct=0.5,
            min_calorie_floor=1500 if sex is Sex.MALE else 1200,
            protein_multiplier_per_kg=2.3,
            description="Sustainable fat loss while preserving muscle",
        )
    if goal is GoalType.GAIN:
        beginner = training_experience is TrainingExperience.BEGINNER
        return GoalConstraint(
            goal_type=goal,
            min_weekly_rate_pct=0.1,
            max_weekly_rate_pct=0.5 if beginner else 0.25,
            recommended_rate_pct=0.3 if beginner else 0.15,
            min_calorie_floor=1200,
            protein_multiplier_per_kg=1.8,
            description="Lean muscle gain with minimal fat",
        )
    if goal is GoalType.MAINTENANCE:
        return GoalConstraint(
            goal_type=goal,
            min_weekly_rate_pct=-0.1,
            max_weekly_rate_pct=0.1,
            recommended_rate_pct=0.0,
            min_calorie_floor=1200,
            protein_multiplier_per_kg=1.6,
            description="Weight stability",
        )
    return GoalConstraint(
        goal_type=GoalType.RECOMP,
        min_weekly_rate_pct=-0.15,
        max_weekly_rate_pct=0.05,
        recommended_rate_pct=-0.05,
        min_calorie_floor=1700 if sex is Sex.MALE else 1400,
        protein_multiplier_per_kg=2.2,
        description="Simultaneous fat loss and muscle gain",
    )


@dataclass
class RateAssessment:
    """Whether a weekly rate is safe and sustainable for a goal."""

    safe: bool
    progress_pct: float
    warnings: list[str] = field(default_factory=list)


def assess_rate_safety(weekly_rate_pct: float, constraint: GoalConstraint) -> RateAssessment:
    """
    Check a signed weekly rate against a goal's constraint.

    A rate is safe within 80%-120% of the band edges, so small excursions
    are tolerated.

    Args:
        weekly_rate_pct: Signed weekly change (% body weight, negative = losing)
        constraint: Goal constraint

    Returns:
        RateAssessment
    """
    require_finite(weekly_rate_pct, "weekly_rate_pct", allow_negative=True)
    progress = constraint.progress(weekly_rate_pct)
    goal = constraint.goal_type
    warnings = []

    if progress < constraint.min_weekly_rate_pct:
        if goal is GoalType.CUT:
            warnings.append("Rate may be too slow to see meaningful progress.")
        elif goal is GoalType.GAIN:
            warnings.append("Rate is below the minimum for a muscle growth stimulus.")
        else:
            warnings.append("Weight is trending down faster than the goal allows.")

    if progress > constraint.max_weekly_rate_pct:
        if goal is GoalType.CUT:
            warnings.append("Rate is too aggressive - high risk of muscle loss.")
            warnings.append("Consider a more moderate deficit for sustainability.")
        elif goal is GoalType.GAIN:
            warnings.append("Rate is too high - excessive fat gain likely.")
            warnings.append("Slow down to maximize muscle-to-fat ratio.")
        else:
            warnings.append("Weight is trending up faster than the goal allows.")

    low, high = constraint.min_weekly_rate_pct, constraint.max_weekly_rate_pct
    lower_bound = low * SAFE_LOWER_FACTOR if low >= 0 else low * SAFE_UPPER_FACTOR
    upper_bound = high * SAFE_UPPER_FACTOR if high >= 0 else high * SAFE_LOWER_FACTOR
    return RateAssessment(
        safe=lower_bound <= progress <= upper_bound,
        progress_pct=progress,
        warnings=warnings,
    )


def calculate_macros(
    calories: float,
    body_weight_kg: float,
    constraint: GoalConstraint,
    current_fat_g: float = 0.0,
    check_in: Optional[SubjectiveCheckIn] = None,
) -> Macros:
    """
    Recompute macro targets for a calorie target.

    Protein is fixed by body weight, fat holds at least the goal floor (or
    the current fat target if higher), and carbs absorb the remainder.

    Args:
        calories: New calorie target
        body_weight_kg: Current (trend) body weight
        constraint: Goal constraint supplying the protein multiplier
        current_fat_g: Existing fat target, kept when above the floor
        check_in: Very high hunger raises protein by 10%

    Returns:
        Macros with fiber at 14 g per 1000 kcal

    Example:
        >>> c = get_goal_constraint(GoalType.CUT)
        >>> calculate_macros(2000, 80, c).protein_g
        184.0
    """
    require_finite(calories, "calories")
    require_finite(body_weight_kg, "body_weight_kg")
    if body_weight_kg == 0:
        raise InvalidInputError("body_weight_kg must be positive")

    protein = body_weight_kg * constraint.protein_multiplier_per_kg
    if check_in is not None and check_in.very_high_hunger:
        protein *= HUNGER_PROTEIN_BOOST
    protein = float(round(protein))

    fat = float(round(max(body_weight_kg * constraint.fat_floor_g_per_kg, current_fat_g)))

    remaining = calories - protein * PROTEIN_KCAL - fat * FAT_KCAL
    carbs = float(max(MIN_CARBS_G, round(remaining / CARB_KCAL)))

    return Macros(
        calories=float(round(calories)),
        protein_g=protein,
        carbs_g=carbs,
        fat_g=fat,
        fiber_g=float(round(calories / 1000 * FIBER_G_PER_1000_KCAL)),
    )
