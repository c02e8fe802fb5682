"""Goal-constrained calorie and macro recommendations.

The engine reads the observed weekly rate, adherence and the weekly
check-in, and proposes a calorie target that moves the rate toward the
goal's recommended rate. Each decision carries a plain-language reasoning
list so the user can see why it was made.

Decision order:
1. Rate vs goal band: below min -> move toward recommended (moderate);
   beyond max -> move back toward recommended (urgent)
2. Subjective overrides (cut: low energy / high hunger; recomp: poor training)
3. Data consistency check (lowers confidence, defers optional changes)
4. Calorie floor, then macro recomputation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from tdeecoach.coaching.adherence import AdherenceMetrics
from tdeecoach.coaching.goals import (
    GoalConstraint,
    assess_rate_safety,
    calculate_macros,
    get_goal_constraint,
)
from tdeecoach.coaching.models import GoalType, Macros, SubjectiveCheckIn, UserGoalProfile
from tdeecoach.errors import InvalidInputError, require_finite
from tdeecoach.tracking.models import KCAL_PER_KG, ExpenditureEstimate

logger = logging.getLogger(__name__)

# Largest single adjustment, absolute and relative to current calories
MAX_ADJUSTMENT_KCAL = 200.0
MAX_ADJUSTMENT_FRACTION = 0.10

# Small nudges for subjective overrides
COMFORT_INCREASE_KCAL = 100.0
RECOMP_PERFORMANCE_INCREASE_KCAL = 75.0

# Data consistency thresholds
MIN_LOGGING_CONSISTENCY = 80.0
MIN_ADHERENCE_SCORE = 70.0
HIGH_CONFIDENCE_LOGGING = 85.0
HIGH_CONFIDENCE_ADHERENCE = 80.0

# Below this estimate confidence the TDEE itself is still being learned
UNCERTAIN_ESTIMATE_CONFIDENCE = 30.0


class AdjustmentDirection(Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    MAINTAIN = "maintain"


class Confidence(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Priority(Enum):
    URGENT = "urgent"
    MODERATE = "moderate"
    OPTIONAL = "optional"


@dataclass
class Recommendation:
    """Proposed calorie/macro change with its reasoning."""

    direction: AdjustmentDirection
    new_calories: float
    new_macros: Macros
    reasoning: list[str]
    confidence: Confidence
    priority: Priority
    calorie_change: float = 0.0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "new_calories": round(self.new_calories),
            "calorie_change": round(self.calorie_change),
            "new_macros": self.new_macros.to_dict(),
            "reasoning": list(self.reasoning),
            "confidence": self.confidence.value,
            "priority": self.priority.value,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class PerformanceSnapshot:
    """
    Everything the engine needs about recent progress.

    Attributes:
        weekly_rate_pct: Signed weekly weight change (% body weight)
        body_weight_kg: Current trend weight
        adherence_score: Overall adherence (0-100)
        logging_consistency: Percent of days logged (0-100)
        check_in: Weekly subjective ratings
        estimate_confidence: Confidence of the underlying TDEE estimate
        estimated_tdee: Current TDEE estimate, if any
    """

    weekly_rate_pct: float
    body_weight_kg: float
    adherence_score: float
    logging_consistency: float
    check_in: SubjectiveCheckIn
    estimate_confidence: Optional[float] = None
    estimated_tdee: Optional[float] = None

    def __post_init__(self) -> None:
        require_finite(self.weekly_rate_pct, "weekly_rate_pct", allow_negative=True)
        require_finite(self.body_weight_kg, "body_weight_kg")
        if self.body_weight_kg == 0:
            raise InvalidInputError("body_weight_kg must be positive")
        require_finite(self.adherence_score, "adherence_score")
        require_finite(self.logging_consistency, "logging_consistency")

    @classmethod
    def from_results(
        cls,
        estimate: ExpenditureEstimate,
        adherence: AdherenceMetrics,
        check_in: SubjectiveCheckIn,
        body_weight_kg: Optional[float] = None,
    ) -> "PerformanceSnapshot":
        """Build a snapshot from estimator and adherence output.

        Raises:
            InvalidInputError: No body weight given and no trend available
        """
        weight = body_weight_kg if body_weight_kg is not None else estimate.trend_weight
        if weight is None:
            raise InvalidInputError(
                "body weight is required when no weight trend is available"
            )
        return cls(
            weekly_rate_pct=estimate.weekly_change_rate,
            body_weight_kg=weight,
            adherence_score=adherence.overall_score,
            logging_consistency=adherence.logging_consistency,
            check_in=check_in,
            estimate_confidence=estimate.confidence,
            estimated_tdee=estimate.estimated_tdee,
        )


def kcal_per_weekly_pct(body_weight_kg: float) -> float:
    """Daily calories that shift the weekly rate by one percent of body weight."""
    return body_weight_kg / 100 * KCAL_PER_KG / 7


def _describe_rate(rate: float) -> str:
    return f"{rate:+.2f}%/week"


class GoalRecommendationEngine:
    """
    Turn progress data into a goal-constrained recommendation.

    Attributes:
        constraints: Optional per-goal overrides of the default constraints
    """

    def __init__(self, constraints: Optional[dict[GoalType, GoalConstraint]] = None) -> None:
        self.constraints = dict(constraints or {})

    def constraint_for(self, profile: UserGoalProfile) -> GoalConstraint:
        if profile.goal_type in self.constraints:
            return self.constraints[profile.goal_type]
        return get_goal_constraint(
            profile.goal_type,
            sex=profile.sex,
            training_experience=profile.training_experience,
        )

    def recommend(
        self,
        profile: UserGoalProfile,
        performance: PerformanceSnapshot,
    ) -> Recommendation:
        """
        Recommend a calorie and macro target.

        Args:
            profile: Goal and current targets
            performance: Recent progress and check-in

        Returns:
            Recommendation; ``new_calories`` is never below the goal's floor
            and ``reasoning`` is never empty
        """
        constraint = self.constraint_for(profile)
        goal = constraint.goal_type
        check_in = performance.check_in
        rate = performance.weekly_rate_pct
        progress = constraint.progress(rate)
        current = profile.target_macros.calories
        cap = min(MAX_ADJUSTMENT_KCAL, current * MAX_ADJUSTMENT_FRACTION)

        reasoning: list[str] = []
        priority = Priority.MODERATE
        change = 0.0

        # Calorie change needed to reach the recommended rate, capped
        target_rate = constraint.progress_sign * constraint.recommended_rate_pct
        needed = (target_rate - rate) * kcal_per_weekly_pct(performance.body_weight_kg)
        capped = max(-cap, min(cap, needed))
        recommended = f"{constraint.recommended_rate_pct:.2f}%/week"

        if progress < constraint.min_weekly_rate_pct:
            change = capped
            if goal is GoalType.CUT:
                reasoning.append(
                    f"Insufficient deficit: weight loss is slower than target "
                    f"({progress + 0.0:.2f}% vs {recommended})."
                )
            elif goal is GoalType.GAIN:
                reasoning.append(
                    f"Insufficient surplus: weight gain is below target "
                    f"({rate + 0.0:.2f}% vs {recommended})."
                )
            else:
                reasoning.append(
                    f"Weight is dropping faster than the {goal.value} range allows "
                    f"({_describe_rate(rate)})."
                )
        elif progress > constraint.max_weekly_rate_pct:
            change = capped
            priority = Priority.URGENT
            if goal is GoalType.CUT:
                reasoning.append(
                    f"Weight loss is too rapid ({progress + 0.0:.2f}%/week, max "
                    f"{constraint.max_weekly_rate_pct:.2f}%) - increasing calories to "
                    "preserve muscle."
                )
            elif goal is GoalType.GAIN:
                reasoning.append(
                    f"Weight gain is too rapid ({rate + 0.0:.2f}%/week, max "
                    f"{constraint.max_weekly_rate_pct:.2f}%) - reducing calories to "
                    "minimize fat gain."
                )
            else:
                reasoning.append(
                    f"Weight is rising faster than the {goal.value} range allows "
                    f"({_describe_rate(rate)})."
                )
        else:
            reasoning.append(
                f"Weekly rate {_describe_rate(rate)} is within the {goal.value} range."
            )

        if goal is GoalType.CUT and (check_in.low_energy or check_in.high_hunger):
            if change < 0:
                change = 0.0
                reasoning.append(
                    "Low energy or high hunger reported - holding calories instead of "
                    "cutting further."
                )
            elif change == 0:
                change = min(COMFORT_INCREASE_KCAL, cap)
                reasoning.append(
                    "Low energy or high hunger reported - a small calorie increase "
                    "should make the deficit easier to sustain."
                )

        if goal is GoalType.RECOMP and check_in.poor_training and rate < 0 and change <= 0:
            change = min(RECOMP_PERFORMANCE_INCREASE_KCAL, cap)
            reasoning.append(
                "Training performance is suffering while losing weight - "
                "slight calorie increase recommended."
            )

        confidence = Confidence.MEDIUM
        if (
            performance.logging_consistency >= HIGH_CONFIDENCE_LOGGING
            and performance.adherence_score >= HIGH_CONFIDENCE_ADHERENCE
        ):
            confidence = Confidence.HIGH

        if (
            performance.estimate_confidence is not None
            and performance.estimate_confidence < UNCERTAIN_ESTIMATE_CONFIDENCE
        ):
            confidence = Confidence.MEDIUM if confidence is Confidence.HIGH else confidence
            reasoning.append("TDEE estimate is still being learned - more data will sharpen it.")

        if (
            performance.logging_consistency < MIN_LOGGING_CONSISTENCY
            or performance.adherence_score < MIN_ADHERENCE_SCORE
        ):
            confidence = Confidence.LOW
            if priority is not Priority.URGENT:
                priority = Priority.OPTIONAL
            reasoning.append(
                "Focus on consistent logging and hitting current targets before "
                "making further calorie changes."
            )

        new_calories = current + change
        if new_calories < constraint.min_calorie_floor:
            new_calories = constraint.min_calorie_floor
            reasoning.append(
                f"Calories held at the {constraint.min_calorie_floor:.0f} kcal safety floor."
            )
        new_calories = float(round(new_calories))
        actual_change = new_calories - current

        if actual_change > 0:
            direction = AdjustmentDirection.INCREASE
            reasoning.append(f"Recommended increase of {actual_change:.0f} calories.")
        elif actual_change < 0:
            direction = AdjustmentDirection.DECREASE
            reasoning.append(f"Recommended decrease of {-actual_change:.0f} calories.")
        else:
            direction = AdjustmentDirection.MAINTAIN
            reasoning.append("Current calorie target is appropriate - maintain course.")
            if priority is not Priority.URGENT:
                priority = Priority.OPTIONAL

        logger.debug(
            "Recommendation for %s: %s %.0f -> %.0f (%s, %s)",
            goal.value,
            direction.value,
            current,
            new_calories,
            confidence.value,
            priority.value,
        )

        return Recommendation(
            direction=direction,
            new_calories=new_calories,
            new_macros=calculate_macros(
                new_calories,
                performance.body_weight_kg,
                constraint,
                current_fat_g=profile.target_macros.fat_g,
                check_in=check_in,
            ),
            reasoning=reasoning,
            confidence=confidence,
            priority=priority,
            calorie_change=actual_change,
            warnings=assess_rate_safety(rate, constraint).warnings,
        )
