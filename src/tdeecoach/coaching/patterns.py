"""Behavioral pattern detection over intake logs.

Looks for four recognizable habits, emitted in this order when present:
weekend deviation, meal skipping, binge-restrict cycling, steady intake.
Patterns feed data-quality advice and coaching insights; they never change
the TDEE estimate itself.
"""

from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from tdeecoach.errors import safe_ratio
from tdeecoach.tracking.models import IntakeSample, sort_by_date
from tdeecoach.tracking.quality import intake_stability

logger = logging.getLogger(__name__)

# Minimum number of intake logs before any pattern is reported
MIN_PATTERN_SAMPLES = 14

# Weekend vs weekday
MIN_WEEKDAY_SAMPLES = 5
MIN_WEEKEND_SAMPLES = 2
WEEKEND_DEVIATION_THRESHOLD = 0.15
WEEKEND_DEVIATION_FULL_STRENGTH = 0.30

# Meal skipping
LOW_CALORIE_DAY = 1000
SKIPPING_FRACTION_THRESHOLD = 0.10
SKIPPING_FULL_STRENGTH = 0.30

# Binge-restrict
HIGH_DAY_FACTOR = 1.2
LOW_DAY_FACTOR = 0.8
ALTERNATION_THRESHOLD = 0.30
ALTERNATION_FULL_STRENGTH = 0.50

# Steady
STEADY_STABILITY_THRESHOLD = 0.7


class PatternType(Enum):
    """Recognized intake patterns."""

    WEEKEND_DEVIATION = "weekend_deviation"
    MEAL_SKIPPING = "meal_skipping"
    BINGE_RESTRICT = "binge_restrict"
    STEADY = "steady"


class Impact(Enum):
    """Effect of a pattern on estimate reliability and progress."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class BehavioralPattern:
    """A detected pattern with strength in [0, 1]."""

    type: PatternType
    strength: float
    impact: Impact
    description: str

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "strength": round(self.strength, 3),
            "impact": self.impact.value,
            "description": self.description,
        }


def detect_weekend_deviation(samples: list[IntakeSample]) -> Optional[BehavioralPattern]:
    """Weekend (Sat/Sun) average calories differing >15% from weekdays."""
    weekday = [s.calories for s in samples if s.date.weekday() < 5]
    weekend = [s.calories for s in samples if s.date.weekday() >= 5]
    if len(weekday) < MIN_WEEKDAY_SAMPLES or len(weekend) < MIN_WEEKEND_SAMPLES:
        return None

    weekday_avg = statistics.fmean(weekday)
    weekend_avg = statistics.fmean(weekend)
    deviation = safe_ratio(abs(weekend_avg - weekday_avg), weekday_avg)
    if deviation is None or deviation <= WEEKEND_DEVIATION_THRESHOLD:
        return None

    higher = weekend_avg > weekday_avg
    return BehavioralPattern(
        type=PatternType.WEEKEND_DEVIATION,
        strength=min(deviation / WEEKEND_DEVIATION_FULL_STRENGTH, 1.0),
        impact=Impact.NEGATIVE if higher else Impact.POSITIVE,
        description=(
            f"Weekend calories {deviation * 100:.0f}% "
            f"{'higher' if higher else 'lower'} than weekdays"
        ),
    )


def detect_meal_skipping(samples: list[IntakeSample]) -> Optional[BehavioralPattern]:
    """More than 10% of logged days under 1000 kcal."""
    low_days = sum(1 for s in samples if s.calories < LOW_CALORIE_DAY)
    fraction = low_days / len(samples)
    if fraction <= SKIPPING_FRACTION_THRESHOLD:
        return None
    return BehavioralPattern(
        type=PatternType.MEAL_SKIPPING,
        strength=min(fraction / SKIPPING_FULL_STRENGTH, 1.0),
        impact=Impact.NEGATIVE,
        description=f"{fraction * 100:.0f}% of days have very low calorie intake",
    )


def detect_binge_restrict(samples: list[IntakeSample]) -> Optional[BehavioralPattern]:
    """Consecutive logs flipping between >120% and <80% of mean intake."""
    if len(samples) < 2:
        return None
    mean = statistics.fmean(s.calories for s in samples)
    high = mean * HIGH_DAY_FACTOR
    low = mean * LOW_DAY_FACTOR

    alternations = 0
    for prev, curr in zip(samples, samples[1:]):
        if (prev.calories > high and curr.calories < low) or (
            prev.calories < low and curr.calories > high
        ):
            alternations += 1

    rate = alternations / (len(samples) - 1)
    if rate <= ALTERNATION_THRESHOLD:
        return None
    return BehavioralPattern(
        type=PatternType.BINGE_RESTRICT,
        strength=min(rate / ALTERNATION_FULL_STRENGTH, 1.0),
        impact=Impact.NEGATIVE,
        description="Alternating high and low calorie days",
    )


def detect_steady_intake(samples: list[IntakeSample]) -> Optional[BehavioralPattern]:
    """Calorie stability score above 0.7."""
    stability = intake_stability([s.calories for s in samples])
    if stability <= STEADY_STABILITY_THRESHOLD:
        return None
    return BehavioralPattern(
        type=PatternType.STEADY,
        strength=stability,
        impact=Impact.POSITIVE,
        description="Consistent daily calorie intake",
    )


# Emission order
DETECTORS: tuple[Callable[[list[IntakeSample]], Optional[BehavioralPattern]], ...] = (
    detect_weekend_deviation,
    detect_meal_skipping,
    detect_binge_restrict,
    detect_steady_intake,
)


def detect_behavioral_patterns(intake: Iterable[IntakeSample]) -> list[BehavioralPattern]:
    """
    Scan intake logs for behavioral patterns.

    Args:
        intake: Intake samples in any order

    Returns:
        Detected patterns in emission order; empty with fewer than 14 logs

    Example:
        >>> patterns = detect_behavioral_patterns(samples)
        >>> [p.type.value for p in patterns]
        ['weekend_deviation', 'steady']
    """
    samples = sort_by_date(intake)
    if len(samples) < MIN_PATTERN_SAMPLES:
        return []

    patterns = []
    for detector in DETECTORS:
        pattern = detector(samples)
        if pattern is not None:
            logger.debug("Detected %s (strength %.2f)", pattern.type.value, pattern.strength)
            patterns.append(pattern)
    return patterns
