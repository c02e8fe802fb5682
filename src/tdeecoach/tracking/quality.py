"""Data quality scoring for weight and intake logs.

Rates how far a data window can be trusted from three signals:
- logging density: fraction of days with an intake log
- weighing frequency: weigh-ins relative to one every three days
- stability: how steady daily calories are (coefficient of variation)

The overall quality is a fixed blend of the three. Confidence in a specific
estimate additionally decays with the age of the newest data.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from tdeecoach.errors import InvalidInputError, safe_ratio
from tdeecoach.tracking.models import IntakeSample, WeightSample

if TYPE_CHECKING:
    from tdeecoach.coaching.patterns import BehavioralPattern

# Blend weights for the overall quality score
DENSITY_WEIGHT = 0.4
WEIGHING_WEIGHT = 0.3
STABILITY_WEIGHT = 0.3

# Coefficient of variation at which stability reaches zero
CV_CEILING = 0.4

# Expected spacing between weigh-ins (days)
WEIGH_IN_INTERVAL_DAYS = 3

DEFAULT_WINDOW_DAYS = 30
DEFAULT_HALF_LIFE_DAYS = 30.0

# Stability reported when there are too few logs to measure spread
UNKNOWN_STABILITY = 0.5


def intake_stability(calories: Sequence[float]) -> float:
    """Convert the coefficient of variation of daily calories to a 0-1 score.

    0 means wildly erratic, 1 perfectly steady. A CV of 0.4 or more scores 0.

    Args:
        calories: Daily calorie totals

    Returns:
        Stability score; 0.5 with fewer than two values, 0 when the mean is 0
    """
    if len(calories) < 2:
        return UNKNOWN_STABILITY
    cv = safe_ratio(statistics.pstdev(calories), statistics.fmean(calories))
    if cv is None:
        return 0.0
    return max(0.0, 1 - min(1.0, cv / CV_CEILING))


def logging_density(logged_days: int, window_days: int) -> float:
    """Fraction of window days with an intake log, clamped to 1."""
    if window_days <= 0:
        return 0.0
    return min(1.0, logged_days / window_days)


def weighing_frequency(weigh_ins: int, window_days: int) -> float:
    """Weigh-ins relative to one every three days, clamped to 1."""
    if window_days <= 0:
        return 0.0
    return min(1.0, weigh_ins / (window_days / WEIGH_IN_INTERVAL_DAYS))


def recency_weight(days_ago: float, half_life_days: float = DEFAULT_HALF_LIFE_DAYS) -> float:
    """Exponential decay weight: 1 for today, 0.5 after one half-life."""
    if half_life_days <= 0:
        raise InvalidInputError(f"half_life_days must be positive, got {half_life_days}")
    return 0.5 ** (max(0.0, days_ago) / half_life_days)


@dataclass
class DataQualityReport:
    """Quality of one data window."""

    window_days: int
    logged_days: int
    weigh_ins: int
    logging_density: float
    weighing_frequency: float
    stability: float
    overall: float  # 0-1
    recommendations: list[str] = field(default_factory=list)

    @property
    def score(self) -> float:
        """Overall quality on a 0-100 scale."""
        return self.overall * 100

    def to_dict(self) -> dict:
        return {
            "window_days": self.window_days,
            "logged_days": self.logged_days,
            "weigh_ins": self.weigh_ins,
            "logging_density": round(self.logging_density, 3),
            "weighing_frequency": round(self.weighing_frequency, 3),
            "stability": round(self.stability, 3),
            "score": round(self.score, 1),
            "recommendations": list(self.recommendations),
        }


def blend_quality(density: float, weighing: float, stability: float) -> float:
    """Weighted blend 0.4·density + 0.3·weighing + 0.3·stability."""
    return (
        DENSITY_WEIGHT * density
        + WEIGHING_WEIGHT * weighing
        + STABILITY_WEIGHT * stability
    )


def quality_recommendations(
    density: float,
    weighing: float,
    stability: float,
    patterns: Optional[Iterable["BehavioralPattern"]] = None,
) -> list[str]:
    """Human-readable advice for improving data quality."""
    recommendations = []
    if density < 0.7:
        recommendations.append(
            "Log meals more consistently - aim for at least 5 days per week"
        )
    if weighing < 0.7:
        recommendations.append("Weigh yourself more frequently - aim for every 2-3 days")
    if stability < 0.5:
        recommendations.append(
            "Try to keep daily calories more consistent for an accurate TDEE estimate"
        )

    pattern_advice = {
        "weekend_deviation": "Consider planning weekend meals to match weekday consistency",
        "meal_skipping": "Avoid skipping meals - it makes TDEE estimates less accurate",
        "binge_restrict": "Aim for steady daily calories rather than alternating high/low days",
    }
    for pattern in patterns or ():
        if pattern.impact.value == "negative" and pattern.type.value in pattern_advice:
            recommendations.append(pattern_advice[pattern.type.value])
    return recommendations


def score_data_quality(
    weights: Iterable[WeightSample],
    intake: Iterable[IntakeSample],
    window_days: int = DEFAULT_WINDOW_DAYS,
    as_of: Optional[date] = None,
    patterns: Optional[Iterable["BehavioralPattern"]] = None,
) -> DataQualityReport:
    """
    Score the quality of the most recent data window.

    The window ends at ``as_of`` (default: newest date in either series) and
    spans ``window_days``, shortened to the available history so a new user
    is not penalized for days before their first log.

    Args:
        weights: Weight samples
        intake: Intake samples
        window_days: Maximum window length
        as_of: Window end date
        patterns: Detected behavioral patterns, used for advice only

    Returns:
        DataQualityReport
    """
    if window_days <= 0:
        raise InvalidInputError(f"window_days must be positive, got {window_days}")

    weights = list(weights)
    intake = list(intake)
    dates = [s.date for s in weights] + [s.date for s in intake]
    if not dates:
        return DataQualityReport(
            window_days=0,
            logged_days=0,
            weigh_ins=0,
            logging_density=0.0,
            weighing_frequency=0.0,
            stability=0.0,
            overall=0.0,
            recommendations=["Start logging meals and weight to build an estimate"],
        )

    end = as_of or max(dates)
    history_days = (end - min(dates)).days + 1
    effective_window = max(1, min(window_days, history_days))
    start = end - timedelta(days=effective_window - 1)

    logged = [s for s in intake if start <= s.date <= end]
    weigh_in_days = {s.date for s in weights if start <= s.date <= end}

    density = logging_density(len({s.date for s in logged}), effective_window)
    weighing = weighing_frequency(len(weigh_in_days), effective_window)
    stability = intake_stability([s.calories for s in logged])

    return DataQualityReport(
        window_days=effective_window,
        logged_days=len(logged),
        weigh_ins=len(weigh_in_days),
        logging_density=density,
        weighing_frequency=weighing,
        stability=stability,
        overall=blend_quality(density, weighing, stability),
        recommendations=quality_recommendations(density, weighing, stability, patterns),
    )


def estimate_confidence(
    report: DataQualityReport,
    days_since_data: float = 0.0,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
    cap: float = 100.0,
) -> float:
    """
    Confidence (0-100) for an estimate built on ``report``'s window.

    Args:
        report: Quality of the window the estimate used
        days_since_data: Age of the newest data relative to the estimate date
        half_life_days: Recency half-life
        cap: Upper bound for the selected algorithm

    Returns:
        ``min(cap, overall × recency × 100)``
    """
    confidence = report.overall * recency_weight(days_since_data, half_life_days) * 100
    return max(0.0, min(cap, confidence))


@dataclass
class DataPeriod:
    """A fixed-length slice of history with its trust weight."""

    start_date: date
    end_date: date
    intake: list[IntakeSample]
    weights: list[WeightSample]
    consistency: float  # 0-1
    stability: float  # 0-1
    recency: float  # 0-1
    weight: float  # 0-1 blended trust


def split_into_periods(
    weights: Iterable[WeightSample],
    intake: Iterable[IntakeSample],
    period_days: int = 7,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
) -> list[DataPeriod]:
    """
    Partition history into consecutive periods and weight each one.

    Period weight = 0.4·consistency + 0.4·stability + 0.2·recency. Periods
    with no data at all are skipped.

    Args:
        weights: Weight samples
        intake: Intake samples
        period_days: Period length
        half_life_days: Recency half-life

    Returns:
        Date-ordered periods
    """
    if period_days <= 0:
        raise InvalidInputError(f"period_days must be positive, got {period_days}")

    weights = sorted(weights, key=lambda s: s.date)
    intake = sorted(intake, key=lambda s: s.date)
    dates = [s.date for s in weights] + [s.date for s in intake]
    if not weights or not intake:
        return []

    first, last = min(dates), max(dates)
    periods: list[DataPeriod] = []
    period_start = first
    while period_start <= last:
        period_end = period_start + timedelta(days=period_days - 1)
        period_intake = [s for s in intake if period_start <= s.date <= period_end]
        period_weights = [s for s in weights if period_start <= s.date <= period_end]

        if period_intake or period_weights:
            consistency = min(1.0, len(period_intake) / period_days)
            stability = intake_stability([s.calories for s in period_intake])
            recency = recency_weight((last - period_start).days, half_life_days)
            periods.append(
                DataPeriod(
                    start_date=period_start,
                    end_date=period_end,
                    intake=period_intake,
                    weights=period_weights,
                    consistency=consistency,
                    stability=stability,
                    recency=recency,
                    weight=0.4 * consistency + 0.4 * stability + 0.2 * recency,
                )
            )
        period_start = period_end + timedelta(days=1)
    return periods


def weighted_tdee(estimates: Iterable[tuple[DataPeriod, float]]) -> tuple[Optional[float], float]:
    """
    Blend per-period TDEE values by period weight.

    Returns:
        Tuple of (weighted TDEE or ``None`` without usable weight,
        confidence 0-1 capped at a total weight of 1)
    """
    total_weight = 0.0
    weighted_sum = 0.0
    for period, tdee in estimates:
        weighted_sum += tdee * period.weight
        total_weight += period.weight
    if total_weight <= 0:
        return None, 0.0
    return weighted_sum / total_weight, min(total_weight, 1.0)
