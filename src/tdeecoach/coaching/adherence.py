"""Adherence scoring against calorie and macro targets.

Scoring is deliberately forgiving: anything inside a tolerance band around
the target scores 100, and the score decays exponentially with the distance
beyond the band (not beyond the target). Results are never rounded here so
the decay stays continuous; formatting rounds for display.
"""

from __future__ import annotations

import calendar
import math
import statistics
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Iterable, Optional

from tdeecoach.coaching.models import Macros
from tdeecoach.errors import InvalidInputError, require_finite
from tdeecoach.tracking.models import IntakeSample, ensure_increasing_dates, sort_by_date

# Decay rate beyond the tolerance band
DECAY_RATE = 3.0

# A day is in range when calories and protein both score at least this
IN_RANGE_THRESHOLD = 90.0

# Trend classification
MIN_TREND_SAMPLES = 14
TREND_THRESHOLD = 5.0

# Overall score blend
CALORIE_WEIGHT = 0.4
PROTEIN_WEIGHT = 0.3
CONSISTENCY_WEIGHT = 0.3


def adherence(actual: float, target: float, tolerance: float) -> float:
    """
    Score one actual value against a target with a tolerance band.

    Args:
        actual: Logged amount
        target: Target amount
        tolerance: Fractional half-width of the band (0.05 = ±5%)

    Returns:
        100 inside ``target·(1±tolerance)`` (inclusive), otherwise
        ``100·exp(-3·overshoot)`` where overshoot is the distance beyond the
        band divided by the target. A zero target scores 100.

    Example:
        >>> adherence(2100, 2000, 0.05)
        100.0
    """
    require_finite(actual, "actual")
    require_finite(target, "target")
    require_finite(tolerance, "tolerance")
    if target == 0:
        return 100.0

    lower = target * (1 - tolerance)
    upper = target * (1 + tolerance)
    if lower <= actual <= upper:
        return 100.0

    if actual < lower:
        overshoot = (lower - actual) / target
    else:
        overshoot = (actual - upper) / target
    return 100.0 * math.exp(-DECAY_RATE * overshoot)


@dataclass(frozen=True)
class MacroTolerances:
    """Per-macro tolerance bands."""

    calories: float = 0.05
    protein: float = 0.10
    carbs: float = 0.15
    fat: float = 0.15

    def __post_init__(self) -> None:
        for name in ("calories", "protein", "carbs", "fat"):
            value = getattr(self, name)
            require_finite(value, f"{name} tolerance")
            if value >= 1:
                raise InvalidInputError(f"{name} tolerance must be below 1, got {value}")


@dataclass(frozen=True)
class MacroAdherence:
    """Actual vs target for one macro on one day."""

    actual: float
    target: float
    adherence_pct: float

    def to_dict(self) -> dict[str, float]:
        return {
            "actual": round(self.actual, 1),
            "target": round(self.target, 1),
            "adherence_pct": round(self.adherence_pct, 1),
        }


@dataclass(frozen=True)
class AdherenceRecord:
    """One calendar day. Unlogged days carry no per-macro scores."""

    date: date
    logged: bool
    within_range: bool
    per_macro: dict[str, MacroAdherence] = field(default_factory=dict)

    def score(self, macro: str) -> Optional[float]:
        entry = self.per_macro.get(macro)
        return entry.adherence_pct if entry else None

    @property
    def headline(self) -> Optional[float]:
        """Mean of calorie and protein adherence."""
        if not self.logged:
            return None
        return (self.per_macro["calories"].adherence_pct + self.per_macro["protein"].adherence_pct) / 2

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "logged": self.logged,
            "within_range": self.within_range,
            "per_macro": {k: v.to_dict() for k, v in self.per_macro.items()},
        }


class AdherenceTrend(Enum):
    """Direction of adherence over the window."""

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


@dataclass
class AdherenceMetrics:
    """Aggregate adherence over a window of calendar days."""

    calorie_adherence: float
    protein_adherence: float
    carbs_adherence: float
    fat_adherence: float
    logging_consistency: float  # % of window days logged
    overall_score: float
    streak_days: int
    trend: AdherenceTrend
    total_days: int
    logged_days: int
    records: list[AdherenceRecord] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)

    def to_dict(self, include_records: bool = False) -> dict[str, Any]:
        data = {
            "calorie_adherence": round(self.calorie_adherence, 1),
            "protein_adherence": round(self.protein_adherence, 1),
            "carbs_adherence": round(self.carbs_adherence, 1),
            "fat_adherence": round(self.fat_adherence, 1),
            "logging_consistency": round(self.logging_consistency, 1),
            "overall_score": round(self.overall_score, 1),
            "streak_days": self.streak_days,
            "trend": self.trend.value,
            "total_days": self.total_days,
            "logged_days": self.logged_days,
            "insights": list(self.insights),
        }
        if include_records:
            data["records"] = [r.to_dict() for r in self.records]
        return data


def score_day(
    sample: IntakeSample,
    targets: Macros,
    tolerances: MacroTolerances = MacroTolerances(),
) -> AdherenceRecord:
    """Score one logged day against targets."""
    per_macro = {
        "calories": MacroAdherence(
            sample.calories,
            targets.calories,
            adherence(sample.calories, targets.calories, tolerances.calories),
        ),
        "protein": MacroAdherence(
            sample.protein_g,
            targets.protein_g,
            adherence(sample.protein_g, targets.protein_g, tolerances.protein),
        ),
        "carbs": MacroAdherence(
            sample.carbs_g,
            targets.carbs_g,
            adherence(sample.carbs_g, targets.carbs_g, tolerances.carbs),
        ),
        "fat": MacroAdherence(
            sample.fat_g,
            targets.fat_g,
            adherence(sample.fat_g, targets.fat_g, tolerances.fat),
        ),
    }
    within_range = (
        per_macro["calories"].adherence_pct >= IN_RANGE_THRESHOLD
        and per_macro["protein"].adherence_pct >= IN_RANGE_THRESHOLD
    )
    return AdherenceRecord(
        date=sample.date,
        logged=True,
        within_range=within_range,
        per_macro=per_macro,
    )


def current_streak(records: list[AdherenceRecord]) -> int:
    """Consecutive most-recent days in range. An unlogged day ends the streak."""
    streak = 0
    for record in sorted(records, key=lambda r: r.date, reverse=True):
        if not record.within_range:
            break
        streak += 1
    return streak


def classify_trend(records: list[AdherenceRecord]) -> AdherenceTrend:
    """
    Compare headline adherence of the second half of logged days to the first.

    Needs at least 14 logged days; otherwise stable.
    """
    logged = [r for r in sorted(records, key=lambda r: r.date) if r.logged]
    if len(logged) < MIN_TREND_SAMPLES:
        return AdherenceTrend.STABLE

    midpoint = len(logged) // 2
    first = statistics.fmean(r.headline for r in logged[:midpoint])
    second = statistics.fmean(r.headline for r in logged[midpoint:])
    difference = second - first
    if difference > TREND_THRESHOLD:
        return AdherenceTrend.IMPROVING
    if difference < -TREND_THRESHOLD:
        return AdherenceTrend.DECLINING
    return AdherenceTrend.STABLE


def adherence_insights(metrics: AdherenceMetrics) -> list[str]:
    """Short, non-judgmental observations about the window."""
    insights = []
    logged = [r for r in metrics.records if r.logged]

    if metrics.logging_consistency < 60:
        insights.append("Try to log meals more consistently - aim for at least 5 days per week.")
    elif metrics.logging_consistency >= 90:
        insights.append("Excellent logging consistency! Keep it up.")

    if logged and metrics.calorie_adherence < 70:
        avg_gap = statistics.fmean(
            abs(r.per_macro["calories"].actual - r.per_macro["calories"].target) for r in logged
        )
        if avg_gap > 0:
            insights.append(
                f"You're averaging {avg_gap:.0f} calories off target. "
                "Small adjustments can help."
            )

    if logged and metrics.protein_adherence < 80:
        insights.append("Protein intake is inconsistent. Consider meal prep or protein-rich snacks.")

    if metrics.streak_days >= 7:
        insights.append(f"Great {metrics.streak_days}-day streak! Consistency builds results.")
    elif metrics.streak_days == 0 and logged:
        insights.append("Get back on track today to start a new streak.")

    if metrics.trend is AdherenceTrend.IMPROVING:
        insights.append("Your adherence is improving - great progress!")
    elif metrics.trend is AdherenceTrend.DECLINING:
        insights.append("Adherence has slipped recently. Focus on one meal at a time.")
    return insights


def _mean_score(records: list[AdherenceRecord], macro: str) -> float:
    scores = [r.score(macro) for r in records if r.logged]
    return statistics.fmean(scores) if scores else 0.0


def score_adherence(
    intake: Iterable[IntakeSample],
    targets: Macros,
    window_days: Optional[int] = None,
    as_of: Optional[date] = None,
    tolerances: MacroTolerances = MacroTolerances(),
) -> AdherenceMetrics:
    """
    Score adherence over a window of calendar days.

    Every calendar day in the window gets a record; days without a log are
    unlogged, count against logging consistency and break the streak.
    Per-macro means are taken over logged days only.

    Args:
        intake: Intake samples in any order, at most one per day
        targets: Daily targets
        window_days: Window length ending at ``as_of``. Defaults to the span
            from the first log to ``as_of``.
        as_of: Window end. Defaults to the newest log.
        tolerances: Per-macro tolerance bands

    Returns:
        AdherenceMetrics

    Raises:
        InvalidInputError: Duplicate dates or non-positive window
    """
    samples = sort_by_date(intake)
    ensure_increasing_dates(samples, "intake samples")
    if window_days is not None and window_days <= 0:
        raise InvalidInputError(f"window_days must be positive, got {window_days}")

    if not samples and (window_days is None or as_of is None):
        return AdherenceMetrics(
            calorie_adherence=0.0,
            protein_adherence=0.0,
            carbs_adherence=0.0,
            fat_adherence=0.0,
            logging_consistency=0.0,
            overall_score=0.0,
            streak_days=0,
            trend=AdherenceTrend.STABLE,
            total_days=window_days or 0,
            logged_days=0,
            insights=["Start logging your meals to track adherence."],
        )

    end = as_of or samples[-1].date
    if window_days is None:
        window_days = (end - samples[0].date).days + 1 if samples else 1
    start = end - timedelta(days=window_days - 1)

    by_date = {s.date: s for s in samples}
    records = []
    for offset in range(window_days):
        day = start + timedelta(days=offset)
        sample = by_date.get(day)
        if sample is None:
            records.append(AdherenceRecord(date=day, logged=False, within_range=False))
        else:
            records.append(score_day(sample, targets, tolerances))

    logged_days = sum(1 for r in records if r.logged)
    calorie = _mean_score(records, "calories")
    protein = _mean_score(records, "protein")
    consistency = logged_days / window_days * 100

    metrics = AdherenceMetrics(
        calorie_adherence=calorie,
        protein_adherence=protein,
        carbs_adherence=_mean_score(records, "carbs"),
        fat_adherence=_mean_score(records, "fat"),
        logging_consistency=consistency,
        overall_score=(
            CALORIE_WEIGHT * calorie
            + PROTEIN_WEIGHT * protein
            + CONSISTENCY_WEIGHT * consistency
        ),
        streak_days=current_streak(records),
        trend=classify_trend(records),
        total_days=window_days,
        logged_days=logged_days,
        records=records,
    )
    metrics.insights = adherence_insights(metrics)
    if not logged_days:
        metrics.insights.append("Start logging your meals to track adherence.")
    return metrics


@dataclass
class ConsistencyReport:
    """Weekday breakdown of adherence over a window."""

    period_days: int
    days_logged: int
    days_in_range: int
    average_adherence: float  # mean calorie adherence over logged days
    consistency: float  # % of period logged
    best_day: Optional[str]
    worst_day: Optional[str]
    weekend_adherence: Optional[float]
    weekday_adherence: Optional[float]

    def to_dict(self) -> dict[str, Any]:
        def _r(value: Optional[float]) -> Optional[float]:
            return round(value, 1) if value is not None else None

        return {
            "period_days": self.period_days,
            "days_logged": self.days_logged,
            "days_in_range": self.days_in_range,
            "average_adherence": _r(self.average_adherence),
            "consistency": _r(self.consistency),
            "best_day": self.best_day,
            "worst_day": self.worst_day,
            "weekend_adherence": _r(self.weekend_adherence),
            "weekday_adherence": _r(self.weekday_adherence),
        }


def consistency_report(metrics: AdherenceMetrics) -> ConsistencyReport:
    """
    Break adherence down by day of week.

    Best and worst days rank weekdays by mean headline adherence (calories
    and protein); weekend and weekday figures use calorie adherence. Ties go
    to the earlier weekday, Monday first.
    """
    logged = [r for r in metrics.records if r.logged]

    by_weekday: dict[int, list[float]] = {}
    for record in logged:
        by_weekday.setdefault(record.date.weekday(), []).append(record.headline)

    best_day = worst_day = None
    if by_weekday:
        means = {day: statistics.fmean(scores) for day, scores in sorted(by_weekday.items())}
        best = max(means, key=lambda d: means[d])
        worst = min(means, key=lambda d: means[d])
        best_day = calendar.day_name[best]
        worst_day = calendar.day_name[worst]

    weekend = [r.score("calories") for r in logged if r.date.weekday() >= 5]
    weekday = [r.score("calories") for r in logged if r.date.weekday() < 5]

    return ConsistencyReport(
        period_days=metrics.total_days,
        days_logged=len(logged),
        days_in_range=sum(1 for r in logged if r.within_range),
        average_adherence=metrics.calorie_adherence,
        consistency=metrics.logging_consistency,
        best_day=best_day,
        worst_day=worst_day,
        weekend_adherence=statistics.fmean(weekend) if weekend else None,
        weekday_adherence=statistics.fmean(weekday) if weekday else None,
    )
