"""Tiered TDEE back-calculation from weight trend and intake.

One estimator, four strategies, picked by how many days carry both a trend
weight and an intake log:

    n < 7        FALLBACK               prior TDEE unchanged, confidence <= 10
    7 <= n < 14  SIMPLE_ENERGY_BALANCE  7-day intake minus 7-day trend change
    14 <= n < 21 MOVING_AVERAGE         rolling windows, per-transition balance
    n >= 21      WEIGHTED_REGRESSION    recency-weighted least squares

Every raw estimate is blended with the prior (``0.3·raw + 0.7·prior``) and
then clamped into both the absolute range [1200, 5000] and the prior ±20%.
The intersection of the two ranges is used, so the tighter bound wins.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable, Optional

import numpy as np

from tdeecoach.errors import InvalidInputError, require_finite
from tdeecoach.metrics import MetricsRecorder, SnapshotCache
from tdeecoach.tracking.intake import average_intake
from tdeecoach.tracking.models import (
    KCAL_PER_KG,
    AlgorithmTier,
    Direction,
    ExpenditureEstimate,
    IntakeSample,
    TrendPoint,
    WeightSample,
    ensure_increasing_dates,
    sort_by_date,
)
from tdeecoach.tracking.quality import (
    DEFAULT_HALF_LIFE_DAYS,
    DEFAULT_WINDOW_DAYS,
    DataQualityReport,
    estimate_confidence,
    score_data_quality,
)
from tdeecoach.tracking.trend import (
    EWMASmoother,
    TrendAnalysis,
    WeightTrendSmoother,
    analyze_trend,
    energy_balance_tdee,
)

logger = logging.getLogger(__name__)

# Absolute physiological bounds on the published estimate
MIN_TDEE = 1200.0
MAX_TDEE = 5000.0

# Per-update blend with the prior and relative clamp around it
TDEE_SMOOTHING = 0.3
MAX_RELATIVE_CHANGE = 0.2

# Tier thresholds on paired data points
SIMPLE_MIN_POINTS = 7
MOVING_AVERAGE_MIN_POINTS = 14
REGRESSION_MIN_POINTS = 21

# Per-window / regression results outside this range are discarded
PLAUSIBLE_TDEE_RANGE = (1000.0, 6000.0)

# Maximum believable day-over-day scale change (kg/day) for regression points
MAX_DAILY_WEIGHT_SWING = 1.5

# Fewer valid regression points than this rejects the regression
MIN_REGRESSION_POINTS = 7

SIMPLE_WINDOW_DAYS = 7
MAX_MOVING_WINDOW = 14

# Upper bound on confidence per tier
TIER_CONFIDENCE_CAP = {
    AlgorithmTier.FALLBACK: 10.0,
    AlgorithmTier.SIMPLE_ENERGY_BALANCE: 60.0,
    AlgorithmTier.MOVING_AVERAGE: 85.0,
    AlgorithmTier.WEIGHTED_REGRESSION: 95.0,
}


@dataclass(frozen=True)
class PairedDay:
    """A day with both a trend value and an intake log."""

    date: date
    calories: float
    weight: float  # raw reading, or carried-forward trend when not weighed
    trend_weight: float
    weighed: bool


def pair_days(points: list[TrendPoint], intake: list[IntakeSample]) -> list[PairedDay]:
    """Join the daily trend series with intake logs by date."""
    by_date = {p.date: p for p in points}
    paired = []
    for sample in intake:
        point = by_date.get(sample.date)
        if point is None:
            continue
        paired.append(
            PairedDay(
                date=sample.date,
                calories=sample.calories,
                weight=point.raw_weight,
                trend_weight=point.trend_weight,
                weighed=not point.is_interpolated,
            )
        )
    return paired


def select_tier(paired_count: int) -> AlgorithmTier:
    """Pick the estimation strategy for ``paired_count`` data points."""
    if paired_count >= REGRESSION_MIN_POINTS:
        return AlgorithmTier.WEIGHTED_REGRESSION
    if paired_count >= MOVING_AVERAGE_MIN_POINTS:
        return AlgorithmTier.MOVING_AVERAGE
    if paired_count >= SIMPLE_MIN_POINTS:
        return AlgorithmTier.SIMPLE_ENERGY_BALANCE
    return AlgorithmTier.FALLBACK


def _is_plausible(tdee: float) -> bool:
    low, high = PLAUSIBLE_TDEE_RANGE
    return low <= tdee <= high


def simple_energy_balance(
    points: list[TrendPoint],
    intake: list[IntakeSample],
    paired: list[PairedDay],
) -> Optional[float]:
    """
    TDEE = avg calories (last 7 days) − trend change (last 7 days) × 7700 ÷ 7.

    Returns:
        Raw TDEE, or ``None`` without intake in the window or a zero-length
        trend span
    """
    end = paired[-1].date
    trend_by_date = {p.date: p.trend_weight for p in points}
    start = max(end - timedelta(days=SIMPLE_WINDOW_DAYS), points[0].date)
    days = (end - start).days
    if days <= 0:
        return None

    avg = average_intake(intake, SIMPLE_WINDOW_DAYS, as_of=end)
    if avg.calories is None:
        return None

    trend_change = trend_by_date[end] - trend_by_date[start]
    return energy_balance_tdee(avg.calories, trend_change, days)


def moving_average_balance(paired: list[PairedDay]) -> Optional[float]:
    """
    Average the energy balance across consecutive rolling windows.

    Window length is ``min(14, n // 2)``. Each pair of adjacent windows gives
    a weight change per day (difference of mean weights over difference of
    mean dates) and an intake (mean of both windows' calories). Per-window
    TDEE values outside [1000, 6000] are discarded before averaging.

    Returns:
        Mean of the plausible per-window values, or ``None`` if none survive
    """
    window = min(MAX_MOVING_WINDOW, len(paired) // 2)
    if window < 1 or len(paired) <= window:
        return None

    cal = np.array([d.calories for d in paired], dtype=float)
    weight = np.array([d.weight for d in paired], dtype=float)
    ordinal = np.array([d.date.toordinal() for d in paired], dtype=float)

    kernel = np.ones(window) / window
    avg_cal = np.convolve(cal, kernel, mode="valid")
    avg_weight = np.convolve(weight, kernel, mode="valid")
    avg_day = np.convolve(ordinal, kernel, mode="valid")

    estimates = []
    for i in range(1, len(avg_cal)):
        elapsed = avg_day[i] - avg_day[i - 1]
        if elapsed <= 0:
            continue
        intake = (avg_cal[i] + avg_cal[i - 1]) / 2
        tdee = intake - (avg_weight[i] - avg_weight[i - 1]) * KCAL_PER_KG / elapsed
        if _is_plausible(tdee):
            estimates.append(tdee)

    if not estimates:
        logger.debug("Moving average: no plausible window estimates")
        return None
    logger.debug(
        "Moving average: %d/%d window estimates kept (window=%d)",
        len(estimates),
        len(avg_cal) - 1,
        window,
    )
    return float(np.mean(estimates))


def weighted_regression_balance(paired: list[PairedDay]) -> Optional[float]:
    """
    Recency-weighted least-squares fit of cumulative energy balance.

    Over a period the energy balance gives
        7700 × (w_t − w_0) = C_t − TDEE × t
    where C_t is intake eaten before day t. Rearranged, the series
    ``Y_t = C_t − 7700 × w_t`` is linear in t with slope TDEE. Days without an
    intake log are imputed with the mean logged intake.

    Only days with an actual scale reading are fitted, and a reading that
    implies more than 1.5 kg/day change from the previous one is dropped.
    Point weights grow linearly with position from the start.

    Returns:
        Fitted TDEE, or ``None`` when fewer than 7 points remain or the fit
        is implausible
    """
    start = paired[0].date
    end = paired[-1].date
    mean_calories = float(np.mean([d.calories for d in paired]))
    logged = {d.date: d.calories for d in paired}

    eaten_before: dict[date, float] = {}
    cumulative = 0.0
    for offset in range((end - start).days + 1):
        day = start + timedelta(days=offset)
        eaten_before[day] = cumulative
        cumulative += logged.get(day, mean_calories)

    t_values = []
    y_values = []
    prev: Optional[PairedDay] = None
    for day in paired:
        if not day.weighed:
            continue
        if prev is not None:
            gap = (day.date - prev.date).days
            if abs(day.weight - prev.weight) / gap > MAX_DAILY_WEIGHT_SWING:
                continue
        t_values.append(float((day.date - start).days))
        y_values.append(eaten_before[day.date] - KCAL_PER_KG * day.weight)
        prev = day

    if len(t_values) < MIN_REGRESSION_POINTS:
        logger.debug(
            "Regression rejected: %d valid points (need %d)",
            len(t_values),
            MIN_REGRESSION_POINTS,
        )
        return None

    t = np.array(t_values)
    y = np.array(y_values)
    position_weights = np.arange(1, len(t) + 1, dtype=float)

    # polyfit weights multiply residuals, so pass sqrt of the point weights
    slope, _intercept = np.polyfit(t, y, 1, w=np.sqrt(position_weights))
    tdee = float(slope)
    if not np.isfinite(tdee) or not _is_plausible(tdee):
        logger.debug("Regression rejected: implausible TDEE %.0f", tdee)
        return None
    return tdee


_Strategy = Callable[[list[TrendPoint], list[IntakeSample], list[PairedDay]], Optional[float]]

_STRATEGIES: dict[AlgorithmTier, _Strategy] = {
    AlgorithmTier.SIMPLE_ENERGY_BALANCE: simple_energy_balance,
    AlgorithmTier.MOVING_AVERAGE: lambda points, intake, paired: moving_average_balance(paired),
    AlgorithmTier.WEIGHTED_REGRESSION: lambda points, intake, paired: weighted_regression_balance(
        paired
    ),
}

# Where to go when a strategy cannot produce a value
_DOWNGRADE = {
    AlgorithmTier.WEIGHTED_REGRESSION: AlgorithmTier.MOVING_AVERAGE,
    AlgorithmTier.MOVING_AVERAGE: AlgorithmTier.SIMPLE_ENERGY_BALANCE,
    AlgorithmTier.SIMPLE_ENERGY_BALANCE: AlgorithmTier.FALLBACK,
}


class ExpenditureEstimator:
    """
    Estimate TDEE from weight and intake history.

    The estimator is a pure function of its inputs: two calls with the same
    snapshot return identical results. Metrics and cache collaborators are
    optional and never change the result.

    Attributes:
        smoother: Weight trend smoother (default: adaptive EWMA, α=0.1)
        smoothing: Blend factor between raw estimate and prior
        max_relative_change: Relative clamp around the prior
        min_tdee: Absolute lower bound
        max_tdee: Absolute upper bound
        quality_window_days: Window scored for data quality
        half_life_days: Recency half-life for confidence
    """

    def __init__(
        self,
        smoother: Optional[WeightTrendSmoother] = None,
        smoothing: float = TDEE_SMOOTHING,
        max_relative_change: float = MAX_RELATIVE_CHANGE,
        min_tdee: float = MIN_TDEE,
        max_tdee: float = MAX_TDEE,
        quality_window_days: int = DEFAULT_WINDOW_DAYS,
        half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
        metrics: Optional[MetricsRecorder] = None,
        cache: Optional[SnapshotCache] = None,
    ) -> None:
        if not 0 < smoothing <= 1:
            raise InvalidInputError(f"smoothing must be in (0, 1], got {smoothing}")
        if not 0 < max_relative_change < 1:
            raise InvalidInputError(
                f"max_relative_change must be in (0, 1), got {max_relative_change}"
            )
        if not 0 < min_tdee < max_tdee:
            raise InvalidInputError("min_tdee must be positive and below max_tdee")
        self.smoother = smoother if smoother is not None else EWMASmoother()
        self.smoothing = smoothing
        self.max_relative_change = max_relative_change
        self.min_tdee = min_tdee
        self.max_tdee = max_tdee
        self.quality_window_days = quality_window_days
        self.half_life_days = half_life_days
        self.metrics = metrics
        self.cache = cache

    def clamp(self, value: float, prior: float) -> float:
        """Clamp into the absolute range intersected with prior ± max change."""
        low = max(self.min_tdee, prior * (1 - self.max_relative_change))
        high = min(self.max_tdee, prior * (1 + self.max_relative_change))
        return min(high, max(low, value))

    def blend(self, raw: float, prior: float) -> float:
        """Blend a raw estimate toward the prior, then clamp."""
        smoothed = self.smoothing * raw + (1 - self.smoothing) * prior
        clamped = self.clamp(smoothed, prior)
        if clamped != smoothed:
            logger.debug("Clamped TDEE %.0f -> %.0f (prior %.0f)", smoothed, clamped, prior)
        return clamped

    def estimate(
        self,
        weight_history: Iterable[WeightSample],
        intake_history: Iterable[IntakeSample],
        prior_tdee: float,
        as_of: Optional[date] = None,
    ) -> ExpenditureEstimate:
        """
        Estimate TDEE from a full input snapshot.

        Args:
            weight_history: Weight samples in any order
            intake_history: Intake samples in any order, at most one per day
            prior_tdee: Previous estimate (or formula TDEE for a new user)
            as_of: Estimate date; samples after it are ignored. Defaults to
                the newest sample date.

        Returns:
            ExpenditureEstimate

        Raises:
            InvalidInputError: Prior outside [min_tdee, max_tdee], invalid
                samples, or duplicate dates
        """
        require_finite(prior_tdee, "prior_tdee")
        if not self.min_tdee <= prior_tdee <= self.max_tdee:
            raise InvalidInputError(
                f"prior_tdee must be within [{self.min_tdee:.0f}, {self.max_tdee:.0f}], "
                f"got {prior_tdee}"
            )

        weights = sort_by_date(weight_history)
        intake = sort_by_date(intake_history)
        if as_of is not None:
            weights = [s for s in weights if s.date <= as_of]
            intake = [s for s in intake if s.date <= as_of]
        ensure_increasing_dates(weights, "weight samples")
        ensure_increasing_dates(intake, "intake samples")

        cache_key = None
        if self.cache is not None:
            cache_key = (
                "estimate",
                self.smoother.method.value,
                tuple(weights),
                tuple(intake),
                float(prior_tdee),
                as_of,
            )
            cached = self.cache.get(cache_key)
            if cached is not None:
                if self.metrics is not None:
                    self.metrics.record(
                        "estimate",
                        0.0,
                        len(weights) + len(intake),
                        cached.algorithm_tier.value,
                        cache_hit=True,
                    )
                return cached

        started = time.perf_counter()
        result = self._estimate(weights, intake, float(prior_tdee), as_of)
        elapsed = time.perf_counter() - started

        if self.metrics is not None:
            self.metrics.record(
                "estimate",
                elapsed,
                len(weights) + len(intake),
                result.algorithm_tier.value,
            )
        if self.cache is not None and cache_key is not None:
            self.cache.put(cache_key, result)
        return result

    def _estimate(
        self,
        weights: list[WeightSample],
        intake: list[IntakeSample],
        prior: float,
        as_of: Optional[date],
    ) -> ExpenditureEstimate:
        all_dates = [s.date for s in weights] + [s.date for s in intake]
        estimate_date = as_of or (max(all_dates) if all_dates else None)

        quality = score_data_quality(
            weights, intake, window_days=self.quality_window_days, as_of=estimate_date
        )
        days_since_data = (
            (estimate_date - max(all_dates)).days if all_dates and estimate_date else 0
        )

        if not weights:
            logger.debug("No weight samples; returning prior TDEE")
            return self._fallback(prior, estimate_date, None, quality.score, days_since_data, quality)

        points = self.smoother.smooth(weights)
        paired = pair_days(points, intake)
        analysis = analyze_trend(points)

        tier = select_tier(len(paired))
        logger.debug("Selected tier %s for %d paired days", tier.value, len(paired))

        raw: Optional[float] = None
        while tier is not AlgorithmTier.FALLBACK:
            raw = _STRATEGIES[tier](points, intake, paired)
            if raw is not None:
                break
            downgraded = _DOWNGRADE[tier]
            logger.debug("Tier %s produced no estimate, trying %s", tier.value, downgraded.value)
            tier = downgraded

        if tier is AlgorithmTier.FALLBACK or raw is None:
            return self._fallback(
                prior,
                estimate_date,
                analysis,
                quality.score,
                days_since_data,
                quality,
                paired_days=len(paired),
            )

        confidence = estimate_confidence(
            quality,
            days_since_data=days_since_data,
            half_life_days=self.half_life_days,
            cap=TIER_CONFIDENCE_CAP[tier],
        )
        return ExpenditureEstimate(
            as_of_date=estimate_date,
            estimated_tdee=self.blend(raw, prior),
            confidence=confidence,
            trend_weight=analysis.current_trend_weight,
            weekly_change_rate=analysis.weekly_change_rate_pct,
            direction=analysis.direction,
            data_quality=quality.score,
            algorithm_tier=tier,
            raw_tdee=raw,
            weekly_change_kg=analysis.weekly_change_kg,
            paired_days=len(paired),
        )

    def _fallback(
        self,
        prior: float,
        estimate_date: Optional[date],
        analysis: Optional[TrendAnalysis],
        data_quality: float,
        days_since_data: int,
        quality: DataQualityReport,
        paired_days: int = 0,
    ) -> ExpenditureEstimate:
        confidence = estimate_confidence(
            quality,
            days_since_data=days_since_data,
            half_life_days=self.half_life_days,
            cap=TIER_CONFIDENCE_CAP[AlgorithmTier.FALLBACK],
        )
        return ExpenditureEstimate(
            as_of_date=estimate_date,
            estimated_tdee=prior,
            confidence=confidence,
            trend_weight=analysis.current_trend_weight if analysis else None,
            weekly_change_rate=analysis.weekly_change_rate_pct if analysis else 0.0,
            direction=analysis.direction if analysis else Direction.MAINTAINING,
            data_quality=data_quality,
            algorithm_tier=AlgorithmTier.FALLBACK,
            raw_tdee=None,
            weekly_change_kg=analysis.weekly_change_kg if analysis else 0.0,
            paired_days=paired_days,
        )


def estimate_expenditure(
    weight_history: Iterable[WeightSample],
    intake_history: Iterable[IntakeSample],
    prior_tdee: float,
    as_of: Optional[date] = None,
    smoother: Optional[WeightTrendSmoother] = None,
) -> ExpenditureEstimate:
    """Convenience wrapper around ``ExpenditureEstimator().estimate``."""
    return ExpenditureEstimator(smoother=smoother).estimate(
        weight_history, intake_history, prior_tdee, as_of=as_of
    )
