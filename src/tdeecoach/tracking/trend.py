"""Weight trend smoothing behind a single interface, plus trend analysis.

Two smoothers are available:
- ``EWMASmoother``: adaptive exponential moving average (default)
- ``KalmanSmoother``: scalar Kalman filter with a velocity term

Both accept weight samples in any order, sort them by date, and return one
``TrendPoint`` per calendar day.
"""

from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Protocol

from tdeecoach.errors import InvalidInputError
from tdeecoach.tracking.ema import (
    DEFAULT_SMOOTHING,
    estimate_daily_calorie_balance,
    smooth_daily,
    validate_smoothing,
)
from tdeecoach.tracking.kalman import kalman_daily
from tdeecoach.tracking.models import (
    KCAL_PER_KG,
    Direction,
    TrendPoint,
    WeightSample,
    sort_by_date,
)

logger = logging.getLogger(__name__)

# Weekly change (% body weight) below which the trend counts as maintaining
DIRECTION_THRESHOLD_PCT = 0.25

# Fewer trend points than this cannot support rate analysis
MIN_ANALYSIS_POINTS = 7

# Days of trend examined by analyze_trend
ANALYSIS_WINDOW_DAYS = 14


class SmoothingMethod(Enum):
    """Available weight-trend smoothers."""

    EWMA = "ewma"
    KALMAN = "kalman"


class WeightTrendSmoother(Protocol):
    """Anything that turns weight samples into a daily trend series."""

    method: SmoothingMethod

    def smooth(self, samples: Iterable[WeightSample]) -> list[TrendPoint]:
        ...


class EWMASmoother:
    """Adaptive exponential moving average smoother."""

    method = SmoothingMethod.EWMA

    def __init__(self, alpha: float = DEFAULT_SMOOTHING) -> None:
        self.alpha = validate_smoothing(alpha)

    def smooth(self, samples: Iterable[WeightSample]) -> list[TrendPoint]:
        return smooth_daily(sort_by_date(samples), self.alpha)


class KalmanSmoother:
    """Kalman filter smoother with fixed noise constants."""

    method = SmoothingMethod.KALMAN

    def __init__(self, process_noise: float = 0.01, measurement_noise: float = 0.1) -> None:
        self.process_noise = process_noise
        self.measurement_noise = measurement_noise

    def smooth(self, samples: Iterable[WeightSample]) -> list[TrendPoint]:
        return kalman_daily(
            sort_by_date(samples),
            process_noise=self.process_noise,
            measurement_noise=self.measurement_noise,
        )


def get_smoother(
    method: SmoothingMethod | str = SmoothingMethod.EWMA,
    alpha: float = DEFAULT_SMOOTHING,
) -> WeightTrendSmoother:
    """
    Build a smoother by method name.

    Args:
        method: ``SmoothingMethod`` or its string value ("ewma", "kalman")
        alpha: Base smoothing factor for the EWMA smoother

    Returns:
        Smoother instance

    Raises:
        InvalidInputError: Unknown method name
    """
    if isinstance(method, str):
        try:
            method = SmoothingMethod(method.lower())
        except ValueError:
            valid = [m.value for m in SmoothingMethod]
            raise InvalidInputError(
                f"smoothing method must be one of {valid}, got '{method}'"
            ) from None
    if method is SmoothingMethod.KALMAN:
        return KalmanSmoother()
    return EWMASmoother(alpha)


@dataclass
class TrendAnalysis:
    """Summary of the recent weight trend for coaching decisions."""

    current_trend_weight: float
    weekly_change_rate_pct: float  # % body weight per week
    weekly_change_kg: float
    daily_change_kg: float
    volatility: float  # std of day-to-day raw changes (kg)
    data_quality: str  # 'low', 'medium', 'high'
    direction: Direction

    @property
    def implied_daily_balance(self) -> float:
        """Daily kcal surplus (positive) or deficit (negative) implied by the trend."""
        return estimate_daily_calorie_balance(self.weekly_change_kg)


def classify_direction(weekly_change_rate_pct: float) -> Direction:
    """Map a weekly % change onto gaining / losing / maintaining."""
    if weekly_change_rate_pct > DIRECTION_THRESHOLD_PCT:
        return Direction.GAINING
    if weekly_change_rate_pct < -DIRECTION_THRESHOLD_PCT:
        return Direction.LOSING
    return Direction.MAINTAINING


def analyze_trend(points: list[TrendPoint]) -> TrendAnalysis:
    """
    Analyze the last two weeks of a trend series.

    Args:
        points: Daily trend points (output of a smoother)

    Returns:
        TrendAnalysis. With fewer than 7 points, rates are zero, quality is
        'low' and the direction is maintaining.

    Raises:
        InvalidInputError: Empty series
    """
    if not points:
        raise InvalidInputError("cannot analyze an empty trend series")

    current = points[-1].trend_weight
    if len(points) < MIN_ANALYSIS_POINTS:
        logger.debug("Only %d trend points, skipping rate analysis", len(points))
        return TrendAnalysis(
            current_trend_weight=current,
            weekly_change_rate_pct=0.0,
            weekly_change_kg=0.0,
            daily_change_kg=0.0,
            volatility=0.0,
            data_quality="low",
            direction=Direction.MAINTAINING,
        )

    recent = points[-ANALYSIS_WINDOW_DAYS:]
    week_ago = recent[max(0, len(recent) - 8)].trend_weight
    weekly_change_kg = current - week_ago
    weekly_change_rate_pct = weekly_change_kg / week_ago * 100

    daily_change_kg = (current - recent[0].trend_weight) / len(recent)

    daily_changes = [b.raw_weight - a.raw_weight for a, b in zip(recent, recent[1:])]
    volatility = statistics.pstdev(daily_changes) if len(daily_changes) > 1 else 0.0

    mean_confidence = statistics.fmean(p.point_confidence for p in recent)
    if mean_confidence > 0.8:
        quality = "high"
    elif mean_confidence > 0.5:
        quality = "medium"
    else:
        quality = "low"

    return TrendAnalysis(
        current_trend_weight=current,
        weekly_change_rate_pct=weekly_change_rate_pct,
        weekly_change_kg=weekly_change_kg,
        daily_change_kg=daily_change_kg,
        volatility=volatility,
        data_quality=quality,
        direction=classify_direction(weekly_change_rate_pct),
    )


def energy_from_weight_change(weight_change_kg: float, days: int) -> Optional[float]:
    """
    Daily energy stored (positive) or released (negative) by a weight change.

    Returns ``None`` for a zero-length period.
    """
    if days <= 0:
        return None
    return weight_change_kg * KCAL_PER_KG / days


def energy_balance_tdee(
    avg_daily_intake: float,
    weight_change_kg: float,
    days: int,
) -> Optional[float]:
    """
    Back-calculate TDEE from average intake and weight change.

    TDEE = intake − (Δkg × 7700 ÷ days). Gaining weight means expenditure
    is below intake; losing means it is above.
    """
    energy = energy_from_weight_change(weight_change_kg, days)
    if energy is None:
        return None
    return avg_daily_intake - energy
