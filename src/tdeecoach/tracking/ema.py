"""Adaptive exponentially smoothed moving average for weight tracking.

The trend follows the classic recurrence:
    T_n = T_{n-1} + α × (W_n - T_{n-1})

With α=0.1 this is a low-pass filter with roughly a 10-day time constant,
removing day-to-day water and gut-content noise while tracking the real
trend. When a reading deviates from the current trend by more than 2%, α is
doubled (capped at 0.3) for that single update so the trend catches up with
genuine step changes, e.g. a post-travel rebound.

Days without a reading carry the trend forward unchanged and are flagged
with reduced point confidence.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Sequence

from tdeecoach.errors import InvalidInputError
from tdeecoach.tracking.models import (
    INTERPOLATED_CONFIDENCE,
    KCAL_PER_KG,
    TrendPoint,
    WeightSample,
    ensure_increasing_dates,
)

# Classic Hacker's Diet smoothing factor
DEFAULT_SMOOTHING = 0.1

# Upper bound for the temporarily boosted factor
MAX_ADAPTIVE_SMOOTHING = 0.3

# Relative deviation from trend that counts as a step change
STEP_CHANGE_THRESHOLD = 0.02


def validate_smoothing(alpha: float) -> float:
    """Reject smoothing factors outside (0, 1)."""
    if not 0 < alpha < 1:
        raise InvalidInputError(f"smoothing factor must be in (0, 1), got {alpha}")
    return alpha


def adaptive_alpha(
    weight: float,
    trend: float,
    base_alpha: float = DEFAULT_SMOOTHING,
) -> float:
    """
    Pick the smoothing factor for one update.

    Args:
        weight: Today's scale reading
        trend: Current trend value (positive)
        base_alpha: Base smoothing factor

    Returns:
        ``base_alpha`` under normal noise, or ``min(2 × base_alpha, 0.3)``
        when the reading is more than 2% away from the trend.

    Example:
        >>> adaptive_alpha(80.5, 80.0)  # 0.6% off: normal noise
        0.1
        >>> adaptive_alpha(82.0, 80.0)  # 2.5% off: step change
        0.2
    """
    deviation = abs(weight - trend) / trend
    if deviation > STEP_CHANGE_THRESHOLD:
        return min(base_alpha * 2, MAX_ADAPTIVE_SMOOTHING)
    return base_alpha


def update_trend(
    prev_trend: float,
    today_weight: float,
    smoothing: float = DEFAULT_SMOOTHING,
) -> float:
    """
    Calculate the new trend value for a day with a scale reading.

    Args:
        prev_trend: Previous trend value (T_{n-1})
        today_weight: Today's scale weight (W_n)
        smoothing: Base smoothing factor, default 0.1

    Returns:
        Today's trend value (T_n)

    Example:
        >>> update_trend(80.0, 79.8)
        79.98
    """
    alpha = adaptive_alpha(today_weight, prev_trend, smoothing)
    return prev_trend + alpha * (today_weight - prev_trend)


def smooth_daily(
    samples: Sequence[WeightSample],
    smoothing: float = DEFAULT_SMOOTHING,
) -> list[TrendPoint]:
    """
    Build one trend point per calendar day from first to last sample.

    The first trend value equals the first reading, so there is no lag on
    day 0. Missing days repeat the current trend as both raw and trend
    weight, with point confidence 0.5.

    Args:
        samples: Weight samples with strictly increasing dates
        smoothing: Base smoothing factor

    Returns:
        Daily trend points, date-ordered

    Raises:
        InvalidInputError: Empty input, bad smoothing factor, or
            non-increasing dates
    """
    if not samples:
        raise InvalidInputError("at least one weight sample is required")
    validate_smoothing(smoothing)
    ensure_increasing_dates(samples, "weight samples")

    by_date = {s.date: s.raw_weight_kg for s in samples}
    first_day = samples[0].date
    total_days = (samples[-1].date - first_day).days + 1

    points: list[TrendPoint] = []
    trend = samples[0].raw_weight_kg
    for offset in range(total_days):
        day = first_day + timedelta(days=offset)
        prev_trend = trend
        if day in by_date:
            raw = by_date[day]
            if offset > 0:
                trend = update_trend(trend, raw, smoothing)
            confidence = 1.0
        else:
            raw = trend
            confidence = INTERPOLATED_CONFIDENCE
        points.append(
            TrendPoint(
                date=day,
                raw_weight=raw,
                trend_weight=trend,
                local_slope_per_day=trend - prev_trend,
                point_confidence=confidence,
            )
        )
    return points


def estimate_weekly_change(trend_start: float, trend_end: float, days: int = 7) -> float:
    """
    Estimate weekly weight change from trend values.

    Args:
        trend_start: Trend value at start of period
        trend_end: Trend value at end of period
        days: Number of days in period (default 7)

    Returns:
        Estimated weekly change in kg (negative = losing); 0 for an empty period
    """
    if days <= 0:
        return 0.0
    daily_change = (trend_end - trend_start) / days
    return daily_change * 7


def estimate_daily_calorie_balance(weekly_change_kg: float) -> float:
    """
    Estimate daily calorie surplus/deficit from weekly weight change.

    Uses 7700 kcal per kg of body mass.

    Args:
        weekly_change_kg: Weekly weight change in kg (negative = loss)

    Returns:
        Daily calorie balance (negative = deficit, positive = surplus)
    """
    return (weekly_change_kg * KCAL_PER_KG) / 7
