"""Kalman filter formulation of the weight trend.

A scalar Kalman filter over body weight with a separately tracked velocity
term (kg/day). It is an alternative to the adaptive EMA and satisfies the
same contract: first trend value equals the first reading, one point per
calendar day, interpolated days carry the trend forward at reduced
confidence.

State: weight (kg), with variance P (kg²)
Process model: weight drifts by the current velocity; uncertainty grows by
    ``process_noise`` per elapsed day
Observation: the scale reading, with ``measurement_noise`` variance
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Sequence

from tdeecoach.errors import InvalidInputError
from tdeecoach.tracking.models import (
    INTERPOLATED_CONFIDENCE,
    TrendPoint,
    WeightSample,
    ensure_increasing_dates,
)

# Initial uncertainty equals the measurement noise: the first reading is
# taken as the state but is no better than any other reading.
INITIAL_VARIANCE = 0.1

# Cap on variance growth across long gaps between weigh-ins
MAX_VARIANCE = 4.0


@dataclass
class WeightKalmanFilter:
    """
    Scalar Kalman filter for trend weight.

    Attributes:
        weight: Current weight estimate (kg)
        variance: Current uncertainty (kg²)
        velocity: Smoothed rate of change (kg/day)
        process_noise: Variance added per day (default: 0.01 = 0.1² kg)
        measurement_noise: Scale reading variance (default: 0.1 ≈ 0.32² kg)
        velocity_gain: Smoothing applied to the velocity term
    """

    weight: float
    variance: float = INITIAL_VARIANCE
    velocity: float = 0.0
    process_noise: float = 0.01
    measurement_noise: float = 0.1
    velocity_gain: float = 0.5

    def predict(self, days: int = 1) -> None:
        """
        Predict step: project weight along the velocity and grow uncertainty.

        Args:
            days: Days since the last observation
        """
        days = max(days, 1)
        self.weight += self.velocity * days
        self.variance = min(self.variance + self.process_noise * days, MAX_VARIANCE)

    def update(self, measurement: float, days: int = 1) -> float:
        """
        Update step: incorporate a scale reading.

        Args:
            measurement: Scale reading (kg)
            days: Days since the previous observation, used to turn the
                state change into a per-day velocity

        Returns:
            Innovation (measurement minus predicted weight)
        """
        days = max(days, 1)
        innovation = measurement - self.weight
        gain = self.variance / (self.variance + self.measurement_noise)

        correction = gain * innovation
        self.weight += correction
        self.variance *= 1 - gain

        # Velocity absorbs the part of the correction not explained by the
        # projected drift.
        observed_rate = self.velocity + correction / days
        self.velocity += self.velocity_gain * (observed_rate - self.velocity)
        return innovation

    def predict_and_update(self, measurement: float, days: int = 1) -> float:
        """Combined predict + update step for one reading."""
        self.predict(days)
        return self.update(measurement, days)

    def get_state(self) -> dict:
        """Return current filter state as dictionary."""
        return {
            "weight": self.weight,
            "variance": self.variance,
            "velocity": self.velocity,
        }


def kalman_daily(
    samples: Sequence[WeightSample],
    process_noise: float = 0.01,
    measurement_noise: float = 0.1,
) -> list[TrendPoint]:
    """
    Run the filter over a weight history, one trend point per calendar day.

    Args:
        samples: Weight samples with strictly increasing dates
        process_noise: Per-day process variance (kg²)
        measurement_noise: Measurement variance (kg²)

    Returns:
        Daily trend points, date-ordered

    Raises:
        InvalidInputError: Empty input, non-positive noise, or
            non-increasing dates
    """
    if not samples:
        raise InvalidInputError("at least one weight sample is required")
    if process_noise <= 0 or measurement_noise <= 0:
        raise InvalidInputError("noise variances must be positive")
    ensure_increasing_dates(samples, "weight samples")

    by_date = {s.date: s.raw_weight_kg for s in samples}
    first_day = samples[0].date
    total_days = (samples[-1].date - first_day).days + 1

    kf = WeightKalmanFilter(
        weight=samples[0].raw_weight_kg,
        variance=measurement_noise,
        process_noise=process_noise,
        measurement_noise=measurement_noise,
    )

    points: list[TrendPoint] = []
    days_since_reading = 0
    for offset in range(total_days):
        day = first_day + timedelta(days=offset)
        days_since_reading += 1
        if day in by_date:
            raw = by_date[day]
            if offset > 0:
                kf.predict_and_update(raw, days=days_since_reading)
            days_since_reading = 0
            confidence = 1.0
        else:
            raw = kf.weight
            confidence = INTERPOLATED_CONFIDENCE
        points.append(
            TrendPoint(
                date=day,
                raw_weight=raw,
                trend_weight=kf.weight,
                local_slope_per_day=kf.velocity,
                point_confidence=confidence,
            )
        )
    return points
