"""Data models for weight tracking and TDEE estimation."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Iterable, Optional, Sequence, TypeVar

from tdeecoach.errors import InvalidInputError, require_finite

# Energy density of body-mass change. Every tier uses this one value.
KCAL_PER_KG = 7700.0

# Point confidence for days without an actual weigh-in
INTERPOLATED_CONFIDENCE = 0.5


class Direction(Enum):
    """Direction of the weight trend."""

    GAINING = "gaining"
    LOSING = "losing"
    MAINTAINING = "maintaining"


class AlgorithmTier(Enum):
    """Estimation strategy selected by the amount of paired data."""

    FALLBACK = "fallback"
    SIMPLE_ENERGY_BALANCE = "simple_energy_balance"
    MOVING_AVERAGE = "moving_average"
    WEIGHTED_REGRESSION = "weighted_regression"


def _require_date(value: Any, name: str = "date") -> None:
    if not isinstance(value, date):
        raise InvalidInputError(f"{name} must be a date, got {value!r}")


@dataclass(frozen=True)
class WeightSample:
    """A single scale reading."""

    date: date
    raw_weight_kg: float
    body_fat_pct: Optional[float] = None

    def __post_init__(self) -> None:
        _require_date(self.date)
        require_finite(self.raw_weight_kg, "raw_weight_kg")
        if self.raw_weight_kg == 0:
            raise InvalidInputError("raw_weight_kg must be positive")
        if self.body_fat_pct is not None:
            require_finite(self.body_fat_pct, "body_fat_pct")
            if self.body_fat_pct > 100:
                raise InvalidInputError(
                    f"body_fat_pct must be at most 100, got {self.body_fat_pct}"
                )


@dataclass(frozen=True)
class IntakeSample:
    """One day of logged food intake."""

    date: date
    calories: float
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    fiber_g: Optional[float] = None

    def __post_init__(self) -> None:
        _require_date(self.date)
        require_finite(self.calories, "calories")
        require_finite(self.protein_g, "protein_g")
        require_finite(self.carbs_g, "carbs_g")
        require_finite(self.fat_g, "fat_g")
        if self.fiber_g is not None:
            require_finite(self.fiber_g, "fiber_g")


@dataclass(frozen=True)
class TrendPoint:
    """One calendar day of the smoothed weight series."""

    date: date
    raw_weight: float
    trend_weight: float
    local_slope_per_day: float
    point_confidence: float

    @property
    def is_interpolated(self) -> bool:
        """True when no scale reading exists for this day."""
        return self.point_confidence < 1.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "raw_weight": self.raw_weight,
            "trend_weight": self.trend_weight,
            "local_slope_per_day": self.local_slope_per_day,
            "point_confidence": self.point_confidence,
        }


@dataclass(frozen=True)
class ExpenditureEstimate:
    """TDEE estimate derived from a weight/intake snapshot.

    Never ground truth: always recomputable from the inputs that produced it.
    ``weekly_change_rate`` is the trend change in percent of body weight per
    week (negative = losing).
    """

    as_of_date: Optional[date]
    estimated_tdee: float
    confidence: float
    trend_weight: Optional[float]
    weekly_change_rate: float
    direction: Direction
    data_quality: float
    algorithm_tier: AlgorithmTier
    raw_tdee: Optional[float] = None
    weekly_change_kg: float = 0.0
    paired_days: int = 0

    def __post_init__(self) -> None:
        for name in ("estimated_tdee", "confidence", "data_quality"):
            value = getattr(self, name)
            if math.isnan(value) or math.isinf(value):
                raise InvalidInputError(f"{name} must be finite, got {value!r}")

    @property
    def is_fallback(self) -> bool:
        return self.algorithm_tier is AlgorithmTier.FALLBACK

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "as_of_date": self.as_of_date.isoformat() if self.as_of_date else None,
            "estimated_tdee": round(self.estimated_tdee, 1),
            "raw_tdee": round(self.raw_tdee, 1) if self.raw_tdee is not None else None,
            "confidence": round(self.confidence, 1),
            "trend_weight": (
                round(self.trend_weight, 2) if self.trend_weight is not None else None
            ),
            "weekly_change_rate": round(self.weekly_change_rate, 3),
            "weekly_change_kg": round(self.weekly_change_kg, 3),
            "direction": self.direction.value,
            "data_quality": round(self.data_quality, 1),
            "algorithm_tier": self.algorithm_tier.value,
            "paired_days": self.paired_days,
        }


_Dated = TypeVar("_Dated", WeightSample, IntakeSample)


def sort_by_date(samples: Iterable[_Dated]) -> list[_Dated]:
    """Return samples ordered by date (creation order is irrelevant)."""
    return sorted(samples, key=lambda s: s.date)


def ensure_increasing_dates(samples: Sequence[Any], what: str = "samples") -> None:
    """Reject a series whose dates are not strictly increasing.

    Raises:
        InvalidInputError: On a repeated or out-of-order date
    """
    for prev, curr in zip(samples, samples[1:]):
        if curr.date <= prev.date:
            raise InvalidInputError(
                f"{what} must have strictly increasing dates: "
                f"{curr.date.isoformat()} follows {prev.date.isoformat()}"
            )
