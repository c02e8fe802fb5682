"""Rolling average intake over fixed day windows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable, Optional

from tdeecoach.errors import InvalidInputError
from tdeecoach.tracking.models import IntakeSample


@dataclass(frozen=True)
class IntakeAverage:
    """Mean daily intake over a window.

    All averages are ``None`` when no sample falls inside the window; that
    means "no data", never zero intake.
    """

    window_days: int
    start_date: Optional[date]
    end_date: Optional[date]
    sample_count: int
    calories: Optional[float] = None
    protein_g: Optional[float] = None
    carbs_g: Optional[float] = None
    fat_g: Optional[float] = None
    fiber_g: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.sample_count > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_days": self.window_days,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "sample_count": self.sample_count,
            "calories": self.calories,
            "protein_g": self.protein_g,
            "carbs_g": self.carbs_g,
            "fat_g": self.fat_g,
            "fiber_g": self.fiber_g,
        }


def _mean(values: list[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def average_intake(
    samples: Iterable[IntakeSample],
    window_days: int = 7,
    as_of: Optional[date] = None,
) -> IntakeAverage:
    """
    Average calories and macros over ``[end - window + 1, end]``.

    Args:
        samples: Intake samples in any order
        window_days: Window length in days (typically 7 or 14)
        as_of: Window end date. Defaults to the latest sample date.

    Returns:
        IntakeAverage; ``sample_count == 0`` and ``None`` averages when the
        window holds no samples

    Raises:
        InvalidInputError: Non-positive window length
    """
    if window_days <= 0:
        raise InvalidInputError(f"window_days must be positive, got {window_days}")

    samples = list(samples)
    if as_of is None:
        if not samples:
            return IntakeAverage(window_days, None, None, 0)
        as_of = max(s.date for s in samples)

    start = as_of - timedelta(days=window_days - 1)
    in_window = [s for s in samples if start <= s.date <= as_of]
    fiber = [s.fiber_g for s in in_window if s.fiber_g is not None]

    return IntakeAverage(
        window_days=window_days,
        start_date=start,
        end_date=as_of,
        sample_count=len(in_window),
        calories=_mean([s.calories for s in in_window]),
        protein_g=_mean([s.protein_g for s in in_window]),
        carbs_g=_mean([s.carbs_g for s in in_window]),
        fat_g=_mean([s.fat_g for s in in_window]),
        fiber_g=_mean(fiber),
    )
