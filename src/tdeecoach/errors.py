"""Error kinds shared by every estimation component.

Invalid input is rejected at the boundary with an exception. Insufficient
data is not an error: components return a low-confidence fallback result
and tag it with ``ErrorKind.INSUFFICIENT_DATA`` where a caller may care.
Zero denominators never propagate NaN or Infinity; ``safe_ratio`` returns a
caller-chosen sentinel instead.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Classification of engine failures and degraded states."""

    INVALID_INPUT = "invalid_input"
    INSUFFICIENT_DATA = "insufficient_data"
    DIVISION_GUARD = "division_guard"


class EngineError(ValueError):
    """Base error raised by the estimation engine."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, kind: Optional[ErrorKind] = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class InvalidInputError(EngineError):
    """Input outside the documented domain (NaN, negatives, bad ordering)."""

    kind = ErrorKind.INVALID_INPUT


def require_finite(value: float, name: str, allow_negative: bool = False) -> float:
    """Validate a numeric input at the boundary.

    Args:
        value: Value to check
        name: Field name used in the error message
        allow_negative: Whether negative values are acceptable

    Returns:
        The value as a float

    Raises:
        InvalidInputError: If the value is not a finite number, or is
            negative when negatives are not allowed
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(f"{name} must be a number, got {value!r}")
    if math.isnan(value) or math.isinf(value):
        raise InvalidInputError(f"{name} must be finite, got {value!r}")
    if not allow_negative and value < 0:
        raise InvalidInputError(f"{name} must not be negative, got {value!r}")
    return float(value)


def safe_ratio(
    numerator: float,
    denominator: float,
    default: Optional[float] = None,
) -> Optional[float]:
    """Divide, returning ``default`` instead of NaN/Infinity on a zero denominator."""
    if denominator == 0:
        return default
    return numerator / denominator
