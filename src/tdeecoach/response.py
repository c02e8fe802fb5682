"""JSON envelope for ``--json`` command output.

Every command prints exactly one envelope. Failures carry the engine's
``ErrorKind`` so scripts can tell rejected input from "not enough data yet"
without parsing the message.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

from tdeecoach.coaching.recommender import Recommendation
from tdeecoach.errors import EngineError, ErrorKind
from tdeecoach.tracking.models import ExpenditureEstimate

SCHEMA_VERSION = "1.1"


def _encode(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


@dataclass
class CommandResponse:
    """
    Result of one CLI command.

    Attributes:
        success: False when the command exited with an error
        command: Command name, e.g. ``"estimate"`` or ``"config init"``
        data: Command payload; empty on failure
        errors: Error messages (at most one per failed command)
        kind: Error classification on failure, None on success
        warnings: Degraded-but-usable conditions (fallback tier, short history)
        suggestions: What to log or change next
        human_summary: One line for people reading the JSON
    """

    success: bool
    command: str
    data: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    kind: Optional[ErrorKind] = None
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    human_summary: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now().replace(microsecond=0))

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "command": self.command,
            "data": self.data,
            "errors": self.errors,
            "kind": self.kind.value if self.kind else None,
            "warnings": self.warnings,
            "suggestions": self.suggestions,
            "human_summary": self.human_summary,
            "timestamp": self.timestamp.isoformat(),
            "schema_version": SCHEMA_VERSION,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=_encode)


def create_response(
    command: str,
    data: Optional[dict[str, Any]] = None,
    warnings: Optional[list[str]] = None,
    suggestions: Optional[list[str]] = None,
    human_summary: str = "",
) -> CommandResponse:
    """Successful response; ``data`` may hold dates and enums."""
    return CommandResponse(
        success=True,
        command=command,
        data=data or {},
        warnings=warnings or [],
        suggestions=suggestions or [],
        human_summary=human_summary,
    )


def error_response(
    command: str,
    error: Union[str, EngineError],
    kind: Optional[ErrorKind] = None,
    suggestions: Optional[list[str]] = None,
) -> CommandResponse:
    """
    Failed response.

    Args:
        command: The command that failed
        error: Message, or the engine error that stopped the command
        kind: Classification; taken from ``error`` when it is an EngineError,
            otherwise defaults to invalid input
        suggestions: How to fix the input

    Returns:
        CommandResponse with ``success=False``
    """
    if kind is None:
        kind = error.kind if isinstance(error, EngineError) else ErrorKind.INVALID_INPUT
    message = str(error)
    return CommandResponse(
        success=False,
        command=command,
        errors=[message],
        kind=kind,
        suggestions=suggestions or [],
        human_summary=f"Error ({kind.value}): {message}",
    )


def summarize_estimate(estimate: ExpenditureEstimate) -> str:
    """``TDEE: 2493 kcal/day (confidence 60, moving_average)``"""
    return (
        f"TDEE: {estimate.estimated_tdee:.0f} kcal/day "
        f"(confidence {estimate.confidence:.0f}, {estimate.algorithm_tier.value})"
    )


def summarize_recommendation(rec: Recommendation) -> str:
    return (
        f"{rec.direction.value.capitalize()} to {rec.new_calories:.0f} kcal/day "
        f"({rec.priority.value})"
    )
