"""Reading input snapshots from YAML/JSON files and plain dictionaries.

A snapshot document looks like::

    weights:
      - {date: 2024-01-01, weight_kg: 80.2}
    intake:
      - {date: 2024-01-01, calories: 2150, protein_g: 160, carbs_g: 210, fat_g: 70}
    profile:
      goal_type: cut
      prior_tdee: 2500
      target_macros: {calories: 2000, protein_g: 180, carbs_g: 180, fat_g: 65}
      training_experience: intermediate   # optional
      sex: female                         # optional
      age: 34                             # optional, with height_cm enables
      height_cm: 168                      #   the energy breakdown
    check_in: {energy_level: 3, hunger_level: 3, training_performance: 4}
    body_weight_kg: 80.0                  # optional, defaults to trend weight
    as_of: 2024-02-01                     # optional
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

import yaml

from tdeecoach.coaching.energy import formula_prior
from tdeecoach.coaching.models import (
    ActivityLevel,
    GoalType,
    Macros,
    Sex,
    SubjectiveCheckIn,
    TrainingExperience,
    UserGoalProfile,
    parse_enum,
)
from tdeecoach.errors import InvalidInputError
from tdeecoach.tracking.estimator import MIN_TDEE
from tdeecoach.tracking.models import IntakeSample, WeightSample, sort_by_date


@dataclass(frozen=True)
class Snapshot:
    """Full input for one coaching check-in."""

    weights: tuple[WeightSample, ...] = ()
    intake: tuple[IntakeSample, ...] = ()
    profile: Optional[UserGoalProfile] = None
    check_in: Optional[SubjectiveCheckIn] = None
    body_weight_kg: Optional[float] = None
    as_of: Optional[date] = None
    source: Optional[str] = field(default=None, compare=False)


def parse_date(value: Any, name: str = "date") -> date:
    """Accept a ``date``, ``datetime`` or ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise InvalidInputError(f"{name} must be an ISO date (YYYY-MM-DD), got {value!r}")


def _require_mapping(value: Any, what: str) -> dict:
    if not isinstance(value, dict):
        raise InvalidInputError(f"{what} must be a mapping, got {type(value).__name__}")
    return value


def _require_list(value: Any, what: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidInputError(f"{what} must be a list, got {type(value).__name__}")
    return value


def parse_weight(entry: Any) -> WeightSample:
    data = _require_mapping(entry, "weight entry")
    weight = data.get("weight_kg", data.get("raw_weight_kg"))
    if weight is None:
        raise InvalidInputError(f"weight entry is missing 'weight_kg': {data!r}")
    return WeightSample(
        date=parse_date(data.get("date")),
        raw_weight_kg=weight,
        body_fat_pct=data.get("body_fat_pct"),
    )


def parse_intake(entry: Any) -> IntakeSample:
    data = _require_mapping(entry, "intake entry")
    if "calories" not in data:
        raise InvalidInputError(f"intake entry is missing 'calories': {data!r}")
    return IntakeSample(
        date=parse_date(data.get("date")),
        calories=data["calories"],
        protein_g=data.get("protein_g", 0.0),
        carbs_g=data.get("carbs_g", 0.0),
        fat_g=data.get("fat_g", 0.0),
        fiber_g=data.get("fiber_g"),
    )


def parse_weights(entries: Any) -> tuple[WeightSample, ...]:
    return tuple(parse_weight(e) for e in _require_list(entries, "weights"))


def parse_intakes(entries: Any) -> tuple[IntakeSample, ...]:
    return tuple(parse_intake(e) for e in _require_list(entries, "intake"))


def parse_macros(entry: Any) -> Macros:
    data = _require_mapping(entry, "target_macros")
    try:
        return Macros(
            calories=data["calories"],
            protein_g=data.get("protein_g", 0.0),
            carbs_g=data.get("carbs_g", 0.0),
            fat_g=data.get("fat_g", 0.0),
            fiber_g=data.get("fiber_g"),
        )
    except KeyError:
        raise InvalidInputError("target_macros is missing 'calories'") from None


def parse_profile(entry: Any, weight_kg: Optional[float] = None) -> UserGoalProfile:
    """
    Build a profile from a mapping.

    ``prior_tdee`` may be omitted for a new user when ``weight_kg`` is known
    and the profile carries age, height and sex (or body fat); the formula
    TDEE for the activity level is used instead.
    """
    data = _require_mapping(entry, "profile")
    for key in ("goal_type", "target_macros"):
        if key not in data:
            raise InvalidInputError(f"profile is missing '{key}'")

    experience = data.get("training_experience")
    sex = data.get("sex")
    profile = UserGoalProfile(
        goal_type=parse_enum(GoalType, data["goal_type"], "goal_type"),
        # Placeholder until the formula prior replaces it below
        prior_tdee=data.get("prior_tdee", MIN_TDEE),
        target_macros=parse_macros(data["target_macros"]),
        activity_level=parse_enum(
            ActivityLevel, data.get("activity_level", "moderate"), "activity_level"
        ),
        training_experience=(
            parse_enum(TrainingExperience, experience, "training_experience")
            if experience is not None
            else None
        ),
        sex=parse_enum(Sex, sex, "sex") if sex is not None else None,
        age=data.get("age"),
        height_cm=data.get("height_cm"),
        body_fat_pct=data.get("body_fat_pct"),
        exercise_minutes_per_week=data.get("exercise_minutes_per_week"),
        steps_per_day=data.get("steps_per_day"),
    )
    if "prior_tdee" in data:
        return profile
    if weight_kg is None or not profile.has_body_metrics:
        raise InvalidInputError(
            "profile is missing 'prior_tdee'; give it, or give age, height_cm and sex "
            "along with a weight so it can be estimated"
        )
    return replace(profile, prior_tdee=formula_prior(profile, weight_kg))


def parse_check_in(entry: Any) -> SubjectiveCheckIn:
    data = _require_mapping(entry, "check_in")
    try:
        return SubjectiveCheckIn(
            energy_level=data["energy_level"],
            hunger_level=data["hunger_level"],
            training_performance=data["training_performance"],
        )
    except KeyError as e:
        raise InvalidInputError(f"check_in is missing {e}") from None


def parse_snapshot(data: Any, source: Optional[str] = None) -> Snapshot:
    """
    Build a Snapshot from a plain dictionary.

    Args:
        data: Parsed YAML/JSON document
        source: Where the document came from (for messages only)

    Returns:
        Snapshot

    Raises:
        InvalidInputError: Missing fields or invalid values
    """
    data = _require_mapping(data, "snapshot")
    profile = data.get("profile")
    check_in = data.get("check_in")
    as_of = data.get("as_of")
    weights = parse_weights(data.get("weights"))
    body_weight = data.get("body_weight_kg")
    if body_weight is None and weights:
        body_weight = sort_by_date(weights)[-1].raw_weight_kg
    return Snapshot(
        weights=weights,
        intake=parse_intakes(data.get("intake")),
        profile=parse_profile(profile, weight_kg=body_weight) if profile is not None else None,
        check_in=parse_check_in(check_in) if check_in is not None else None,
        body_weight_kg=data.get("body_weight_kg"),
        as_of=parse_date(as_of, "as_of") if as_of is not None else None,
        source=source,
    )


def load_snapshot(path: Path) -> Snapshot:
    """
    Load a snapshot from a YAML or JSON file.

    Files ending in ``.json`` are read as JSON; everything else as YAML.

    Raises:
        InvalidInputError: Unreadable document or invalid contents
        FileNotFoundError: Missing file
    """
    path = Path(path)
    with open(path) as f:
        text = f.read()

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise InvalidInputError(f"Could not parse {path}: {e}") from e

    return parse_snapshot(data or {}, source=str(path))
