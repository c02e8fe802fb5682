"""End-to-end weekly check-in: trend, estimate, quality, patterns, adherence, advice."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from tdeecoach.coaching.adherence import (
    AdherenceMetrics,
    ConsistencyReport,
    MacroTolerances,
    consistency_report,
    score_adherence,
)
from tdeecoach.coaching.energy import (
    EnergyComponents,
    calculate_energy_components,
    explain_tdee_change,
)
from tdeecoach.coaching.models import UserGoalProfile
from tdeecoach.coaching.patterns import BehavioralPattern, detect_behavioral_patterns
from tdeecoach.coaching.recommender import (
    GoalRecommendationEngine,
    PerformanceSnapshot,
    Recommendation,
)
from tdeecoach.config.settings import Settings
from tdeecoach.errors import InvalidInputError
from tdeecoach.io import Snapshot
from tdeecoach.metrics import MetricsRecorder, SnapshotCache
from tdeecoach.tracking.estimator import ExpenditureEstimator
from tdeecoach.tracking.intake import average_intake
from tdeecoach.tracking.models import ExpenditureEstimate, IntakeSample, TrendPoint
from tdeecoach.tracking.quality import DataQualityReport, score_data_quality
from tdeecoach.tracking.trend import TrendAnalysis, analyze_trend, get_smoother

logger = logging.getLogger(__name__)


def build_estimator(
    settings: Optional[Settings] = None,
    metrics: Optional[MetricsRecorder] = None,
    cache: Optional[SnapshotCache] = None,
) -> ExpenditureEstimator:
    """Create an estimator from settings (defaults when ``settings`` is None)."""
    settings = settings or Settings()
    est = settings.estimator
    return ExpenditureEstimator(
        smoother=get_smoother(est.smoothing_method, est.smoothing_alpha),
        smoothing=est.tdee_smoothing,
        max_relative_change=est.max_relative_change,
        min_tdee=est.min_tdee,
        max_tdee=est.max_tdee,
        quality_window_days=est.quality_window_days,
        half_life_days=est.recency_half_life_days,
        metrics=metrics,
        cache=cache,
    )


def tolerances_from(settings: Optional[Settings] = None) -> MacroTolerances:
    adh = (settings or Settings()).adherence
    return MacroTolerances(
        calories=adh.calories_tolerance,
        protein=adh.protein_tolerance,
        carbs=adh.carbs_tolerance,
        fat=adh.fat_tolerance,
    )


def energy_breakdown(
    profile: UserGoalProfile,
    estimate: ExpenditureEstimate,
    points: list[TrendPoint],
    intake: list[IntakeSample],
    body_weight_kg: Optional[float] = None,
) -> tuple[Optional[EnergyComponents], list[str]]:
    """
    Components of the current estimate, and why it moved from the prior.

    The prior is broken down at the first trend weight and the estimate at the
    current weight, both with the same recent intake, so the comparison shows
    how much of the change is BMR following body weight and how much is NEAT.

    Returns:
        ``(None, [])`` when the profile lacks body metrics or no weight is known
    """
    weight = body_weight_kg if body_weight_kg is not None else estimate.trend_weight
    if not profile.has_body_metrics or weight is None:
        return None, []

    recent = average_intake(intake, window_days=7, as_of=estimate.as_of_date)
    intake_kcal = recent.calories if recent.has_data else profile.target_macros.calories
    current = calculate_energy_components(
        profile, weight, intake_kcal, measured_tdee=estimate.estimated_tdee
    )
    if not points:
        return current, []

    previous = calculate_energy_components(
        profile, points[0].trend_weight, intake_kcal, measured_tdee=profile.prior_tdee
    )
    return current, explain_tdee_change(previous, current)


@dataclass
class CheckInResult:
    """Everything computed for one check-in."""

    estimate: ExpenditureEstimate
    quality: DataQualityReport
    patterns: list[BehavioralPattern]
    trend: Optional[TrendAnalysis] = None
    adherence: Optional[AdherenceMetrics] = None
    consistency: Optional[ConsistencyReport] = None
    recommendation: Optional[Recommendation] = None
    energy: Optional[EnergyComponents] = None
    tdee_change: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        trend = None
        if self.trend is not None:
            trend = {
                "current_trend_weight": round(self.trend.current_trend_weight, 2),
                "weekly_change_rate_pct": round(self.trend.weekly_change_rate_pct, 3),
                "weekly_change_kg": round(self.trend.weekly_change_kg, 3),
                "volatility": round(self.trend.volatility, 3),
                "data_quality": self.trend.data_quality,
                "direction": self.trend.direction.value,
            }
        return {
            "estimate": self.estimate.to_dict(),
            "quality": self.quality.to_dict(),
            "patterns": [p.to_dict() for p in self.patterns],
            "trend": trend,
            "adherence": self.adherence.to_dict() if self.adherence else None,
            "consistency": self.consistency.to_dict() if self.consistency else None,
            "recommendation": (
                self.recommendation.to_dict() if self.recommendation else None
            ),
            "energy": self.energy.to_dict() if self.energy else None,
            "tdee_change": list(self.tdee_change),
            "warnings": list(self.warnings),
        }


class CoachingPipeline:
    """
    Run every component over one snapshot.

    The pipeline holds no state between runs; collaborators are injected.

    Example:
        >>> pipeline = CoachingPipeline()
        >>> result = pipeline.run(load_snapshot(Path("week.yaml")))
        >>> result.recommendation.direction
        <AdjustmentDirection.DECREASE: 'decrease'>
    """

    def __init__(
        self,
        estimator: Optional[ExpenditureEstimator] = None,
        engine: Optional[GoalRecommendationEngine] = None,
        tolerances: Optional[MacroTolerances] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.estimator = estimator or build_estimator(settings)
        self.engine = engine or GoalRecommendationEngine()
        self.tolerances = tolerances or tolerances_from(settings)

    def run(self, snapshot: Snapshot) -> CheckInResult:
        """
        Compute estimate, quality, patterns, adherence, recommendation and
        the energy breakdown.

        Adherence needs a profile (for targets); the recommendation also needs
        a check-in and a body weight. Missing pieces are skipped with a
        warning. The energy breakdown needs age, height and sex on the profile.

        Raises:
            InvalidInputError: Invalid snapshot contents
        """
        warnings: list[str] = []
        profile = snapshot.profile
        if profile is None:
            raise InvalidInputError("a profile with prior_tdee is required")

        estimate = self.estimator.estimate(
            snapshot.weights, snapshot.intake, profile.prior_tdee, as_of=snapshot.as_of
        )
        if estimate.is_fallback:
            warnings.append(
                f"Only {estimate.paired_days} days with both weight and intake - "
                "using the prior TDEE until at least 7 are logged."
            )

        as_of = snapshot.as_of
        weights = [w for w in snapshot.weights if as_of is None or w.date <= as_of]
        intake = [s for s in snapshot.intake if as_of is None or s.date <= as_of]
        points = self.estimator.smoother.smooth(weights) if weights else []
        trend = analyze_trend(points) if points else None

        patterns = detect_behavioral_patterns(intake)
        quality = score_data_quality(
            weights,
            intake,
            window_days=self.estimator.quality_window_days,
            as_of=estimate.as_of_date,
            patterns=patterns,
        )

        adherence = None
        consistency = None
        if estimate.as_of_date is not None:
            # New users are scored only over the days since their first log
            window = self.estimator.quality_window_days
            if intake:
                history = (estimate.as_of_date - min(s.date for s in intake)).days + 1
                window = max(1, min(window, history))
            adherence = score_adherence(
                intake,
                profile.target_macros,
                window_days=window,
                as_of=estimate.as_of_date,
                tolerances=self.tolerances,
            )
            consistency = consistency_report(adherence)

        recommendation = None
        if snapshot.check_in is None:
            warnings.append("No check-in provided - skipping recommendation.")
        elif adherence is None:
            warnings.append("No data logged - skipping recommendation.")
        elif estimate.trend_weight is None and snapshot.body_weight_kg is None:
            warnings.append("No weight logged - skipping recommendation.")
        else:
            performance = PerformanceSnapshot.from_results(
                estimate,
                adherence,
                snapshot.check_in,
                body_weight_kg=snapshot.body_weight_kg,
            )
            recommendation = self.engine.recommend(profile, performance)

        energy, tdee_change = energy_breakdown(
            profile, estimate, points, intake, body_weight_kg=snapshot.body_weight_kg
        )

        logger.info(
            "Check-in: TDEE %.0f (%s, confidence %.0f), %d patterns",
            estimate.estimated_tdee,
            estimate.algorithm_tier.value,
            estimate.confidence,
            len(patterns),
        )
        return CheckInResult(
            estimate=estimate,
            quality=quality,
            patterns=patterns,
            trend=trend,
            adherence=adherence,
            consistency=consistency,
            recommendation=recommendation,
            energy=energy,
            tdee_change=tdee_change,
            warnings=warnings,
        )
