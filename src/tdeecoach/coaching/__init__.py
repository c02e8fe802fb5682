"""Coaching: behavioral patterns, adherence scoring and goal recommendations."""

from tdeecoach.coaching.adherence import (
    AdherenceMetrics,
    AdherenceRecord,
    AdherenceTrend,
    ConsistencyReport,
    MacroTolerances,
    adherence,
    consistency_report,
    score_adherence,
)
from tdeecoach.coaching.energy import (
    EnergyComponents,
    ExerciseIntensity,
    calculate_bmr,
    calculate_energy_components,
    calculate_tdee,
    explain_tdee_change,
    formula_prior,
)
from tdeecoach.coaching.goals import (
    GoalConstraint,
    assess_rate_safety,
    calculate_macros,
    get_goal_constraint,
)
from tdeecoach.coaching.models import (
    ActivityLevel,
    GoalType,
    Macros,
    Sex,
    SubjectiveCheckIn,
    TrainingExperience,
    UserGoalProfile,
)
from tdeecoach.coaching.patterns import (
    BehavioralPattern,
    Impact,
    PatternType,
    detect_behavioral_patterns,
)
from tdeecoach.coaching.recommender import (
    AdjustmentDirection,
    Confidence,
    GoalRecommendationEngine,
    PerformanceSnapshot,
    Priority,
    Recommendation,
)

__all__ = [
    "ActivityLevel",
    "AdherenceMetrics",
    "AdherenceRecord",
    "AdherenceTrend",
    "AdjustmentDirection",
    "BehavioralPattern",
    "Confidence",
    "ConsistencyReport",
    "EnergyComponents",
    "ExerciseIntensity",
    "GoalConstraint",
    "GoalRecommendationEngine",
    "GoalType",
    "Impact",
    "MacroTolerances",
    "Macros",
    "PatternType",
    "PerformanceSnapshot",
    "Priority",
    "Recommendation",
    "Sex",
    "SubjectiveCheckIn",
    "TrainingExperience",
    "UserGoalProfile",
    "adherence",
    "assess_rate_safety",
    "calculate_bmr",
    "calculate_energy_components",
    "calculate_macros",
    "calculate_tdee",
    "consistency_report",
    "detect_behavioral_patterns",
    "explain_tdee_change",
    "formula_prior",
    "get_goal_constraint",
    "score_adherence",
]
