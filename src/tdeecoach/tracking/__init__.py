"""Weight trend tracking and TDEE estimation.

Hacker's Diet-style adaptive exponential moving average (or a Kalman filter)
for the weight trend, plus a tiered estimator that back-calculates TDEE
from the trend and logged intake.

Key components:
- Trend smoothers (EWMA with adaptive step response, Kalman with velocity)
- Rolling intake averages
- Data quality scoring and estimate confidence
- ExpenditureEstimator (fallback / simple / moving average / regression)
"""

from __future__ import annotations

from tdeecoach.tracking.estimator import ExpenditureEstimator, estimate_expenditure
from tdeecoach.tracking.intake import IntakeAverage, average_intake
from tdeecoach.tracking.models import (
    KCAL_PER_KG,
    AlgorithmTier,
    Direction,
    ExpenditureEstimate,
    IntakeSample,
    TrendPoint,
    WeightSample,
)
from tdeecoach.tracking.quality import (
    DataQualityReport,
    estimate_confidence,
    score_data_quality,
)
from tdeecoach.tracking.trend import (
    EWMASmoother,
    KalmanSmoother,
    SmoothingMethod,
    TrendAnalysis,
    WeightTrendSmoother,
    analyze_trend,
    get_smoother,
)

__all__ = [
    "KCAL_PER_KG",
    "AlgorithmTier",
    "DataQualityReport",
    "Direction",
    "EWMASmoother",
    "ExpenditureEstimate",
    "ExpenditureEstimator",
    "IntakeAverage",
    "IntakeSample",
    "KalmanSmoother",
    "SmoothingMethod",
    "TrendAnalysis",
    "TrendPoint",
    "WeightSample",
    "WeightTrendSmoother",
    "analyze_trend",
    "average_intake",
    "estimate_confidence",
    "estimate_expenditure",
    "get_smoother",
    "score_data_quality",
]
