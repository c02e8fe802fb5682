"""Pipeline orchestration and off-thread execution."""

from tdeecoach.engine.pipeline import CheckInResult, CoachingPipeline, build_estimator
from tdeecoach.engine.worker import (
    ChunkedSequence,
    EstimationWorker,
    handle_request,
    recompute_many,
)

__all__ = [
    "CheckInResult",
    "ChunkedSequence",
    "CoachingPipeline",
    "EstimationWorker",
    "build_estimator",
    "handle_request",
    "recompute_many",
]
