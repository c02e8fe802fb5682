"""Tests for tiered TDEE estimation."""

from __future__ import annotations

from datetime import timedelta

import pytest

from tdeecoach.errors import InvalidInputError
from tdeecoach.metrics import InMemoryMetrics, SnapshotCache
from tdeecoach.tracking.estimator import (
    MAX_TDEE,
    MIN_TDEE,
    TIER_CONFIDENCE_CAP,
    ExpenditureEstimator,
    PairedDay,
    estimate_expenditure,
    moving_average_balance,
    select_tier,
)
from tdeecoach.tracking.models import AlgorithmTier, Direction
from tdeecoach.tracking.trend import KalmanSmoother


def _linear(start: float, per_day: float, days: int) -> list[float]:
    return [start + per_day * i for i in range(days)]


class TestSelectTier:
    """Tests for tier thresholds."""

    @pytest.mark.parametrize(
        "count, tier",
        [
            (0, AlgorithmTier.FALLBACK),
            (6, AlgorithmTier.FALLBACK),
            (7, AlgorithmTier.SIMPLE_ENERGY_BALANCE),
            (13, AlgorithmTier.SIMPLE_ENERGY_BALANCE),
            (14, AlgorithmTier.MOVING_AVERAGE),
            (20, AlgorithmTier.MOVING_AVERAGE),
            (21, AlgorithmTier.WEIGHTED_REGRESSION),
            (90, AlgorithmTier.WEIGHTED_REGRESSION),
        ],
    )
    def test_thresholds(self, count: int, tier: AlgorithmTier) -> None:
        assert select_tier(count) is tier


class TestFallback:
    """Too little data returns the prior."""

    def test_five_days(self, make_weights, make_intake) -> None:
        estimate = estimate_expenditure(
            make_weights(_linear(80.0, -0.1, 5)), make_intake([2000] * 5), 2400.0
        )
        assert estimate.algorithm_tier is AlgorithmTier.FALLBACK
        assert estimate.estimated_tdee == 2400.0
        assert estimate.confidence <= 10.0
        assert estimate.raw_tdee is None
        assert estimate.paired_days == 5

    def test_no_weights(self, make_intake) -> None:
        estimate = estimate_expenditure([], make_intake([2000] * 20), 2400.0)
        assert estimate.is_fallback
        assert estimate.trend_weight is None
        assert estimate.direction is Direction.MAINTAINING

    def test_no_data_at_all(self) -> None:
        estimate = estimate_expenditure([], [], 2400.0)
        assert estimate.is_fallback
        assert estimate.as_of_date is None
        assert estimate.confidence == 0.0

    def test_weights_without_intake(self, make_weights) -> None:
        estimate = estimate_expenditure(make_weights([80.0] * 30), [], 2400.0)
        assert estimate.is_fallback
        assert estimate.trend_weight == pytest.approx(80.0)


class TestSimpleEnergyBalance:
    """7-13 paired days."""

    def test_stable_weight_tdee_equals_intake(self, make_weights, make_intake) -> None:
        estimate = estimate_expenditure(
            make_weights([80.0] * 10), make_intake([2000] * 10), 2500.0
        )
        assert estimate.algorithm_tier is AlgorithmTier.SIMPLE_ENERGY_BALANCE
        assert estimate.raw_tdee == pytest.approx(2000.0)
        assert estimate.estimated_tdee == pytest.approx(0.3 * 2000 + 0.7 * 2500)

    def test_confidence_capped(self, make_weights, make_intake) -> None:
        estimate = estimate_expenditure(
            make_weights([80.0] * 10), make_intake([2000] * 10), 2500.0
        )
        assert estimate.confidence <= TIER_CONFIDENCE_CAP[AlgorithmTier.SIMPLE_ENERGY_BALANCE]


class TestMovingAverage:
    """14-20 paired days."""

    def test_steady_loss_on_fixed_intake(self, make_weights, make_intake) -> None:
        """0.5 kg lost over 14 days at 2200 kcal implies a 275 kcal deficit."""
        weights = make_weights(_linear(80.0, -0.5 / 14, 14))
        estimate = estimate_expenditure(weights, make_intake([2200] * 14), 2500.0)

        assert estimate.algorithm_tier is AlgorithmTier.MOVING_AVERAGE
        assert estimate.raw_tdee == pytest.approx(2475.0)
        assert estimate.estimated_tdee == pytest.approx(2492.5)
        assert estimate.confidence <= TIER_CONFIDENCE_CAP[AlgorithmTier.MOVING_AVERAGE]
        assert estimate.paired_days == 14

    def test_implausible_windows_downgrade(self, start_date) -> None:
        """All window estimates out of range: no moving-average value."""
        paired = [
            PairedDay(start_date + timedelta(days=i), 9000.0, 80.0, 80.0, True)
            for i in range(14)
        ]
        assert moving_average_balance(paired) is None

    def test_downgrades_to_simple(self, make_weights, make_intake) -> None:
        estimate = estimate_expenditure(
            make_weights([80.0] * 14), make_intake([9000] * 14), 4000.0
        )
        assert estimate.algorithm_tier is AlgorithmTier.SIMPLE_ENERGY_BALANCE


class TestWeightedRegression:
    """21+ paired days."""

    def test_linear_loss(self, make_weights, make_intake) -> None:
        """Y = C_t − 7700·w_t is exactly linear with slope 2500 + 385."""
        weights = make_weights(_linear(80.0, -0.05, 28))
        estimate = estimate_expenditure(weights, make_intake([2500] * 28), 2800.0)

        assert estimate.algorithm_tier is AlgorithmTier.WEIGHTED_REGRESSION
        assert estimate.raw_tdee == pytest.approx(2885.0, abs=0.01)
        assert estimate.estimated_tdee == pytest.approx(2825.5, abs=0.01)
        assert estimate.confidence <= TIER_CONFIDENCE_CAP[AlgorithmTier.WEIGHTED_REGRESSION]

    def test_sparse_weigh_ins(self, make_weights, make_intake) -> None:
        """Only weighed days are fitted; gaps do not bias the slope."""
        values = [80.0 - 0.05 * i if i % 2 == 0 else None for i in range(29)]
        estimate = estimate_expenditure(make_weights(values), make_intake([2500] * 29), 2800.0)
        assert estimate.algorithm_tier is AlgorithmTier.WEIGHTED_REGRESSION
        assert estimate.raw_tdee == pytest.approx(2885.0, abs=0.01)

    def test_too_few_weigh_ins_downgrade(self, make_weights, make_intake) -> None:
        values = [None] * 28
        for day in (0, 10, 20, 25, 27):
            values[day] = 80.0
        estimate = estimate_expenditure(make_weights(values), make_intake([2300] * 28), 2500.0)
        assert estimate.algorithm_tier is AlgorithmTier.MOVING_AVERAGE
        assert estimate.raw_tdee == pytest.approx(2300.0)

    def test_outlier_reading_dropped(self, make_weights, make_intake) -> None:
        """A 5 kg spike is dropped rather than dragging the fit."""
        values = _linear(80.0, -0.05, 28)
        values[20] += 5.0
        estimate = estimate_expenditure(make_weights(values), make_intake([2500] * 28), 2800.0)
        assert estimate.raw_tdee == pytest.approx(2885.0, abs=0.01)

    def test_unlogged_days_imputed(self, make_weights, make_intake) -> None:
        calories = [2500 if i % 5 else None for i in range(28)]
        estimate = estimate_expenditure(
            make_weights(_linear(80.0, -0.05, 28)), make_intake(calories), 2800.0
        )
        assert estimate.algorithm_tier is AlgorithmTier.WEIGHTED_REGRESSION
        assert estimate.raw_tdee == pytest.approx(2885.0, abs=0.01)


class TestBlendAndClamp:
    """Prior blending and bounds."""

    def test_relative_clamp(self, make_weights, make_intake) -> None:
        estimate = estimate_expenditure(
            make_weights([80.0] * 10), make_intake([5000] * 10), 2000.0
        )
        assert estimate.raw_tdee == pytest.approx(5000.0)
        assert estimate.estimated_tdee == pytest.approx(2400.0)

    def test_absolute_clamp(self, make_weights, make_intake) -> None:
        estimate = estimate_expenditure(
            make_weights([80.0] * 10), make_intake([9000] * 10), 4900.0
        )
        assert estimate.estimated_tdee == MAX_TDEE

    def test_clamp_uses_tighter_bound(self) -> None:
        estimator = ExpenditureEstimator()
        assert estimator.clamp(900.0, 1300.0) == MIN_TDEE
        assert estimator.clamp(900.0, 2000.0) == pytest.approx(1600.0)

    @pytest.mark.parametrize("prior", [1000.0, 5500.0, float("nan"), float("inf")])
    def test_invalid_prior(self, prior: float, make_weights, make_intake) -> None:
        with pytest.raises(InvalidInputError):
            estimate_expenditure(make_weights([80.0] * 10), make_intake([2000] * 10), prior)

    def test_invalid_parameters(self) -> None:
        with pytest.raises(InvalidInputError):
            ExpenditureEstimator(smoothing=0.0)
        with pytest.raises(InvalidInputError):
            ExpenditureEstimator(max_relative_change=1.5)


class TestEstimatorContract:
    """Properties that hold for every snapshot."""

    @pytest.mark.parametrize("days", [3, 10, 16, 30])
    def test_bounds(self, days: int, make_weights, make_intake) -> None:
        estimate = estimate_expenditure(
            make_weights(_linear(95.0, -0.15, days)), make_intake([1500] * days), 2800.0
        )
        assert MIN_TDEE <= estimate.estimated_tdee <= MAX_TDEE
        assert 0.8 * 2800.0 <= estimate.estimated_tdee <= 1.2 * 2800.0
        assert 0.0 <= estimate.confidence <= TIER_CONFIDENCE_CAP[estimate.algorithm_tier]

    def test_idempotent(self, make_weights, make_intake) -> None:
        weights = make_weights(_linear(80.0, -0.05, 25))
        intake = make_intake([2300] * 25)
        estimator = ExpenditureEstimator()
        assert estimator.estimate(weights, intake, 2500.0) == estimator.estimate(
            weights, intake, 2500.0
        )

    def test_input_order_irrelevant(self, make_weights, make_intake) -> None:
        weights = make_weights(_linear(80.0, -0.05, 25))
        intake = make_intake([2300] * 25)
        forward = estimate_expenditure(weights, intake, 2500.0)
        backward = estimate_expenditure(list(reversed(weights)), list(reversed(intake)), 2500.0)
        assert forward == backward

    def test_samples_after_as_of_ignored(self, make_weights, make_intake, start_date) -> None:
        weights = make_weights([80.0] * 10 + [90.0] * 10)
        intake = make_intake([2000] * 10 + [6000] * 10)
        as_of = start_date + timedelta(days=9)
        estimate = estimate_expenditure(weights, intake, 2500.0, as_of=as_of)
        truncated = estimate_expenditure(weights[:10], intake[:10], 2500.0)
        assert estimate == truncated
        assert estimate.as_of_date == as_of

    def test_stale_data_lowers_confidence(self, make_weights, make_intake, start_date) -> None:
        weights = make_weights([80.0] * 10)
        intake = make_intake([2000] * 10)
        fresh = estimate_expenditure(weights, intake, 2500.0)
        stale = estimate_expenditure(
            weights, intake, 2500.0, as_of=start_date + timedelta(days=60)
        )
        assert stale.confidence < fresh.confidence

    def test_duplicate_dates_rejected(self, make_weights, make_intake) -> None:
        weights = make_weights([80.0] * 10)
        with pytest.raises(InvalidInputError):
            estimate_expenditure(weights + weights[:1], make_intake([2000] * 10), 2500.0)

    def test_kalman_smoother(self, make_weights, make_intake) -> None:
        estimate = estimate_expenditure(
            make_weights([80.0] * 10), make_intake([2000] * 10), 2500.0, smoother=KalmanSmoother()
        )
        assert estimate.raw_tdee == pytest.approx(2000.0)

    def test_to_dict(self, make_weights, make_intake) -> None:
        data = estimate_expenditure(
            make_weights([80.0] * 10), make_intake([2000] * 10), 2500.0
        ).to_dict()
        assert data["algorithm_tier"] == "simple_energy_balance"
        assert data["estimated_tdee"] == 2350.0
        assert data["as_of_date"] == "2024-01-10"


class TestCollaborators:
    """Metrics and cache never change results."""

    def test_cache_hit(self, make_weights, make_intake) -> None:
        metrics = InMemoryMetrics()
        cache = SnapshotCache()
        estimator = ExpenditureEstimator(metrics=metrics, cache=cache)
        weights = make_weights([80.0] * 10)
        intake = make_intake([2000] * 10)

        first = estimator.estimate(weights, intake, 2500.0)
        second = estimator.estimate(weights, intake, 2500.0)

        assert first == second
        assert len(cache) == 1
        stats = metrics.get("estimate")
        assert stats.calls == 2
        assert stats.cache_hits == 1

    def test_cache_keyed_on_prior(self, make_weights, make_intake) -> None:
        cache = SnapshotCache()
        estimator = ExpenditureEstimator(cache=cache)
        weights = make_weights([80.0] * 10)
        intake = make_intake([2000] * 10)
        a = estimator.estimate(weights, intake, 2500.0)
        b = estimator.estimate(weights, intake, 2600.0)
        assert a.estimated_tdee != b.estimated_tdee
        assert len(cache) == 2


def _alternating(swing: float, days: int = 21) -> list[float]:
    return [2000 + swing if i % 2 else 2000 - swing for i in range(days)]


class TestConfidenceMonotonicity:
    """Confidence follows data quality in the expected direction."""

    @pytest.mark.parametrize("calmer, noisier", [(0, 100), (100, 200), (200, 400), (400, 800)])
    def test_volatility_never_raises_confidence(
        self, calmer: float, noisier: float, make_weights, make_intake
    ) -> None:
        weights = make_weights([80.0] * 21)
        estimator = ExpenditureEstimator()
        steady = estimator.estimate(weights, make_intake(_alternating(calmer)), 2500.0)
        erratic = estimator.estimate(weights, make_intake(_alternating(noisier)), 2500.0)
        assert steady.algorithm_tier is AlgorithmTier.WEIGHTED_REGRESSION
        assert erratic.algorithm_tier is AlgorithmTier.WEIGHTED_REGRESSION
        assert erratic.confidence <= steady.confidence

    def test_erratic_intake_lowers_confidence(self, make_weights, make_intake) -> None:
        weights = make_weights([80.0] * 21)
        steady = estimate_expenditure(weights, make_intake(_alternating(0)), 2500.0)
        erratic = estimate_expenditure(weights, make_intake(_alternating(800)), 2500.0)
        assert erratic.confidence < steady.confidence

    @pytest.mark.parametrize("sparse, dense", [(5, 2), (2, 1)])
    def test_more_weigh_ins_never_lower_confidence(
        self, sparse: int, dense: int, make_weights, make_intake
    ) -> None:
        intake = make_intake([2000] * 21)
        few = make_weights([80.0 if i % sparse == 0 else None for i in range(21)])
        many = make_weights([80.0 if i % dense == 0 else None for i in range(21)])
        estimator = ExpenditureEstimator()
        low = estimator.estimate(few, intake, 2500.0)
        high = estimator.estimate(many, intake, 2500.0)
        assert high.confidence >= low.confidence
        assert high.data_quality >= low.data_quality
