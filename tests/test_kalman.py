"""Tests for the Kalman filter weight trend."""

from __future__ import annotations

import pytest

from tdeecoach.errors import InvalidInputError
from tdeecoach.tracking.kalman import MAX_VARIANCE, WeightKalmanFilter, kalman_daily


class TestWeightKalmanFilter:
    """Tests for the filter state machine."""

    def test_predict_grows_variance(self) -> None:
        kf = WeightKalmanFilter(weight=80.0, variance=0.1, process_noise=0.01)
        kf.predict(days=3)
        assert kf.variance == pytest.approx(0.13)
        assert kf.weight == pytest.approx(80.0)

    def test_predict_follows_velocity(self) -> None:
        kf = WeightKalmanFilter(weight=80.0, velocity=-0.1)
        kf.predict(days=2)
        assert kf.weight == pytest.approx(79.8)

    def test_variance_capped_over_long_gaps(self) -> None:
        kf = WeightKalmanFilter(weight=80.0)
        kf.predict(days=10_000)
        assert kf.variance == pytest.approx(MAX_VARIANCE)

    def test_update_moves_partway(self) -> None:
        """Equal prior and measurement variance gives a gain of one half."""
        kf = WeightKalmanFilter(weight=80.0, variance=0.1, measurement_noise=0.1)
        innovation = kf.update(79.0)
        assert innovation == pytest.approx(-1.0)
        assert kf.weight == pytest.approx(79.5)
        assert kf.variance == pytest.approx(0.05)

    def test_velocity_follows_corrections(self) -> None:
        kf = WeightKalmanFilter(weight=80.0, variance=0.1, measurement_noise=0.1)
        kf.update(79.0)
        assert kf.velocity < 0

    def test_get_state(self) -> None:
        state = WeightKalmanFilter(weight=80.0).get_state()
        assert set(state) == {"weight", "variance", "velocity"}


class TestKalmanDaily:
    """Tests for kalman_daily."""

    def test_first_trend_equals_first_reading(self, make_weights) -> None:
        points = kalman_daily(make_weights([82.0, 81.5, 81.7]))
        assert points[0].trend_weight == pytest.approx(82.0)

    def test_constant_weight_stays_constant(self, make_weights) -> None:
        points = kalman_daily(make_weights([80.0] * 10))
        assert all(p.trend_weight == pytest.approx(80.0) for p in points)

    def test_gap_days_interpolated(self, make_weights) -> None:
        points = kalman_daily(make_weights([80.0, None, None, 79.7]))
        assert len(points) == 4
        assert [p.point_confidence for p in points] == [1.0, 0.5, 0.5, 1.0]
        assert points[1].raw_weight == pytest.approx(points[1].trend_weight)

    def test_trend_lags_raw(self, make_weights) -> None:
        points = kalman_daily(make_weights([80.0, 79.0]))
        assert 79.0 < points[1].trend_weight < 80.0

    def test_empty_raises(self) -> None:
        with pytest.raises(InvalidInputError):
            kalman_daily([])

    def test_non_positive_noise_raises(self, make_weights) -> None:
        with pytest.raises(InvalidInputError):
            kalman_daily(make_weights([80.0]), process_noise=0.0)
