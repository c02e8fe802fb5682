"""Tests for adaptive EMA weight trend smoothing."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from tdeecoach.errors import InvalidInputError
from tdeecoach.tracking.ema import (
    DEFAULT_SMOOTHING,
    MAX_ADAPTIVE_SMOOTHING,
    adaptive_alpha,
    estimate_daily_calorie_balance,
    estimate_weekly_change,
    smooth_daily,
    update_trend,
    validate_smoothing,
)
from tdeecoach.tracking.models import WeightSample


class TestAdaptiveAlpha:
    """Tests for adaptive_alpha function."""

    def test_normal_noise_keeps_base(self) -> None:
        """Readings within 2% of trend use the base factor."""
        assert adaptive_alpha(80.5, 80.0) == pytest.approx(DEFAULT_SMOOTHING)

    def test_step_change_doubles(self) -> None:
        """A 2.5% deviation doubles alpha."""
        assert adaptive_alpha(82.0, 80.0) == pytest.approx(0.2)

    def test_step_change_downward(self) -> None:
        """Deviation is symmetric."""
        assert adaptive_alpha(78.0, 80.0) == pytest.approx(0.2)

    def test_boost_is_capped(self) -> None:
        """Boosted factor never exceeds 0.3."""
        assert adaptive_alpha(90.0, 80.0, base_alpha=0.25) == pytest.approx(MAX_ADAPTIVE_SMOOTHING)


class TestValidateSmoothing:
    """Tests for validate_smoothing."""

    @pytest.mark.parametrize("alpha", [0.0, 1.0, -0.1, 1.5])
    def test_rejects_out_of_range(self, alpha: float) -> None:
        with pytest.raises(InvalidInputError):
            validate_smoothing(alpha)

    def test_accepts_valid(self) -> None:
        assert validate_smoothing(0.25) == 0.25


class TestUpdateTrend:
    """Tests for update_trend function."""

    def test_moves_toward_reading(self) -> None:
        """T_n = T_{n-1} + 0.1 × (W_n − T_{n-1})."""
        assert update_trend(80.0, 79.8) == pytest.approx(79.98)

    def test_unchanged_on_equal_reading(self) -> None:
        assert update_trend(80.0, 80.0) == pytest.approx(80.0)

    def test_custom_smoothing(self) -> None:
        assert update_trend(80.0, 79.0, smoothing=0.2) == pytest.approx(79.8)


class TestSmoothDaily:
    """Tests for smooth_daily."""

    def test_first_trend_equals_first_reading(self, make_weights) -> None:
        """No lag on day 0."""
        points = smooth_daily(make_weights([81.3, 81.0, 80.8]))
        assert points[0].trend_weight == pytest.approx(81.3)
        assert points[0].local_slope_per_day == 0.0

    def test_one_point_per_calendar_day(self, make_weights) -> None:
        points = smooth_daily(make_weights([80.0, None, None, 79.5]))
        assert len(points) == 4
        days = [p.date for p in points]
        assert days == [days[0] + timedelta(days=i) for i in range(4)]

    def test_gap_carries_trend_forward(self, make_weights) -> None:
        """Missing days repeat the trend with reduced confidence."""
        points = smooth_daily(make_weights([80.0, None, 79.0]))
        gap = points[1]
        assert gap.raw_weight == pytest.approx(80.0)
        assert gap.trend_weight == pytest.approx(80.0)
        assert gap.point_confidence == pytest.approx(0.5)
        assert gap.is_interpolated
        assert points[2].trend_weight == pytest.approx(79.9)
        assert points[2].point_confidence == 1.0

    def test_slope_is_day_over_day_trend_change(self, make_weights) -> None:
        points = smooth_daily(make_weights([80.0, 79.0]))
        assert points[1].local_slope_per_day == pytest.approx(-0.1)

    def test_step_change_tracked_faster(self, make_weights) -> None:
        """A large jump uses the boosted factor."""
        points = smooth_daily(make_weights([80.0, 84.0]))
        assert points[1].trend_weight == pytest.approx(80.8)

    def test_empty_raises(self) -> None:
        with pytest.raises(InvalidInputError):
            smooth_daily([])

    def test_duplicate_dates_raise(self) -> None:
        day = date(2024, 1, 1)
        samples = [WeightSample(day, 80.0), WeightSample(day, 80.2)]
        with pytest.raises(InvalidInputError, match="strictly increasing"):
            smooth_daily(samples)


class TestEstimateWeeklyChange:
    """Tests for estimate_weekly_change."""

    def test_seven_day_period(self) -> None:
        assert estimate_weekly_change(80.0, 79.5) == pytest.approx(-0.5)

    def test_scaled_period(self) -> None:
        """14 days of -1.0 kg is -0.5 kg/week."""
        assert estimate_weekly_change(80.0, 79.0, days=14) == pytest.approx(-0.5)

    def test_zero_days(self) -> None:
        assert estimate_weekly_change(80.0, 79.0, days=0) == 0.0


class TestEstimateDailyCalorieBalance:
    """Tests for estimate_daily_calorie_balance."""

    def test_deficit(self) -> None:
        """0.5 kg/week loss is a 550 kcal/day deficit."""
        assert estimate_daily_calorie_balance(-0.5) == pytest.approx(-550.0)

    def test_surplus(self) -> None:
        assert estimate_daily_calorie_balance(0.7) == pytest.approx(770.0)
