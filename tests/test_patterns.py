"""Tests for behavioral pattern detection."""

from __future__ import annotations

import pytest

from tdeecoach.coaching.patterns import (
    Impact,
    PatternType,
    detect_behavioral_patterns,
    detect_meal_skipping,
    detect_weekend_deviation,
)


def _weekly(weekday: float, weekend: float, weeks: int = 3) -> list[float]:
    """Calories for whole weeks starting on a Monday."""
    return ([weekday] * 5 + [weekend] * 2) * weeks


class TestDetectBehavioralPatterns:
    """Tests for detect_behavioral_patterns."""

    def test_too_few_samples(self, make_intake) -> None:
        assert detect_behavioral_patterns(make_intake(_weekly(2000, 3000, weeks=1))) == []

    def test_weekend_overeating(self, make_intake) -> None:
        patterns = detect_behavioral_patterns(make_intake(_weekly(2000, 2600)))
        weekend = patterns[0]
        assert weekend.type is PatternType.WEEKEND_DEVIATION
        assert weekend.impact is Impact.NEGATIVE
        assert weekend.strength == pytest.approx(1.0)
        assert "higher" in weekend.description

    def test_weekend_lower_is_positive(self, make_intake) -> None:
        patterns = detect_behavioral_patterns(make_intake(_weekly(2000, 1600)))
        assert patterns[0].type is PatternType.WEEKEND_DEVIATION
        assert patterns[0].impact is Impact.POSITIVE

    def test_steady_intake(self, make_intake) -> None:
        patterns = detect_behavioral_patterns(make_intake([2000] * 14))
        assert [p.type for p in patterns] == [PatternType.STEADY]
        assert patterns[0].impact is Impact.POSITIVE

    def test_emission_order(self, make_intake) -> None:
        """Weekend deviation is reported before steady intake."""
        patterns = detect_behavioral_patterns(make_intake(_weekly(2000, 2400, weeks=2)))
        assert [p.type for p in patterns] == [PatternType.WEEKEND_DEVIATION, PatternType.STEADY]

    def test_binge_restrict(self, make_intake) -> None:
        calories = [2800 if i % 2 == 0 else 1400 for i in range(14)]
        patterns = detect_behavioral_patterns(make_intake(calories))
        assert [p.type for p in patterns] == [PatternType.BINGE_RESTRICT]
        assert patterns[0].strength == pytest.approx(1.0)

    def test_meal_skipping(self, make_intake) -> None:
        calories = [2000] * 14
        for i in (1, 2, 3):
            calories[i] = 800
        patterns = detect_behavioral_patterns(make_intake(calories))
        assert PatternType.MEAL_SKIPPING in [p.type for p in patterns]

    def test_strength_bounded(self, make_intake) -> None:
        calories = [500 if i % 2 else 3500 for i in range(28)]
        for pattern in detect_behavioral_patterns(make_intake(calories)):
            assert 0.0 <= pattern.strength <= 1.0

    def test_input_order_irrelevant(self, make_intake) -> None:
        samples = make_intake(_weekly(2000, 2600))
        assert detect_behavioral_patterns(samples) == detect_behavioral_patterns(
            list(reversed(samples))
        )


class TestDetectors:
    """Tests for individual detectors."""

    def test_meal_skipping_strength(self, make_intake) -> None:
        """3 low days out of 14 is about 21%, strength 0.21 / 0.30."""
        calories = [800] * 3 + [2000] * 11
        pattern = detect_meal_skipping(make_intake(calories))
        assert pattern is not None
        assert pattern.strength == pytest.approx((3 / 14) / 0.3)

    def test_meal_skipping_below_threshold(self, make_intake) -> None:
        calories = [800] + [2000] * 13
        assert detect_meal_skipping(make_intake(calories)) is None

    def test_weekend_needs_enough_days(self, make_intake) -> None:
        """Only weekdays: no weekend comparison possible."""
        assert detect_weekend_deviation(make_intake([2000] * 5)) is None

    def test_weekend_small_difference_ignored(self, make_intake) -> None:
        assert detect_weekend_deviation(make_intake(_weekly(2000, 2200))) is None
