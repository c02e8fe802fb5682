"""Tests for the energy expenditure components."""

from __future__ import annotations

from dataclasses import replace

import pytest

from tdeecoach.coaching.energy import (
    EnergyComponents,
    ExerciseIntensity,
    calculate_bmr,
    calculate_eat,
    calculate_energy_components,
    calculate_neat,
    calculate_tdee,
    calculate_tef,
    explain_tdee_change,
    formula_prior,
    profile_bmr,
)
from tdeecoach.coaching.models import ActivityLevel, Sex, UserGoalProfile
from tdeecoach.errors import InvalidInputError


@pytest.fixture
def measured_profile(cut_profile: UserGoalProfile) -> UserGoalProfile:
    return replace(cut_profile, age=30, height_cm=180.0, sex=Sex.MALE)


class TestCalculateBMR:
    """Tests for calculate_bmr."""

    def test_mifflin_male(self) -> None:
        assert calculate_bmr(80, 180, 30, sex=Sex.MALE) == pytest.approx(1780.0)

    def test_mifflin_female(self) -> None:
        assert calculate_bmr(80, 180, 30, sex=Sex.FEMALE) == pytest.approx(1614.0)

    def test_katch_mcardle_with_body_fat(self) -> None:
        # 64 kg lean mass; sex is not needed
        assert calculate_bmr(80, 180, 30, body_fat_pct=20) == pytest.approx(1752.4)

    @pytest.mark.parametrize("body_fat", [0, 50, 60])
    def test_implausible_body_fat_uses_mifflin(self, body_fat: float) -> None:
        assert calculate_bmr(80, 180, 30, sex=Sex.MALE, body_fat_pct=body_fat) == pytest.approx(
            1780.0
        )

    def test_needs_sex_or_body_fat(self) -> None:
        with pytest.raises(InvalidInputError, match="sex"):
            calculate_bmr(80, 180, 30)


class TestComponentFormulas:
    """TDEE multiplier, TEF, EAT and NEAT."""

    def test_tdee_multiplier(self) -> None:
        assert calculate_tdee(1780, ActivityLevel.SEDENTARY) == pytest.approx(2136.0)
        assert calculate_tdee(1780, ActivityLevel.VERY_ACTIVE) == pytest.approx(3382.0)

    def test_tef_simple(self) -> None:
        assert calculate_tef(2000) == pytest.approx(200.0)

    def test_tef_from_macros(self) -> None:
        # 150 + 60 + 12.6
        assert calculate_tef(2000, protein_g=150, carbs_g=200, fat_g=70) == pytest.approx(222.6)

    def test_tef_partial_macros_uses_simple(self) -> None:
        assert calculate_tef(2000, protein_g=150) == pytest.approx(200.0)

    def test_eat(self) -> None:
        assert calculate_eat(80, 150) == pytest.approx(6 * 80 * 150 / 7 / 60)
        assert calculate_eat(80, 0) == 0.0

    def test_eat_intensity(self) -> None:
        low = calculate_eat(80, 150, ExerciseIntensity.LOW)
        high = calculate_eat(80, 150, ExerciseIntensity.HIGH)
        assert low < calculate_eat(80, 150) < high

    def test_neat_fraction(self) -> None:
        assert calculate_neat(1780, ActivityLevel.MODERATE) == pytest.approx(623.0)

    def test_neat_steps_only_raise(self) -> None:
        assert calculate_neat(1780, ActivityLevel.MODERATE, 5000) == pytest.approx(623.0)
        assert calculate_neat(1780, ActivityLevel.MODERATE, 20000) == pytest.approx(800.0)


class TestProfileFormulas:
    """BMR and formula TDEE from a profile."""

    def test_profile_bmr(self, measured_profile) -> None:
        assert profile_bmr(measured_profile, 80) == pytest.approx(1780.0)

    def test_profile_bmr_body_fat_without_sex(self, cut_profile) -> None:
        profile = replace(cut_profile, age=30, height_cm=180.0, body_fat_pct=20.0)
        assert profile_bmr(profile, 80) == pytest.approx(1752.4)

    def test_missing_metrics(self, cut_profile) -> None:
        with pytest.raises(InvalidInputError, match="age"):
            profile_bmr(cut_profile, 80)

    def test_formula_prior(self, measured_profile) -> None:
        assert formula_prior(measured_profile, 80) == pytest.approx(1780 * 1.55)

    def test_formula_prior_clamped(self, cut_profile) -> None:
        small = replace(
            cut_profile,
            age=90,
            height_cm=140.0,
            sex=Sex.FEMALE,
            activity_level=ActivityLevel.SEDENTARY,
        )
        large = replace(
            cut_profile,
            age=20,
            height_cm=200.0,
            sex=Sex.MALE,
            activity_level=ActivityLevel.VERY_ACTIVE,
        )
        assert formula_prior(small, 35) == 1200.0
        assert formula_prior(large, 200) == 5000.0


class TestCalculateEnergyComponents:
    """Tests for calculate_energy_components."""

    def test_formula_only(self, measured_profile) -> None:
        components = calculate_energy_components(measured_profile, 80, 2000)
        assert components.bmr == pytest.approx(1780.0)
        assert components.tef == pytest.approx(200.0)
        assert components.eat == 0.0
        assert components.neat == pytest.approx(623.0)
        assert components.total == pytest.approx(2603.0)
        assert components.confidence == pytest.approx(0.5)
        assert not components.reconciled

    def test_reconciled_neat_absorbs_difference(self, measured_profile) -> None:
        components = calculate_energy_components(measured_profile, 80, 2000, measured_tdee=2400)
        assert components.total == 2400
        assert components.neat == pytest.approx(420.0)
        assert components.reconciled
        assert components.confidence == pytest.approx(0.7)

    def test_neat_never_negative(self, measured_profile) -> None:
        components = calculate_energy_components(measured_profile, 80, 2000, measured_tdee=1500)
        assert components.neat == 0.0
        assert components.total == 1500

    def test_activity_data_raises_confidence(self, measured_profile) -> None:
        profile = replace(measured_profile, exercise_minutes_per_week=150.0, steps_per_day=20000.0)
        components = calculate_energy_components(profile, 80, 2000, measured_tdee=2800)
        assert components.eat == pytest.approx(6 * 80 * 150 / 7 / 60)
        assert components.confidence == pytest.approx(0.9)

    def test_breakdown_shares(self, measured_profile) -> None:
        components = calculate_energy_components(measured_profile, 80, 2000, measured_tdee=2400)
        rows = components.breakdown()
        assert [row["label"] for row in rows] == ["BMR", "TEF", "EAT", "NEAT"]
        assert rows[0]["percentage"] == pytest.approx(74.2)
        assert sum(row["percentage"] for row in rows) == pytest.approx(100.0, abs=0.2)

    def test_breakdown_zero_total(self) -> None:
        empty = EnergyComponents(bmr=0, tef=0, eat=0, neat=0, total=0, confidence=0.5)
        assert all(row["percentage"] == 0.0 for row in empty.breakdown())

    def test_to_dict(self, measured_profile) -> None:
        data = calculate_energy_components(measured_profile, 80, 2000).to_dict()
        assert data["bmr"] == 1780
        assert data["total"] == 2603
        assert len(data["breakdown"]) == 4


def _components(bmr: float, neat: float, eat: float = 0.0) -> EnergyComponents:
    return EnergyComponents(
        bmr=bmr, tef=200.0, eat=eat, neat=neat, total=bmr + 200 + eat + neat, confidence=0.7
    )


class TestExplainTDEEChange:
    """Tests for explain_tdee_change."""

    def test_stable(self) -> None:
        assert explain_tdee_change(_components(1800, 500), _components(1790, 480)) == [
            "Your TDEE has remained stable."
        ]

    def test_weight_loss_and_adaptation(self) -> None:
        lines = explain_tdee_change(_components(1800, 500), _components(1750, 350))
        assert lines == [
            "BMR decreased by 50 calories due to weight loss.",
            "Daily activity decreased by 150 calories - possible metabolic adaptation.",
        ]

    def test_more_movement_and_exercise(self) -> None:
        lines = explain_tdee_change(_components(1800, 500), _components(1800, 600, eat=100))
        assert lines == [
            "Daily activity increased by 100 calories - you're moving more.",
            "Exercise burn increased by 100 calories.",
        ]

    def test_small_parts_not_explained(self) -> None:
        """A change can exceed the stable band without any single part doing so."""
        lines = explain_tdee_change(_components(1800, 500), _components(1815, 545, eat=20))
        assert lines == []
