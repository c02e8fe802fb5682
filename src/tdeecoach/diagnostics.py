"""Plain-text reports for trend, estimate and check-in results."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tdeecoach.tracking.models import Direction, ExpenditureEstimate
from tdeecoach.tracking.quality import DataQualityReport
from tdeecoach.tracking.trend import TrendAnalysis

if TYPE_CHECKING:
    from tdeecoach.coaching.energy import EnergyComponents
    from tdeecoach.coaching.recommender import Recommendation
    from tdeecoach.engine.pipeline import CheckInResult

_TIER_LABELS = {
    "fallback": "prior (not enough data yet)",
    "simple_energy_balance": "7-day energy balance",
    "moving_average": "moving average",
    "weighted_regression": "weighted regression",
}


def format_trend_report(analysis: TrendAnalysis, days: int) -> str:
    """Format trend analysis as text."""
    if analysis.direction is Direction.MAINTAINING:
        rate_dir = "stable"
    else:
        rate_dir = analysis.direction.value

    lines = [
        f"Weight Trend Report ({days} days)",
        "=" * 45,
        f"Current trend:  {analysis.current_trend_weight:.1f} kg",
        f"Weekly change:  {analysis.weekly_change_kg:+.2f} kg "
        f"({analysis.weekly_change_rate_pct:+.2f}%/week, {rate_dir})",
        f"Implied balance: {analysis.implied_daily_balance:+.0f} kcal/day",
        f"Volatility:     {analysis.volatility:.2f} kg/day",
        f"Data quality:   {analysis.data_quality}",
    ]
    return "\n".join(lines)


def format_estimate_report(estimate: ExpenditureEstimate) -> str:
    """Format a TDEE estimate as text."""
    lines = [
        "",
        "Total Daily Energy Expenditure (TDEE) Estimate",
        "=" * 50,
        f"Estimated TDEE:  {estimate.estimated_tdee:.0f} kcal/day",
        f"Confidence:      {estimate.confidence:.0f}/100",
        f"Method:          {_TIER_LABELS[estimate.algorithm_tier.value]}"
        f" ({estimate.paired_days} paired days)",
        f"Data quality:    {estimate.data_quality:.0f}/100",
    ]
    if estimate.raw_tdee is not None:
        lines.append(f"  Unsmoothed:    {estimate.raw_tdee:.0f} kcal/day")
    if estimate.trend_weight is not None:
        lines.append(
            f"Trend weight:    {estimate.trend_weight:.1f} kg "
            f"({estimate.weekly_change_rate:+.2f}%/week, {estimate.direction.value})"
        )
    return "\n".join(lines)


def format_quality_report(report: DataQualityReport) -> str:
    lines = [
        f"Data quality: {report.score:.0f}/100 over {report.window_days} days",
        f"  Logging density:    {report.logging_density:.0%}",
        f"  Weighing frequency: {report.weighing_frequency:.0%}",
        f"  Intake stability:   {report.stability:.0%}",
    ]
    for rec in report.recommendations:
        lines.append(f"  - {rec}")
    return "\n".join(lines)


def format_energy_report(components: "EnergyComponents", tdee_change: list[str]) -> str:
    """Format the TDEE component breakdown."""
    label = "adaptive" if components.reconciled else "formula"
    lines = [f"Energy breakdown ({label} TDEE {components.total:.0f} kcal/day):"]
    for row in components.breakdown():
        lines.append(f"  {row['label']:<5} {row['kcal']:>5} kcal  {row['percentage']:>5.1f}%")
    for explanation in tdee_change:
        lines.append(f"  - {explanation}")
    return "\n".join(lines)


def format_recommendation(rec: "Recommendation") -> str:
    """Format a recommendation with its reasoning."""
    macros = rec.new_macros
    lines = [
        "",
        f"Recommendation: {rec.direction.value.upper()} "
        f"[{rec.priority.value}, {rec.confidence.value} confidence]",
        "-" * 45,
        f"  Calories: {rec.new_calories:.0f} kcal/day ({rec.calorie_change:+.0f})",
        f"  Protein {macros.protein_g:.0f}g | Carbs {macros.carbs_g:.0f}g | "
        f"Fat {macros.fat_g:.0f}g | Fiber {macros.fiber_g or 0:.0f}g",
        "",
        "Why:",
    ]
    for reason in rec.reasoning:
        lines.append(f"  - {reason}")
    if rec.warnings:
        lines.append("")
        lines.append("Warnings:")
        for warning in rec.warnings:
            lines.append(f"  ! {warning}")
    return "\n".join(lines)


def format_checkin_report(result: "CheckInResult") -> str:
    """Format a full check-in as text."""
    parts = []
    if result.trend is not None:
        parts.append(format_trend_report(result.trend, days=result.quality.window_days))
    parts.append(format_estimate_report(result.estimate))
    parts.append("")
    parts.append(format_quality_report(result.quality))

    if result.patterns:
        parts.append("")
        parts.append("Patterns:")
        for pattern in result.patterns:
            parts.append(f"  - [{pattern.impact.value}] {pattern.description}")

    if result.energy is not None:
        parts.append("")
        parts.append(format_energy_report(result.energy, result.tdee_change))

    if result.adherence is not None:
        adh = result.adherence
        parts.append("")
        parts.append(
            f"Adherence: {adh.overall_score:.0f}/100 "
            f"(calories {adh.calorie_adherence:.0f}, protein {adh.protein_adherence:.0f}, "
            f"logged {adh.logging_consistency:.0f}%, streak {adh.streak_days}d, {adh.trend.value})"
        )
        for insight in adh.insights:
            parts.append(f"  - {insight}")

    if result.recommendation is not None:
        parts.append(format_recommendation(result.recommendation))

    if result.warnings:
        parts.append("")
        parts.append("Notes:")
        for note in result.warnings:
            parts.append(f"  - {note}")

    return "\n".join(parts)
