"""CLI interface using Typer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn, Optional, Union

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from tdeecoach.coaching.adherence import consistency_report, score_adherence
from tdeecoach.coaching.patterns import detect_behavioral_patterns
from tdeecoach.config import default_config_path, get_settings, reload_settings
from tdeecoach.config.settings import Settings
from tdeecoach.diagnostics import (
    format_checkin_report,
    format_estimate_report,
    format_recommendation,
    format_trend_report,
)
from tdeecoach.engine.pipeline import CoachingPipeline, build_estimator, tolerances_from
from tdeecoach.errors import EngineError, ErrorKind
from tdeecoach.io import Snapshot, load_snapshot
from tdeecoach.response import (
    CommandResponse,
    create_response,
    error_response,
    summarize_estimate,
    summarize_recommendation,
)
from tdeecoach.tracking.trend import analyze_trend, get_smoother

app = typer.Typer(
    help="Adaptive TDEE estimation and goal coaching from weight and food logs",
    no_args_is_help=True,
)
console = Console()

config_app = typer.Typer(help="Show or create the configuration file")
app.add_typer(config_app, name="config")

SNAPSHOT_HELP = "Snapshot file (YAML or JSON) with weights, intake, profile and check-in"


# ============================================================================
# Helpers
# ============================================================================


def output_json(response: CommandResponse, file=None) -> None:
    """Output JSON response to stdout or file."""
    json_str = response.to_json()
    if file:
        file.write(json_str)
    else:
        print(json_str)


def fail(
    command: str,
    error: Union[str, EngineError],
    json_output: bool,
    suggestions=None,
    kind: Optional[ErrorKind] = None,
) -> NoReturn:
    """Report an error in the selected format and exit with status 1.

    An EngineError supplies its own kind; plain messages default to invalid input.
    """
    if json_output:
        output_json(error_response(command, error, kind=kind, suggestions=suggestions))
    else:
        console.print(f"[red]Error:[/red] {error}")
        for suggestion in suggestions or []:
            console.print(f"  [dim]{suggestion}[/dim]")
    raise typer.Exit(1)


def read_snapshot(path: Path, command: str, json_output: bool) -> Snapshot:
    """Load a snapshot, turning input errors into a clean exit."""
    try:
        return load_snapshot(path)
    except FileNotFoundError:
        fail(command, f"File not found: {path}", json_output)
    except EngineError as e:
        fail(
            command,
            e,
            json_output,
            suggestions=["Check dates are YYYY-MM-DD and values are non-negative numbers"],
        )


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    config: Optional[Path] = typer.Option(
        None, "--config", help="Config file (default: ~/.tdeecoach/config.yaml)"
    ),
) -> None:
    """Adaptive TDEE estimation and goal coaching."""
    _configure_logging(verbose)
    if config is not None:
        try:
            reload_settings(config)
        except EngineError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)


# ============================================================================
# Trend and Estimation Commands
# ============================================================================


@app.command()
def trend(
    snapshot_path: Path = typer.Argument(..., help=SNAPSHOT_HELP),
    method: Optional[str] = typer.Option(
        None, "--method", "-m", help="Smoothing method: ewma or kalman"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the smoothed weight trend."""
    command = "trend"
    snapshot = read_snapshot(snapshot_path, command, json_output)
    if not snapshot.weights:
        fail(command, "No weight entries in snapshot", json_output,
             kind=ErrorKind.INSUFFICIENT_DATA)

    settings = get_settings()
    try:
        smoother = get_smoother(method or settings.estimator.smoothing_method,
                                settings.estimator.smoothing_alpha)
        points = smoother.smooth(snapshot.weights)
    except EngineError as e:
        fail(command, e, json_output)
    analysis = analyze_trend(points)

    if json_output:
        output_json(create_response(
            command,
            data={
                "method": smoother.method.value,
                "points": [p.to_dict() for p in points],
                "current_trend_weight": round(analysis.current_trend_weight, 2),
                "weekly_change_rate_pct": round(analysis.weekly_change_rate_pct, 3),
                "weekly_change_kg": round(analysis.weekly_change_kg, 3),
                "direction": analysis.direction.value,
                "data_quality": analysis.data_quality,
            },
            human_summary=(
                f"Trend: {analysis.current_trend_weight:.1f} kg, "
                f"{analysis.weekly_change_rate_pct:+.2f}%/week"
            ),
        ))
        return

    table = Table(title=f"Weight Trend ({smoother.method.value})")
    table.add_column("Date", style="cyan")
    table.add_column("Scale", justify="right")
    table.add_column("Trend", justify="right")
    table.add_column("Slope/day", justify="right")
    for point in points[-14:]:
        scale = "-" if point.is_interpolated else f"{point.raw_weight:.1f}"
        table.add_row(
            point.date.isoformat(),
            scale,
            f"{point.trend_weight:.2f}",
            f"{point.local_slope_per_day:+.3f}",
        )
    console.print(table)
    console.print(format_trend_report(analysis, days=len(points)))


@app.command()
def estimate(
    snapshot_path: Path = typer.Argument(..., help=SNAPSHOT_HELP),
    prior: Optional[float] = typer.Option(
        None, "--prior", help="Prior TDEE (default: profile prior_tdee)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Estimate TDEE from weight and intake history."""
    command = "estimate"
    snapshot = read_snapshot(snapshot_path, command, json_output)
    prior_tdee = prior if prior is not None else (
        snapshot.profile.prior_tdee if snapshot.profile else None
    )
    if prior_tdee is None:
        fail(command, "No prior TDEE", json_output,
             suggestions=["Pass --prior or add profile.prior_tdee to the snapshot"])

    try:
        result = build_estimator(get_settings()).estimate(
            snapshot.weights, snapshot.intake, prior_tdee, as_of=snapshot.as_of
        )
    except EngineError as e:
        fail(command, e, json_output)

    warnings = []
    suggestions = []
    if result.is_fallback:
        warnings.append(f"Only {result.paired_days} paired days - prior TDEE returned")
        suggestions.append("Log weight and food for at least 7 days")

    if json_output:
        output_json(create_response(
            command,
            data=result.to_dict(),
            warnings=warnings,
            suggestions=suggestions,
            human_summary=summarize_estimate(result),
        ))
    else:
        console.print(format_estimate_report(result))
        for warning in warnings:
            console.print(f"[yellow]{warning}[/yellow]")


# ============================================================================
# Coaching Commands
# ============================================================================


@app.command()
def patterns(
    snapshot_path: Path = typer.Argument(..., help=SNAPSHOT_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Detect behavioral patterns in intake logs."""
    command = "patterns"
    snapshot = read_snapshot(snapshot_path, command, json_output)
    found = detect_behavioral_patterns(snapshot.intake)

    warnings = []
    if len(snapshot.intake) < 14:
        warnings.append("At least 14 days of intake are needed for pattern detection")

    if json_output:
        output_json(create_response(
            command,
            data={"patterns": [p.to_dict() for p in found]},
            warnings=warnings,
            human_summary=f"{len(found)} pattern(s) detected",
        ))
        return

    if not found:
        console.print("No patterns detected")
        for warning in warnings:
            console.print(f"[yellow]{warning}[/yellow]")
        return

    table = Table(title="Behavioral Patterns")
    table.add_column("Pattern", style="cyan")
    table.add_column("Strength", justify="right")
    table.add_column("Impact")
    table.add_column("Description")
    for pattern in found:
        color = {"positive": "green", "negative": "red"}.get(pattern.impact.value, "white")
        table.add_row(
            pattern.type.value,
            f"{pattern.strength:.2f}",
            f"[{color}]{pattern.impact.value}[/{color}]",
            pattern.description,
        )
    console.print(table)


@app.command()
def adherence(
    snapshot_path: Path = typer.Argument(..., help=SNAPSHOT_HELP),
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Days to score"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Score adherence to the profile's calorie and macro targets."""
    command = "adherence"
    snapshot = read_snapshot(snapshot_path, command, json_output)
    if snapshot.profile is None:
        fail(command, "Snapshot has no profile with target_macros", json_output)

    try:
        metrics = score_adherence(
            snapshot.intake,
            snapshot.profile.target_macros,
            window_days=days,
            as_of=snapshot.as_of,
            tolerances=tolerances_from(get_settings()),
        )
    except EngineError as e:
        fail(command, e, json_output)
    report = consistency_report(metrics)

    if json_output:
        output_json(create_response(
            command,
            data={**metrics.to_dict(include_records=True), "consistency": report.to_dict()},
            human_summary=(
                f"Adherence {metrics.overall_score:.0f}/100, "
                f"streak {metrics.streak_days} days ({metrics.trend.value})"
            ),
        ))
        return

    table = Table(title=f"Adherence ({metrics.total_days} days)")
    table.add_column("Metric", style="cyan")
    table.add_column("Score", justify="right")
    table.add_row("Calories", f"{metrics.calorie_adherence:.0f}")
    table.add_row("Protein", f"{metrics.protein_adherence:.0f}")
    table.add_row("Carbs", f"{metrics.carbs_adherence:.0f}")
    table.add_row("Fat", f"{metrics.fat_adherence:.0f}")
    table.add_row("Logging", f"{metrics.logging_consistency:.0f}%")
    table.add_row("Overall", f"[bold]{metrics.overall_score:.0f}[/bold]")
    console.print(table)
    console.print(f"Streak: {metrics.streak_days} days | Trend: {metrics.trend.value}")
    if report.best_day:
        console.print(f"Best day: {report.best_day} | Worst day: {report.worst_day}")
    for insight in metrics.insights:
        console.print(f"  - {insight}")


def _run_pipeline(snapshot: Snapshot, command: str, json_output: bool, settings: Settings):
    if snapshot.profile is None:
        fail(command, "Snapshot has no profile", json_output,
             suggestions=["Add profile.goal_type, profile.prior_tdee and profile.target_macros"])
    try:
        return CoachingPipeline(settings=settings).run(snapshot)
    except EngineError as e:
        fail(command, e, json_output)


@app.command()
def recommend(
    snapshot_path: Path = typer.Argument(..., help=SNAPSHOT_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Recommend a calorie and macro adjustment for the goal."""
    command = "recommend"
    snapshot = read_snapshot(snapshot_path, command, json_output)
    if snapshot.check_in is None:
        fail(command, "Snapshot has no check_in", json_output,
             suggestions=["Add check_in with energy_level, hunger_level, training_performance (1-5)"])

    result = _run_pipeline(snapshot, command, json_output, get_settings())
    rec = result.recommendation
    if rec is None:
        fail(command, "; ".join(result.warnings) or "No recommendation produced", json_output,
             kind=ErrorKind.INSUFFICIENT_DATA)

    if json_output:
        output_json(create_response(
            command,
            data={"recommendation": rec.to_dict(), "estimate": result.estimate.to_dict()},
            warnings=result.warnings + rec.warnings,
            human_summary=summarize_recommendation(rec),
        ))
    else:
        console.print(format_recommendation(rec))


@app.command()
def checkin(
    snapshot_path: Path = typer.Argument(..., help=SNAPSHOT_HELP),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Run the full weekly check-in."""
    command = "checkin"
    snapshot = read_snapshot(snapshot_path, command, json_output)
    result = _run_pipeline(snapshot, command, json_output, get_settings())

    if json_output:
        summary = f"TDEE {result.estimate.estimated_tdee:.0f} kcal/day"
        if result.recommendation is not None:
            summary += f", {result.recommendation.direction.value}"
        output_json(create_response(
            command,
            data=result.to_dict(),
            warnings=result.warnings,
            suggestions=result.quality.recommendations,
            human_summary=summary,
        ))
    else:
        console.print(format_checkin_report(result))


# ============================================================================
# Config Commands
# ============================================================================


@config_app.command("show")
def config_show(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the active settings."""
    settings = get_settings()
    if json_output:
        output_json(create_response(
            "config show", data=settings.to_dict(), human_summary="Active settings"
        ))
        return

    for section, values in settings.to_dict().items():
        table = Table(title=section)
        table.add_column("Key", style="cyan")
        table.add_column("Value", justify="right")
        for key, value in values.items():
            table.add_row(key, str(value))
        console.print(table)


@config_app.command("init")
def config_init(
    path: Optional[Path] = typer.Option(None, "--path", help="Where to write config.yaml"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Write a config file with default settings."""
    command = "config init"
    target = path or default_config_path()
    if target.exists() and not force:
        fail(command, f"{target} already exists", json_output,
             suggestions=["Use --force to overwrite"])

    Settings().save(target)
    if json_output:
        output_json(create_response(
            command, data={"path": str(target)}, human_summary=f"Wrote {target}"
        ))
    else:
        console.print(f"[green]Wrote default settings to[/green] {target}")


if __name__ == "__main__":
    app()
