"""Main CLI entry point using Typer."""

import json
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from sprintplan import __version__
from sprintplan.core.config import get_settings
from sprintplan.core.exceptions import InvalidTaskGraph, SprintPlanError
from sprintplan.core.logging import configure_logging
from sprintplan.decomposition.dependency_resolver import validate_task_graph
from sprintplan.decomposition.models import Decomposition, ExecutionPlan
from sprintplan.decomposition.parser import parse_decomposition
from sprintplan.decomposition.validator import ValidationReport, validate_decomposition
from sprintplan.knowledge.checkpoint import compute_feature_hash, create_checkpoint_store
from sprintplan.planning.assembler import build_execution_plan
from sprintplan.planning.estimation import get_calibration_factor
from sprintplan.planning.splitter import split_oversized_tasks

app = typer.Typer(
    name="sprintplan",
    help="SprintPlan - deterministic sprint planning for decomposed features",
    add_completion=False,
    rich_markup_mode="rich",
)

checkpoint_app = typer.Typer(help="Inspect or discard conductor checkpoints.")
app.add_typer(checkpoint_app, name="checkpoint")

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]SprintPlan[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """
    SprintPlan - turn a task decomposition into an execution plan.

    Levels tasks into parallel waves, flags shared files, inserts review
    gates and calibrates the estimate.
    """
    configure_logging(file_sink=False)


def _load_decomposition(file: Path) -> Decomposition:
    """Read and parse a decomposition file, exiting on failure."""
    try:
        return parse_decomposition(file.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        console.print(f"[bold red]Cannot read {escape(str(file))}: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1) from e
    except SprintPlanError as e:
        _fail(e)


def _fail(error: SprintPlanError) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    if isinstance(error, InvalidTaskGraph) and error.task_ids:
        console.print(f"[dim]Offending tasks: {', '.join(str(t) for t in error.task_ids)}[/dim]")
    raise typer.Exit(code=1)


def _print_warnings(report: ValidationReport) -> None:
    warnings = report.warnings()
    if not warnings:
        console.print("[green]No validation warnings[/green]")
        return
    console.print(f"[bold yellow]{len(warnings)} validation warning(s):[/bold yellow]")
    for line in warnings:
        console.print(f"  [yellow]-[/yellow] {escape(line)}")


def _print_plan(plan: ExecutionPlan, decomposition: Decomposition) -> None:
    titles = {task.id: task.title for task in decomposition.tasks}

    table = Table(title="Execution Plan")
    table.add_column("Wave", style="cyan")
    table.add_column("Tasks", style="bold")
    table.add_column("Conflicts")

    for wave in plan.waves:
        if wave.is_review_checkpoint:
            table.add_row(str(wave.wave_number), "[magenta]review checkpoint[/magenta]", "-")
            continue
        names = "\n".join(f"{t.id}. {escape(titles[t.id])}" for t in wave.tasks)
        conflicts = "\n".join(escape(c) for c in wave.file_conflicts) or "-"
        table.add_row(str(wave.wave_number), names, conflicts)

    console.print(table)
    console.print(
        Panel(
            f"Strategy: [bold]{plan.strategy.value}[/bold]\n"
            f"Estimate: {plan.total_estimate_minutes:g} min "
            f"(calibrated {plan.calibrated_estimate_minutes} min)\n"
            f"Team recommended: {'yes' if plan.recommend_team else 'no'}",
            title="[bold blue]Summary[/bold blue]",
            border_style="blue",
        )
    )


@app.command()
def plan(
    file: Path = typer.Argument(..., help="Decomposition JSON file"),
    calibration: float | None = typer.Option(
        None,
        "--calibration",
        "-c",
        help="Calibration factor (defaults to the learned or configured one)",
    ),
    split: bool = typer.Option(
        True,
        "--split/--no-split",
        help="Split tasks that touch too many files",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the plan as JSON",
    ),
) -> None:
    """
    Build an execution plan from a decomposition file.

    Example:
        sprintplan plan tasks.json --calibration 0.6
    """
    settings = get_settings()
    decomposition = _load_decomposition(file)

    if calibration is not None and calibration <= 0:
        console.print("[bold red]Calibration factor must be positive[/bold red]")
        raise typer.Exit(code=1)

    try:
        report = validate_decomposition(decomposition, settings.max_files_per_task)
        planned = decomposition
        if split:
            planned = split_oversized_tasks(
                decomposition,
                settings.max_files_per_task,
                settings.split_chunk_size,
            )
        factor = calibration if calibration is not None else get_calibration_factor()
        execution_plan = build_execution_plan(
            planned,
            factor,
            review_threshold=settings.review_threshold,
            team_threshold=settings.team_threshold,
        )
    except SprintPlanError as e:
        _fail(e)

    if as_json:
        document = {
            "plan": execution_plan.to_dict(),
            "warnings": report.warnings(),
        }
        typer.echo(json.dumps(document, indent=2))
        return

    _print_plan(execution_plan, planned)
    _print_warnings(report)


@app.command()
def validate(
    file: Path = typer.Argument(..., help="Decomposition JSON file"),
) -> None:
    """
    Check a decomposition without planning it.

    Graph errors exit with status 1; policy warnings are only reported.
    """
    settings = get_settings()
    decomposition = _load_decomposition(file)

    try:
        validate_task_graph(decomposition.tasks)
    except SprintPlanError as e:
        _fail(e)

    console.print(f"[green]Task graph OK[/green] ({len(decomposition.tasks)} tasks)")
    _print_warnings(validate_decomposition(decomposition, settings.max_files_per_task))


@app.command(name="hash")
def feature_hash(
    feature: str = typer.Argument(..., help="Feature description"),
    context: str | None = typer.Option(
        None,
        "--context",
        help="Additional context that is part of the fingerprint",
    ),
) -> None:
    """Print the checkpoint key for a feature."""
    typer.echo(compute_feature_hash(feature, context))


@checkpoint_app.command("show")
def checkpoint_show(
    key: str = typer.Argument(..., help="Feature hash"),
) -> None:
    """Show the stored checkpoint for a feature hash."""
    store = create_checkpoint_store()
    checkpoint = store.load(key)

    if checkpoint is None:
        console.print(f"[yellow]No checkpoint for {escape(key)}[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title=f"Checkpoint {key}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Phase", checkpoint.phase.value)
    table.add_row("Spec score", f"{checkpoint.spec.score:g}")
    table.add_row("Spec iterations", str(checkpoint.spec.iterations))
    table.add_row("Cost so far", f"${checkpoint.total_cost_so_far:.4f}")
    table.add_row("Completed at", checkpoint.completed_at.isoformat())
    if checkpoint.decomposition is not None:
        table.add_row("Tasks", str(len(checkpoint.decomposition.tasks)))
    if checkpoint.lease_expires_at is not None:
        table.add_row("Lease expires", checkpoint.lease_expires_at.isoformat())

    console.print(table)


@checkpoint_app.command("clear")
def checkpoint_clear(
    key: str = typer.Argument(..., help="Feature hash"),
) -> None:
    """Discard the checkpoint for a feature hash."""
    store = create_checkpoint_store()
    try:
        store.clear(key)
    except ValueError as e:
        console.print(f"[bold red]{escape(str(e))}[/bold red]")
        raise typer.Exit(code=1) from e
    except SprintPlanError as e:
        _fail(e)

    console.print(f"[green]Checkpoint {escape(key)} cleared[/green]")


if __name__ == "__main__":
    app()
