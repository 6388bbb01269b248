"""Typer CLI entrypoint for the ingestion pipeline."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, PipelineConfig, ScheduleConfig, ScheduleType
from .config.models import DeduplicationConfig
from .engine.errors import PipelineError
from .infra import SQLiteManager
from .logging_conf import available_pipeline_logs, configure_logging, log_path_for, tail_log
from .orchestrator import Orchestrator
from .scheduler import APSchedulerAdapter

app = typer.Typer(
    help="Streaming ingestion pipeline command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
pipeline_app = typer.Typer(
    name="pipeline",
    help="Pipeline management commands",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Log inspection commands",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    scheduler: APSchedulerAdapter
    orchestrator: Orchestrator
    storage: SQLiteManager


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    scheduler = APSchedulerAdapter()
    storage = SQLiteManager()
    orchestrator = Orchestrator(
        config_repository=repository,
        storage=storage,
        scheduler=scheduler,
    )
    return AppState(
        repository=repository,
        scheduler=scheduler,
        orchestrator=orchestrator,
        storage=storage,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _format_schedule(schedule: ScheduleConfig) -> str:
    data = schedule.value
    label = schedule.type.value
    if data in (None, "", [], {}):
        return label
    return f"{label} ({data})"


def _render_pipelines_table(pipelines: Sequence[PipelineConfig]) -> Table:
    table = Table(title=f"Pipelines · {len(pipelines)} configured", box=box.SIMPLE_HEAD)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Input", style="magenta", overflow="fold")
    table.add_column("Output", style="green")
    table.add_column("Dedup", style="yellow")
    table.add_column("Schedule", style="yellow", overflow="fold")
    for pipeline in pipelines:
        dedup = "off"
        if pipeline.deduplication.enabled:
            dedup = "persistent" if pipeline.deduplication.persistent else "per-run"
        table.add_row(
            pipeline.name,
            pipeline.input_uri,
            pipeline.output_format,
            dedup,
            _format_schedule(pipeline.schedule),
        )
    return table


def _render_jobs_table(jobs: Iterable[dict]) -> Table:
    table = Table(title="Scheduled jobs", box=box.SIMPLE_HEAD)
    table.add_column("Job ID", style="cyan", no_wrap=True)
    table.add_column("Next run", style="green")
    table.add_column("Trigger", style="magenta", overflow="fold")
    for job in jobs:
        table.add_row(
            str(job.get("id", "-")),
            str(job.get("next_run_time", "-")),
            str(job.get("trigger", "-")),
        )
    return table


app.add_typer(pipeline_app, name="pipeline")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    ctx.obj = build_state(verbose)


@pipeline_app.command("list", help="List configured pipelines and scheduled jobs.")
def pipeline_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    pipelines = state.repository.list_pipelines()
    if not pipelines:
        console.print("No pipelines configured yet; create one with `pipeline add`.", style="yellow")
        return
    console.print(_render_pipelines_table(pipelines))
    jobs = state.scheduler.list_jobs()
    if jobs:
        console.print(_render_jobs_table(jobs))


@pipeline_app.command("add", help="Create a folder-to-file link pipeline.")
def pipeline_add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Pipeline name."),
    input_uri: str = typer.Option(..., "--input", help="Folder path or file:// URI to read."),
    pattern: str = typer.Option("*.eml", "--pattern", help="Glob of files to read."),
    output_format: str = typer.Option("json", "--format", help="json, csv or txt."),
    fetch_content: bool = typer.Option(False, "--fetch-content", help="Fetch each link's body."),
    ephemeral_dedup: bool = typer.Option(
        False, "--ephemeral-dedup", help="Deduplicate within a single run only."
    ),
    interval: Optional[float] = typer.Option(
        None, "--interval", help="Run every N seconds when serving."
    ),
) -> None:
    state = _get_state(ctx)
    schedule = (
        ScheduleConfig(type=ScheduleType.INTERVAL, value=interval)
        if interval
        else ScheduleConfig()
    )
    try:
        config = PipelineConfig(
            name=name,
            input_uri=input_uri,
            file_pattern=pattern,
            output_format=output_format,
            fetch_content=fetch_content,
            deduplication=DeduplicationConfig(persistent=not ephemeral_dedup),
            schedule=schedule,
        )
    except ValueError as exc:
        console.print(f"Invalid pipeline configuration: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    path = state.repository.save_pipeline(config)
    console.print(f"Pipeline `{name}` saved to {path}", style="green")


@pipeline_app.command("remove", help="Delete a pipeline and its history.")
def pipeline_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Pipeline name."),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    state = _get_state(ctx)
    if not yes and not typer.confirm(f"Delete pipeline `{name}` and its history?", default=False):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=0)
    try:
        state.orchestrator.reset_history(name)
    except FileNotFoundError:
        console.print(f"Pipeline `{name}` not found.", style="red")
        raise typer.Exit(code=1)
    state.repository.delete_pipeline(name)
    state.scheduler.remove_pipeline(name)
    console.print(f"Pipeline `{name}` removed.", style="green")


@pipeline_app.command("run", help="Run a pipeline now.")
def pipeline_run(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Pipeline name."),
    full: bool = typer.Option(False, "--full", help="Ignore the cursor and read the default window."),
    quiet: bool = typer.Option(False, "--quiet", help="Print a one-line summary only."),
) -> None:
    state = _get_state(ctx)
    try:
        summary = state.orchestrator.run_pipeline(name, ignore_cursor=full)
    except FileNotFoundError:
        console.print(f"Pipeline `{name}` not found.", style="red")
        raise typer.Exit(code=1)
    except PipelineError as exc:
        console.print(f"Run failed: {exc}", style="red")
        raise typer.Exit(code=1)
    if quiet:
        console.print(
            f"{summary['state']}: produced {summary['produced']}, consumed {summary['consumed']}, "
            f"errored {summary['errored']}, duplicates {summary['duplicates']}"
        )
        return
    table = Table(title=f"{name} run result", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    table.add_row("State", str(summary["state"]))
    table.add_row("Produced", str(summary["produced"]))
    table.add_row("Consumed", str(summary["consumed"]))
    table.add_row("Errored", str(summary["errored"]))
    table.add_row("Duplicates", str(summary["duplicates"]))
    table.add_row("Cursor advanced", "yes" if summary["cursor_advanced"] else "no")
    console.print(table)
    console.print(f"Output: {summary['output']}", style="dim")
    for message in summary.get("errors", []):
        console.print(f"- {message}", style="red")


@pipeline_app.command("history", help="Show the most recently seen dedup keys.")
def pipeline_history(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Pipeline name."),
    limit: int = typer.Option(20, "--limit", help="Number of entries to show."),
) -> None:
    state = _get_state(ctx)
    rows = state.orchestrator.view_history(name, limit=limit)
    if not rows:
        console.print("No history.", style="dim")
        return
    table = Table(title=f"{name} · last {len(rows)} keys", box=box.SIMPLE_HEAD)
    table.add_column("Seen at", style="green")
    table.add_column("Key", overflow="fold")
    for key, seen_at in rows:
        table.add_row(str(seen_at), str(key))
    console.print(table)


@pipeline_app.command("cursor", help="Show the stored execution cursor.")
def pipeline_cursor(ctx: typer.Context, name: str = typer.Argument(..., help="Pipeline name.")) -> None:
    state = _get_state(ctx)
    cursor = state.orchestrator.view_cursor(name)
    if cursor is None:
        console.print(f"`{name}` has no cursor yet; the next run reads the default window.", style="dim")
        return
    console.print(f"`{name}` last successful run: {cursor.isoformat()}")


@pipeline_app.command("reset", help="Clear a pipeline's dedup history and cursor.")
def pipeline_reset(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Pipeline name."),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    state = _get_state(ctx)
    if not yes and not typer.confirm(f"Clear the history of `{name}`?", default=False):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=0)
    state.orchestrator.reset_history(name)
    console.print(f"History of `{name}` cleared.", style="green")


@pipeline_app.command("serve", help="Run scheduled pipelines until interrupted.")
def pipeline_serve(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    pipelines = state.repository.list_pipelines()
    if not pipelines:
        console.print("No pipelines to schedule.", style="yellow")
        raise typer.Exit(code=0)
    state.orchestrator.register_schedules(pipelines)
    console.print(_render_jobs_table(state.scheduler.list_jobs()))
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("Stopping scheduler.", style="dim")
    finally:
        state.scheduler.shutdown()


@log_app.command("list", help="List per-pipeline log files.")
def log_list() -> None:
    logs = list(available_pipeline_logs())
    if not logs:
        console.print("No pipeline logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    pipeline: Optional[str] = typer.Option(
        None, "--pipeline", help="Pipeline name (global log when omitted)."
    ),
    tail: int = typer.Option(100, "--tail", help="Number of lines to show."),
) -> None:
    lines = tail_log(log_path_for(pipeline), tail)
    if not lines:
        console.print("No log entries yet.", style="dim")
        return
    console.print(f"{pipeline or 'global'} log · last {len(lines)} lines", style="cyan")
    console.print("".join(lines))


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
