"""Rich console output helpers for runner modes."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pipeshell.pipeline.executor import PipelineResult, StageResult, StageStatus
from pipeshell.pipeline.schema import PipelineDefinition

console = Console()
err_console = Console(stderr=True)


def _status_label(sr: StageResult) -> str:
    if sr.status == StageStatus.COMPLETED:
        if sr.exit_code == 0:
            return "[green]OK[/green]"
        return f"[yellow]EXIT {sr.exit_code}[/yellow]"
    if sr.status == StageStatus.ABORTED:
        return "[dim]ABORTED[/dim]"
    if sr.status == StageStatus.FAILED:
        return f"[red]FAIL[/red] ({escape(sr.error or '')})"
    return f"[dim]{sr.status.upper()}[/dim]"


def display_outcome(result: PipelineResult, target: Console = console) -> None:
    """Print failures, aborts and a non-zero exit status, the way a shell would."""
    if result.cancelled:
        target.print("^C")
    for sr in result.stage_results:
        if sr.status == StageStatus.FAILED:
            target.print(f"[red]{escape(sr.name)}:[/red] {escape(sr.error or 'failed')}")
    code = result.exit_code
    if code != 0 and not result.cancelled:
        target.print(f"Exit code: {code}")


def display_report(result: PipelineResult, target: Console = console) -> None:
    """Render per-stage outcomes as a table."""
    table = Table(title=f"Pipeline {result.pipeline_id}")
    table.add_column("#", justify="right")
    table.add_column("Stage", style="cyan")
    table.add_column("Status")
    table.add_column("Duration")

    for sr in result.stage_results:
        args = escape(" ".join(sr.args))
        table.add_row(str(sr.index), args, _status_label(sr), f"{sr.duration_ms}ms")

    target.print(table)
    target.print(
        f"[bold]Pipes:[/bold] {result.pipe_count}  [bold]Total:[/bold] {result.duration_ms}ms"
    )


def display_definition(definition: PipelineDefinition, target: Console = console) -> None:
    """Render a parsed pipeline without running it."""
    table = Table(title="Pipeline")
    table.add_column("#", justify="right")
    table.add_column("Arguments", style="cyan")
    table.add_column("Output")

    last = len(definition.stages) - 1
    for i, stage in enumerate(definition.stages):
        if i < last:
            output = f"pipe {i}"
        elif stage.redirect is not None:
            output = f"{stage.redirect.mode} {escape(stage.redirect.path)}"
        else:
            output = "stdout"
        table.add_row(str(i), escape(" ".join(repr(a) for a in stage.args)), output)

    target.print(table)
