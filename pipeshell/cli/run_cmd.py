"""Pipeline commands: run, parse, shell."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from pipeshell.cli._helpers import (
    build_context_or_exit,
    console,
    err_console,
    load_settings_or_exit,
)

# Exit status for a line that could not be parsed, as shells use for usage errors.
_SYNTAX_EXIT_CODE = 2

_CwdOption = Annotated[
    Path | None,
    typer.Option("--cwd", help="Working directory for the pipeline (default: current)"),
]
_SettingsOption = Annotated[
    Path | None,
    typer.Option("--settings", help="Path to settings YAML (default: ~/.pipeshell/settings.yaml)"),
]


def run(
    line: Annotated[str, typer.Argument(help="Command line, e.g. 'cat notes.txt | upper > out'")],
    cwd: _CwdOption = None,
    settings_file: _SettingsOption = None,
    report: Annotated[
        bool, typer.Option("--report", help="Print a table of stage outcomes afterwards")
    ] = False,
) -> None:
    """Run one pipeline with this process's stdin, stdout and stderr."""
    from pipeshell.commands.dispatch import create_runner
    from pipeshell.pipeline.errors import PipelineError, StructuralError
    from pipeshell.runner.display import display_outcome, display_report
    from pipeshell.runner.single import run_line

    settings = load_settings_or_exit(settings_file)
    context = build_context_or_exit(settings, cwd)

    try:
        result = run_line(
            line,
            context=context,
            runner=create_runner(settings.runner),
            handle_interrupts=True,
        )
    except StructuralError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(_SYNTAX_EXIT_CODE) from None
    except PipelineError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None

    if result is None:
        return
    display_outcome(result, err_console)
    if report:
        display_report(result, err_console)
    if result.exit_code != 0:
        raise typer.Exit(result.exit_code)


def parse(
    line: Annotated[str, typer.Argument(help="Command line to check")],
) -> None:
    """Parse a command line and show its stages without running anything."""
    from pipeshell.pipeline.builder import parse_line
    from pipeshell.pipeline.errors import StructuralError
    from pipeshell.runner.display import display_definition

    try:
        definition = parse_line(line)
    except StructuralError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(_SYNTAX_EXIT_CODE) from None

    if definition is None:
        console.print("[dim]Empty command line.[/dim]")
        return
    display_definition(definition)
    console.print(f"\n[green]Valid pipeline[/green] with {definition.pipe_count} pipe(s).")


def shell(
    cwd: _CwdOption = None,
    settings_file: _SettingsOption = None,
    no_history: Annotated[
        bool, typer.Option("--no-history", help="Do not read or write the history file")
    ] = False,
) -> None:
    """Start an interactive shell."""
    from pipeshell.commands.dispatch import create_runner
    from pipeshell.config import get_history_path
    from pipeshell.runner.interactive import run_interactive

    settings = load_settings_or_exit(settings_file)
    context = build_context_or_exit(settings, cwd)
    run_interactive(
        context,
        create_runner(settings.runner),
        settings=settings,
        history_path=None if no_history else get_history_path(),
    )
