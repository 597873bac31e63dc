"""Shared CLI helpers: settings loading and execution-context setup."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from pipeshell.context import ExecutionContext
    from pipeshell.settings import ShellSettings

console = Console()
err_console = Console(stderr=True)


def load_settings_or_exit(path: Path | None = None) -> ShellSettings:
    """Load settings, printing the error and exiting with status 1 on failure."""
    from pipeshell.settings import SettingsLoadError, load_settings

    try:
        return load_settings(path)
    except SettingsLoadError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None


def build_context_or_exit(settings: ShellSettings, cwd: Path | None) -> ExecutionContext:
    """Build the execution context, rejecting a ``--cwd`` that is not a directory."""
    from pipeshell.context import ExecutionContext

    if cwd is not None and not cwd.is_dir():
        err_console.print(f"[red]Error:[/red] Not a directory: {escape(str(cwd))}")
        raise typer.Exit(1)
    return ExecutionContext.from_settings(settings, cwd)
