"""Typer CLI for pipeshell: wiring hub for command modules."""

from __future__ import annotations

from typing import Annotated

import typer

from pipeshell.cli._helpers import console
from pipeshell.cli.run_cmd import parse, run, shell

app = typer.Typer(
    name="pipeshell",
    help="Run shell-style command pipelines over in-process byte pipes.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    if value:
        from pipeshell import __version__

        console.print(f"pipeshell {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", callback=version_callback, is_eager=True),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging"),
    ] = False,
) -> None:
    """pipeshell: chain commands with |, redirect with > and >>."""
    from pipeshell._log import setup_logging

    setup_logging(verbose=verbose)


app.command()(run)
app.command()(parse)
app.command()(shell)
