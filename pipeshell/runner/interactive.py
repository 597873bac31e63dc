"""Interactive REPL: read a line, run it as a pipeline, repeat."""

from __future__ import annotations

import asyncio
from pathlib import Path

from rich.markup import escape

from pipeshell.commands.base import CommandRunner
from pipeshell.context import ExecutionContext
from pipeshell.pipeline.builder import parse_tokens
from pipeshell.pipeline.errors import PipelineError
from pipeshell.pipeline.tokenizer import tokenize
from pipeshell.runner.display import console, display_outcome
from pipeshell.runner.history import History
from pipeshell.settings import ShellSettings

_REPL_HELP = (
    "Shell commands: [bold]cd DIR[/bold], [bold]help[/bold], [bold]exit[/bold]. "
    "Join commands with [bold]|[/bold]; send the last one to a file with "
    "[bold]> FILE[/bold] or [bold]>> FILE[/bold]. Ctrl+C stops the running pipeline."
)


def change_directory(context: ExecutionContext, args: list[str]) -> ExecutionContext:
    """Return *context* moved to ``args[0]``; raises ValueError when that is not a directory."""
    if not args:
        raise ValueError("Provide the directory argument.")
    target = context.resolve_path(args[0])
    if not target.is_dir():
        raise ValueError(f"cd: no such directory: {args[0]}")
    return context.with_cwd(target)


def format_prompt(settings: ShellSettings, context: ExecutionContext) -> str:
    return settings.prompt.replace("{cwd}", str(context.cwd))


def run_interactive(
    context: ExecutionContext,
    runner: CommandRunner,
    *,
    settings: ShellSettings | None = None,
    history_path: Path | None = None,
) -> ExecutionContext:
    """Run the REPL until ``exit``, ``quit`` or EOF; returns the final context."""
    from pipeshell.runner.single import execute_definition

    settings = settings or ShellSettings()
    history = History(history_path, settings.history_size) if history_path else None

    console.print("[bold]pipeshell[/bold]: type [bold]help[/bold] for commands.")

    while True:
        try:
            raw_input = console.input(escape(format_prompt(settings, context))).strip()
        except (EOFError, KeyboardInterrupt):
            console.print("\nGoodbye!")
            break

        if not raw_input:
            continue
        if history is not None:
            history.append(raw_input)

        tokens = tokenize(raw_input)
        if not tokens:
            continue
        if tokens[0] in ("exit", "quit"):
            console.print("Goodbye!")
            break
        if tokens[0] == "cd":
            try:
                context = change_directory(context, tokens[1:])
            except ValueError as e:
                console.print(f"[yellow]{escape(str(e))}[/yellow]")
            continue
        if tokens == ["help"]:
            console.print(_REPL_HELP)

        try:
            definition = parse_tokens(tokens)
            result = asyncio.run(
                execute_definition(
                    definition, context=context, runner=runner, handle_interrupts=True
                )
            )
        except PipelineError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            continue
        display_outcome(result)

    return context
