"""Single-shot runner: parse one command line and run it to completion."""

from __future__ import annotations

import asyncio

from pipeshell.cancellation import CancellationToken
from pipeshell.commands.base import CommandRunner
from pipeshell.context import ExecutionContext
from pipeshell.pipeline.builder import parse_line
from pipeshell.pipeline.executor import PipelineResult, run_pipeline
from pipeshell.pipeline.schema import PipelineDefinition
from pipeshell.streams import InputSource, OutputSink, StreamSink, StreamSource


async def execute_definition(
    definition: PipelineDefinition,
    *,
    context: ExecutionContext,
    runner: CommandRunner,
    stdin: InputSource | None = None,
    stdout: OutputSink | None = None,
    stderr: OutputSink | None = None,
    cancel_token: CancellationToken | None = None,
    handle_interrupts: bool = False,
) -> PipelineResult:
    """Run *definition* against the process streams unless others are given.

    With *handle_interrupts*, Ctrl+C cancels the pipeline for as long as it
    runs (a second Ctrl+C exits the process).
    """
    cancel_token = cancel_token or CancellationToken()
    restore = None
    if handle_interrupts:
        from pipeshell._signal import install_cancel_handler

        restore = install_cancel_handler(cancel_token)
    try:
        return await run_pipeline(
            definition,
            runner=runner,
            stdin=stdin or StreamSource(),
            stdout=stdout or StreamSink(),
            stderr=stderr or StreamSink(error=True),
            context=context,
            cancel_token=cancel_token,
        )
    finally:
        if restore is not None:
            restore()


def run_line(
    line: str,
    *,
    context: ExecutionContext,
    runner: CommandRunner,
    stdin: InputSource | None = None,
    stdout: OutputSink | None = None,
    stderr: OutputSink | None = None,
    handle_interrupts: bool = False,
) -> PipelineResult | None:
    """Parse and run *line* on a fresh event loop; ``None`` for a blank line.

    Raises :class:`~pipeshell.pipeline.errors.StructuralError` for malformed
    lines and :class:`~pipeshell.pipeline.errors.RedirectError` when the
    redirect target cannot be opened.
    """
    definition = parse_line(line)
    if definition is None:
        return None
    return asyncio.run(
        execute_definition(
            definition,
            context=context,
            runner=runner,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            handle_interrupts=handle_interrupts,
        )
    )
