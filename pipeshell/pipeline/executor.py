"""Concurrent execution engine for parsed pipelines."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum

from pipeshell.cancellation import CancellationToken
from pipeshell.commands.base import CommandRunner, Invocation, StageAborted
from pipeshell.context import ExecutionContext
from pipeshell.pipe import BytePipe
from pipeshell.pipeline.schema import PipelineDefinition, Redirect, Stage
from pipeshell.streams import InputSource, OutputSink, open_redirect

logger = logging.getLogger(__name__)

RedirectOpener = Callable[[Redirect, ExecutionContext], Awaitable[OutputSink]]

# Exit status reported for an aborted final stage, as a shell does after SIGINT.
ABORTED_EXIT_CODE = 130


class StageStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class StageResult:
    index: int
    args: list[str]
    status: StageStatus = StageStatus.PENDING
    exit_code: int | None = None
    error: str | None = None
    duration_ms: int = 0

    @property
    def name(self) -> str:
        return self.args[0]

    @property
    def success(self) -> bool:
        return self.status == StageStatus.COMPLETED and self.exit_code == 0


@dataclass
class PipelineResult:
    pipeline_id: str
    stage_results: list[StageResult] = field(default_factory=list)
    pipe_count: int = 0
    duration_ms: int = 0
    cancelled: bool = False

    @property
    def exit_code(self) -> int:
        """Exit status of the pipeline: that of its last stage."""
        last = self.stage_results[-1]
        if last.status == StageStatus.COMPLETED and last.exit_code is not None:
            return last.exit_code
        if last.status == StageStatus.ABORTED:
            return ABORTED_EXIT_CODE
        return 1

    @property
    def success(self) -> bool:
        return all(sr.success for sr in self.stage_results)


@dataclass
class _StageWiring:
    stage: Stage
    stdin: InputSource
    stdout: OutputSink
    owns_stdout: bool
    closed: bool = False


async def _open_outputs(
    definition: PipelineDefinition,
    pipes: list[BytePipe],
    stdout: OutputSink,
    context: ExecutionContext,
    redirect_opener: RedirectOpener,
) -> list[tuple[OutputSink, bool]]:
    """Return ``(sink, owned)`` per stage; owned sinks are closed when the stage ends."""
    outputs: list[tuple[OutputSink, bool]] = [(pipe, True) for pipe in pipes]
    redirect = definition.redirect
    if redirect is not None:
        outputs.append((await redirect_opener(redirect, context), True))
    else:
        outputs.append((stdout, False))
    return outputs


async def _close_output(wiring: _StageWiring, result: StageResult) -> None:
    """Close the stage's own output sink, at most once."""
    if not wiring.owns_stdout or wiring.closed:
        return
    wiring.closed = True
    try:
        await wiring.stdout.close()
    except Exception as e:
        logger.warning(
            "stage %d (%s): closing output failed: %s", result.index, wiring.stage.name, e
        )
        if result.status == StageStatus.COMPLETED:
            result.status = StageStatus.FAILED
            result.error = f"closing output failed: {e}"


async def _run_stage(
    wiring: _StageWiring,
    result: StageResult,
    *,
    runner: CommandRunner,
    stderr: OutputSink,
    context: ExecutionContext,
    cancel_token: CancellationToken,
) -> None:
    """Run one stage and honour its closing obligation on every exit path."""
    start = time.monotonic()
    result.status = StageStatus.RUNNING
    logger.debug("stage %d started: %s", result.index, wiring.stage)
    invocation = Invocation(
        args=list(wiring.stage.args),
        stdin=wiring.stdin,
        stdout=wiring.stdout,
        stderr=stderr,
        cancel_token=cancel_token,
        env=context.build_env(),
        cwd=context.cwd,
        read_size=context.read_size,
    )
    try:
        result.exit_code = await runner.run(invocation)
        result.status = StageStatus.COMPLETED
    except StageAborted:
        result.status = StageStatus.ABORTED
    except asyncio.CancelledError:
        result.status = StageStatus.ABORTED
        raise
    except Exception as e:
        logger.debug("stage %d (%s) failed", result.index, wiring.stage.name, exc_info=True)
        result.status = StageStatus.FAILED
        result.error = str(e) or type(e).__name__
    finally:
        await _close_output(wiring, result)
        result.duration_ms = int((time.monotonic() - start) * 1000)
        logger.debug(
            "stage %d settled: %s (exit=%s)", result.index, result.status, result.exit_code
        )


async def run_pipeline(
    definition: PipelineDefinition,
    *,
    runner: CommandRunner,
    stdin: InputSource,
    stdout: OutputSink,
    stderr: OutputSink,
    context: ExecutionContext | None = None,
    cancel_token: CancellationToken | None = None,
    redirect_opener: RedirectOpener = open_redirect,
) -> PipelineResult:
    """Run every stage of *definition* concurrently, connected by in-memory pipes.

    Stage *i* reads from *stdin* (i == 0) or the pipe written by stage
    *i-1*, and writes to the pipe read by stage *i+1*, or, for the last
    stage, to the redirect target or *stdout*. Every stage writes errors to
    *stderr*. A failing stage does not stop its siblings; all stages are
    awaited before returning.

    Raises :class:`~pipeshell.pipeline.errors.RedirectError` before any stage
    starts if the redirect target cannot be opened.
    """
    context = context or ExecutionContext()
    cancel_token = cancel_token or CancellationToken()

    pipes = [BytePipe() for _ in range(definition.pipe_count)]
    outputs = await _open_outputs(definition, pipes, stdout, context, redirect_opener)

    wirings = []
    for i, stage in enumerate(definition.stages):
        sink, owned = outputs[i]
        wirings.append(
            _StageWiring(
                stage=stage,
                stdin=stdin if i == 0 else pipes[i - 1],
                stdout=sink,
                owns_stdout=owned,
            )
        )

    result = PipelineResult(
        pipeline_id=uuid.uuid4().hex[:8],
        stage_results=[
            StageResult(index=i, args=list(s.args)) for i, s in enumerate(definition.stages)
        ],
        pipe_count=len(pipes),
    )
    logger.debug("pipeline %s: %s (%d pipes)", result.pipeline_id, definition, len(pipes))

    start = time.monotonic()
    try:
        await asyncio.gather(
            *(
                _run_stage(
                    wiring,
                    stage_result,
                    runner=runner,
                    stderr=stderr,
                    context=context,
                    cancel_token=cancel_token,
                )
                for wiring, stage_result in zip(wirings, result.stage_results, strict=True)
            )
        )
    finally:
        # A stage cancelled before its first step never entered its own finally.
        for wiring, stage_result in zip(wirings, result.stage_results, strict=True):
            if stage_result.status == StageStatus.PENDING:
                stage_result.status = StageStatus.ABORTED
                await _close_output(wiring, stage_result)
        result.duration_ms = int((time.monotonic() - start) * 1000)
        result.cancelled = cancel_token.cancelled
    return result
