"""Tests for the pipeline executor: wiring, closing obligations, failures, cancellation."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from pipeshell.cancellation import CancellationToken
from pipeshell.commands.base import Invocation, StageAborted
from pipeshell.commands.builtins import BuiltinRunner
from pipeshell.context import ExecutionContext
from pipeshell.pipeline.errors import RedirectError
from pipeshell.pipeline.executor import PipelineResult, StageResult, StageStatus, run_pipeline
from pipeshell.pipeline.schema import Redirect
from tests.conftest import (
    CollectSink,
    ListSource,
    ScriptedRunner,
    StalledSource,
    make_pipeline,
    read_all,
)


async def _gen(inv: Invocation) -> int:
    for word in inv.args[1:]:
        await inv.stdout.write(word.encode() + b"\n")
    return 0


async def _upper(inv: Invocation) -> int:
    await inv.stdout.write((await read_all(inv.stdin)).upper())
    return 0


async def _cat(inv: Invocation) -> int:
    while chunk := await inv.stdin.read(1024):
        await inv.stdout.write(chunk)
    return 0


def _opener(sink: CollectSink):
    opened: list[Redirect] = []

    async def _open(redirect: Redirect, context: ExecutionContext) -> CollectSink:
        opened.append(redirect)
        return sink

    _open.opened = opened  # type: ignore[attr-defined]
    return _open


async def _run(definition, runner, **kwargs) -> PipelineResult:
    kwargs.setdefault("stdin", ListSource())
    kwargs.setdefault("stdout", CollectSink())
    kwargs.setdefault("stderr", CollectSink())
    return await asyncio.wait_for(run_pipeline(definition, runner=runner, **kwargs), 5)


class TestWiring:
    @pytest.mark.anyio
    async def test_single_stage_reads_stdin_writes_stdout(self):
        stdout = CollectSink()
        runner = ScriptedRunner({"upper": _upper})
        result = await _run(
            make_pipeline(["upper"]), runner, stdin=ListSource(b"abc"), stdout=stdout
        )

        assert stdout.data == b"ABC"
        assert result.pipe_count == 0
        assert result.success
        assert result.exit_code == 0

    @pytest.mark.anyio
    async def test_three_stages_allocate_two_pipes(self, counting_pipes):
        stdout = CollectSink()
        runner = ScriptedRunner({"gen": _gen, "transform": _upper, "sink": _cat})
        definition = make_pipeline(["gen", "a", "b"], ["transform"], ["sink"])

        result = await _run(definition, runner, stdout=stdout)

        assert len(counting_pipes) == 2
        assert result.pipe_count == 2
        assert stdout.data == b"A\nB\n"
        assert [sr.status for sr in result.stage_results] == [StageStatus.COMPLETED] * 3

    @pytest.mark.anyio
    async def test_consumer_sees_end_of_stream_after_producer_closes(self, counting_pipes):
        reads: list[bytes] = []

        async def _transform(inv: Invocation) -> int:
            while True:
                chunk = await inv.stdin.read(4)
                reads.append(chunk)
                if not chunk:
                    return 0
                await inv.stdout.write(chunk)

        runner = ScriptedRunner({"gen": _gen, "transform": _transform, "sink": _cat})
        definition = make_pipeline(["gen", "x"], ["transform"], ["sink"])

        await _run(definition, runner)

        assert reads[-1] == b""
        assert b"".join(reads) == b"x\n"
        assert all(pipe.close_count == 1 for pipe in counting_pipes)

    @pytest.mark.anyio
    async def test_every_stage_shares_stderr(self):
        async def _complain(inv: Invocation) -> int:
            await inv.stderr.write(f"{inv.name} says hi\n".encode())
            await read_all(inv.stdin)
            return 0

        stderr = CollectSink()
        stdout = CollectSink()
        runner = ScriptedRunner({"a": _complain, "b": _complain})
        await _run(make_pipeline(["a"], ["b"]), runner, stdout=stdout, stderr=stderr)

        assert sorted(stderr.data.splitlines()) == [b"a says hi", b"b says hi"]
        assert stdout.data == b""
        assert stderr.close_count == 0

    @pytest.mark.anyio
    async def test_external_stdout_is_never_closed(self):
        stdout = CollectSink()
        runner = ScriptedRunner({"gen": _gen})
        await _run(make_pipeline(["gen", "x"]), runner, stdout=stdout)
        assert stdout.close_count == 0

    @pytest.mark.anyio
    async def test_redirect_replaces_stdout_and_is_closed_once(self):
        stdout = CollectSink()
        target = CollectSink()
        opener = _opener(target)
        runner = ScriptedRunner({"gen": _gen, "upper": _upper})
        redirect = Redirect(mode="append", path="out.txt")
        definition = make_pipeline(["gen", "hi"], ["upper"], redirect=redirect)

        await _run(definition, runner, stdout=stdout, redirect_opener=opener)

        assert target.data == b"HI\n"
        assert target.close_count == 1
        assert stdout.data == b""
        assert opener.opened == [redirect]

    @pytest.mark.anyio
    async def test_redirect_failure_launches_nothing(self):
        async def _fail(redirect: Redirect, context: ExecutionContext):
            raise RedirectError("cannot open out.txt")

        runner = ScriptedRunner({"gen": _gen})
        with pytest.raises(RedirectError):
            await _run(
                make_pipeline(["gen"], redirect=Redirect(mode="truncate", path="out.txt")),
                runner,
                redirect_opener=_fail,
            )
        assert runner.invocations == []

    @pytest.mark.anyio
    async def test_invocation_carries_context(self, tmp_path: Path):
        context = ExecutionContext(cwd=tmp_path, env={"LANG": "C"}, read_size=7)
        runner = ScriptedRunner({"gen": _gen})
        await _run(make_pipeline(["gen"]), runner, context=context)

        inv = runner.invocations[0]
        assert inv.cwd == tmp_path
        assert inv.env == {"LANG": "C", "PWD": str(tmp_path)}
        assert inv.read_size == 7


class TestFailures:
    @pytest.mark.anyio
    async def test_failing_stage_does_not_stop_siblings(self, counting_pipes):
        async def _boom(inv: Invocation) -> int:
            raise RuntimeError("kaboom")

        stdout = CollectSink()
        runner = ScriptedRunner({"boom": _boom, "cat": _cat})
        result = await _run(make_pipeline(["boom"], ["cat"]), runner, stdout=stdout)

        first, second = result.stage_results
        assert first.status == StageStatus.FAILED
        assert first.error == "kaboom"
        assert second.status == StageStatus.COMPLETED
        assert counting_pipes[0].close_count == 1
        assert result.exit_code == 0
        assert not result.success

    @pytest.mark.anyio
    async def test_non_zero_exit_is_reported_not_fatal(self):
        async def _exit3(inv: Invocation) -> int:
            await inv.stdout.write(b"partial\n")
            return 3

        stdout = CollectSink()
        runner = ScriptedRunner({"exit3": _exit3, "cat": _cat})
        result = await _run(make_pipeline(["exit3"], ["cat"]), runner, stdout=stdout)

        assert result.stage_results[0].status == StageStatus.COMPLETED
        assert result.stage_results[0].exit_code == 3
        assert stdout.data == b"partial\n"
        assert result.exit_code == 0

    @pytest.mark.anyio
    async def test_pipeline_exit_code_is_last_stage(self):
        async def _exit5(inv: Invocation) -> int:
            await read_all(inv.stdin)
            return 5

        runner = ScriptedRunner({"gen": _gen, "exit5": _exit5})
        result = await _run(make_pipeline(["gen", "x"], ["exit5"]), runner)
        assert result.exit_code == 5

    @pytest.mark.anyio
    async def test_failed_close_marks_stage_failed(self):
        class BadSink(CollectSink):
            async def close(self) -> None:
                await super().close()
                raise OSError("disk full")

        target = BadSink()
        runner = ScriptedRunner({"gen": _gen})
        result = await _run(
            make_pipeline(["gen", "x"], redirect=Redirect(mode="truncate", path="o")),
            runner,
            redirect_opener=_opener(target),
        )

        sr = result.stage_results[0]
        assert sr.status == StageStatus.FAILED
        assert "disk full" in (sr.error or "")
        assert target.close_count == 1
        assert result.exit_code == 1


class TestCancellation:
    @pytest.mark.anyio
    async def test_cancel_runs_every_closing_obligation_once(self, counting_pipes):
        async def _endless(inv: Invocation) -> int:
            for _ in range(5):
                await inv.stdout.write(b"x")
                await asyncio.sleep(0)
            inv.cancel_token.cancel("interrupted")
            while True:
                inv.check_cancelled()
                await inv.stdout.write(b"x")
                await asyncio.sleep(0)

        async def _stubborn(inv: Invocation) -> int:
            # Ignores the token and runs to end-of-stream.
            return await _cat(inv)

        async def _polite(inv: Invocation) -> int:
            while chunk := await inv.stdin.read(64):
                await inv.stdout.write(chunk)
            inv.check_cancelled()
            return 0

        target = CollectSink()
        token = CancellationToken()
        runner = ScriptedRunner({"gen": _endless, "mid": _stubborn, "end": _polite})
        definition = make_pipeline(
            ["gen"], ["mid"], ["end"], redirect=Redirect(mode="truncate", path="o")
        )

        result = await _run(
            definition, runner, cancel_token=token, redirect_opener=_opener(target)
        )

        statuses = [sr.status for sr in result.stage_results]
        assert statuses == [StageStatus.ABORTED, StageStatus.COMPLETED, StageStatus.ABORTED]
        assert [p.close_count for p in counting_pipes] == [1, 1]
        assert target.close_count == 1
        assert target.data.startswith(b"xxxxx")
        assert result.cancelled
        assert result.exit_code == 130

    @pytest.mark.anyio
    async def test_outer_task_cancellation_still_closes_outputs(self, counting_pipes):
        started = asyncio.Event()

        async def _hang(inv: Invocation) -> int:
            started.set()
            await asyncio.Event().wait()
            return 0

        target = CollectSink()
        runner = ScriptedRunner({"hang": _hang, "cat": _cat})
        definition = make_pipeline(
            ["hang"], ["cat"], redirect=Redirect(mode="truncate", path="o")
        )
        task = asyncio.create_task(
            run_pipeline(
                definition,
                runner=runner,
                stdin=ListSource(),
                stdout=CollectSink(),
                stderr=CollectSink(),
                redirect_opener=_opener(target),
            )
        )
        await asyncio.wait_for(started.wait(), 1)
        await asyncio.sleep(0)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert counting_pipes[0].close_count == 1
        assert target.close_count == 1

    @pytest.mark.anyio
    async def test_cancel_stops_builtins_blocked_on_reads(self, counting_pipes):
        source = StalledSource()
        token = CancellationToken()
        target = CollectSink()
        task = asyncio.create_task(
            run_pipeline(
                make_pipeline(
                    ["cat"], ["upper"], redirect=Redirect(mode="truncate", path="o")
                ),
                runner=BuiltinRunner(),
                stdin=source,
                stdout=CollectSink(),
                stderr=CollectSink(),
                cancel_token=token,
                redirect_opener=_opener(target),
            )
        )
        for _ in range(5):
            await asyncio.sleep(0)
        assert source.reads == 1
        assert not task.done()

        token.cancel("interrupted")
        result = await asyncio.wait_for(task, 1)

        assert [sr.status for sr in result.stage_results] == [StageStatus.ABORTED] * 2
        assert [p.close_count for p in counting_pipes] == [1]
        assert target.close_count == 1
        assert result.exit_code == 130

    @pytest.mark.anyio
    async def test_stage_aborted_exception_is_not_a_failure(self):
        async def _abort(inv: Invocation) -> int:
            raise StageAborted("cancelled")

        runner = ScriptedRunner({"abort": _abort})
        result = await _run(make_pipeline(["abort"]), runner)
        assert result.stage_results[0].status == StageStatus.ABORTED
        assert result.stage_results[0].error is None


class TestResults:
    def test_stage_result_defaults(self):
        sr = StageResult(index=0, args=["ls"])
        assert sr.status == StageStatus.PENDING
        assert sr.exit_code is None
        assert sr.name == "ls"
        assert not sr.success

    def test_pipeline_exit_code_for_failed_last_stage(self):
        result = PipelineResult(
            pipeline_id="p",
            stage_results=[StageResult(index=0, args=["x"], status=StageStatus.FAILED)],
        )
        assert result.exit_code == 1
