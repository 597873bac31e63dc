"""Run stages as OS processes, pumping bytes between pipeshell endpoints and OS pipes."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os

from pipeshell.commands.base import CommandNotFound, Invocation, StageAborted
from pipeshell.streams import OutputSink

logger = logging.getLogger(__name__)


class ProcessRunner:
    """Spawn ``args`` with :func:`asyncio.create_subprocess_exec`.

    The child's environment is the parent's overlaid with the invocation's.
    On cancellation the child gets SIGTERM, then SIGKILL after
    *kill_timeout* seconds, and the stage is reported aborted.
    """

    def __init__(self, *, kill_timeout: float = 2.0) -> None:
        self.kill_timeout = kill_timeout

    async def run(self, invocation: Invocation) -> int:
        invocation.check_cancelled()
        try:
            proc = await asyncio.create_subprocess_exec(
                *invocation.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=invocation.cwd,
                env={**os.environ, **invocation.env},
            )
        except FileNotFoundError:
            raise CommandNotFound(invocation.name) from None
        except PermissionError as e:
            raise OSError(f"{invocation.name}: permission denied") from e
        logger.debug("spawned %s (pid %d)", invocation.name, proc.pid)

        feeder = asyncio.create_task(self._feed_stdin(proc, invocation))
        pumps = [
            asyncio.create_task(self._drain(proc.stdout, invocation.stdout, invocation)),
            asyncio.create_task(self._drain(proc.stderr, invocation.stderr, invocation)),
        ]
        watcher = asyncio.create_task(self._terminate_on_cancel(proc, invocation))
        try:
            await asyncio.gather(*pumps)
            returncode = await proc.wait()
            if feeder.done() and not feeder.cancelled():
                error = feeder.exception()
                if error is not None:
                    raise error
        finally:
            # The feeder may still be parked on an upstream read that will never
            # be answered (e.g. an interactive terminal).
            for task in (feeder, watcher, *pumps):
                task.cancel()
            await asyncio.gather(feeder, watcher, *pumps, return_exceptions=True)
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()

        if invocation.cancel_token.cancelled:
            raise StageAborted(invocation.cancel_token.reason or "cancelled")
        return returncode

    async def _feed_stdin(self, proc: asyncio.subprocess.Process, inv: Invocation) -> None:
        assert proc.stdin is not None
        try:
            while True:
                chunk = await inv.stdin.read(inv.read_size)
                if not chunk:
                    break
                proc.stdin.write(chunk)
                await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("%s closed its stdin early", inv.name)
        finally:
            with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                proc.stdin.close()

    async def _drain(
        self,
        reader: asyncio.StreamReader | None,
        sink: OutputSink,
        inv: Invocation,
    ) -> None:
        assert reader is not None
        while True:
            chunk = await reader.read(inv.read_size)
            if not chunk:
                return
            await sink.write(chunk)

    async def _terminate_on_cancel(self, proc: asyncio.subprocess.Process, inv: Invocation) -> None:
        await inv.cancel_token.wait()
        if proc.returncode is not None:
            return
        logger.debug("terminating %s (pid %d)", inv.name, proc.pid)
        with contextlib.suppress(ProcessLookupError):
            proc.terminate()
        try:
            await asyncio.wait_for(proc.wait(), self.kill_timeout)
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
