"""Contract between the pipeline executor and whatever runs a stage's program."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from pipeshell.cancellation import CancellationToken
from pipeshell.streams import InputSource, OutputSink


class StageAborted(Exception):
    """A command observed cancellation and stopped early."""


class CommandNotFound(Exception):
    """No builtin or program exists for the requested command."""

    def __init__(self, name: str) -> None:
        super().__init__(f"command not found: {name}")
        self.name = name


@dataclass
class Invocation:
    args: list[str]
    stdin: InputSource
    stdout: OutputSink
    stderr: OutputSink
    cancel_token: CancellationToken
    env: dict[str, str] = field(default_factory=dict)
    cwd: Path = field(default_factory=Path.cwd)
    read_size: int = 65536

    @property
    def name(self) -> str:
        return self.args[0]

    def check_cancelled(self) -> None:
        """Raise :class:`StageAborted` if the pipeline has been cancelled."""
        if self.cancel_token.cancelled:
            raise StageAborted(self.cancel_token.reason or "cancelled")

    async def read_stdin(self) -> bytes:
        """Read one chunk of stdin, giving up as soon as the pipeline is cancelled.

        Raises :class:`StageAborted` if the token fires first, even while the
        source has nothing to hand out (an idle terminal, a silent upstream).
        """
        self.check_cancelled()
        read = asyncio.ensure_future(self.stdin.read(self.read_size))
        cancelled = asyncio.ensure_future(self.cancel_token.wait())
        try:
            await asyncio.wait({read, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (read, cancelled):
                if not task.done():
                    task.cancel()
        if cancelled.done() and not cancelled.cancelled():
            if read.done() and not read.cancelled():
                # Dropped chunk; mark any read error as retrieved.
                read.exception()
            self.check_cancelled()
        return read.result()

    async def print_error(self, message: str) -> None:
        await self.stderr.write(f"{self.name}: {message}\n".encode())


class CommandRunner(Protocol):
    async def run(self, invocation: Invocation) -> int:
        """Run the command to completion and return its exit code."""
        ...
