"""Choose between builtins and OS processes per stage."""

from __future__ import annotations

from typing import Literal

from pipeshell.commands.base import CommandRunner, Invocation
from pipeshell.commands.builtins import BuiltinRunner
from pipeshell.commands.process import ProcessRunner

RunnerMode = Literal["auto", "builtin", "process"]


class DispatchRunner:
    """Run a builtin when one is registered under the command name, else spawn a process."""

    def __init__(
        self,
        builtins: BuiltinRunner | None = None,
        process: CommandRunner | None = None,
    ) -> None:
        self.builtins = builtins or BuiltinRunner()
        self.process = process or ProcessRunner()

    async def run(self, invocation: Invocation) -> int:
        if self.builtins.has(invocation.name):
            return await self.builtins.run(invocation)
        return await self.process.run(invocation)


def create_runner(mode: RunnerMode = "auto") -> CommandRunner:
    """Build the command runner selected by the ``runner`` setting."""
    if mode == "builtin":
        return BuiltinRunner()
    if mode == "process":
        return ProcessRunner()
    return DispatchRunner()
