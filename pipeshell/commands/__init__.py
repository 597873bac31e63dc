"""Command runners: builtin commands and OS subprocesses."""

from pipeshell.commands.base import CommandNotFound, CommandRunner, Invocation, StageAborted
from pipeshell.commands.builtins import BuiltinRunner, builtin_names
from pipeshell.commands.dispatch import DispatchRunner, create_runner
from pipeshell.commands.process import ProcessRunner

__all__ = [
    "BuiltinRunner",
    "CommandNotFound",
    "CommandRunner",
    "DispatchRunner",
    "Invocation",
    "ProcessRunner",
    "StageAborted",
    "builtin_names",
    "create_runner",
]
