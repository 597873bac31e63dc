"""Runner package: single-shot and interactive modes."""

from pipeshell.runner.interactive import run_interactive
from pipeshell.runner.single import execute_definition, run_line

__all__ = [
    "execute_definition",
    "run_interactive",
    "run_line",
]
