"""Execution context threaded into every stage of a pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pipeshell.settings import ShellSettings


@dataclass(frozen=True)
class ExecutionContext:
    """Working directory and environment for one pipeline invocation."""

    cwd: Path = field(default_factory=Path.cwd)
    env: dict[str, str] = field(default_factory=dict)
    read_size: int = 65536

    @classmethod
    def from_settings(cls, settings: ShellSettings, cwd: Path | None = None) -> ExecutionContext:
        return cls(
            cwd=(cwd or Path.cwd()).resolve(),
            env=dict(settings.env),
            read_size=settings.read_size,
        )

    def resolve_path(self, path: str | Path) -> Path:
        """Resolve *path* against :attr:`cwd`, collapsing ``.`` and ``..``."""
        return Path(os.path.normpath(self.cwd / Path(path).expanduser()))

    def build_env(self) -> dict[str, str]:
        return {**self.env, "PWD": str(self.cwd)}

    def with_cwd(self, cwd: Path) -> ExecutionContext:
        return replace(self, cwd=cwd)
