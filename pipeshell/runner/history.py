"""Persistent command history for the interactive shell."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class History:
    """Newline-separated history file holding at most *max_entries* lines."""

    def __init__(self, path: Path, max_entries: int = 1000) -> None:
        self.path = path
        self.max_entries = max_entries
        self.entries: list[str] = self._load()

    def _load(self) -> list[str]:
        try:
            lines = self.path.read_text().splitlines()
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning("Cannot read history %s: %s", self.path, e)
            return []
        return [line for line in lines if line][-self.max_entries :] if self.max_entries else []

    def append(self, line: str) -> None:
        line = line.strip()
        if not line or self.max_entries == 0:
            return
        self.entries.append(line)
        del self.entries[: -self.max_entries]
        self._save()

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            self.path.write_text("\n".join(self.entries) + "\n")
        except OSError as e:
            logger.warning("Cannot write history %s: %s", self.path, e)
