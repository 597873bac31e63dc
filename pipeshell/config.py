"""Where pipeshell keeps its own files.

Two files live in the home dir: ``settings.yaml`` (read by
:func:`pipeshell.settings.load_settings`) and ``history`` (one line per REPL
command, written by :class:`pipeshell.runner.history.History`).
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

_APP = "pipeshell"


@lru_cache(maxsize=1)
def get_home_dir() -> Path:
    """``$PIPESHELL_HOME`` if set, else ``$XDG_DATA_HOME/pipeshell``, else ``~/.pipeshell``.

    Cached for the process; tests clear the cache after changing the env.
    """
    if override := os.environ.get("PIPESHELL_HOME"):
        return Path(override)
    if xdg := os.environ.get("XDG_DATA_HOME"):
        return Path(xdg) / _APP
    return Path.home() / f".{_APP}"


def get_settings_path() -> Path:
    """Path of the YAML settings file (it need not exist)."""
    return get_home_dir() / "settings.yaml"


def get_history_path() -> Path:
    return get_home_dir() / "history"
