"""User settings for the shell, read from ``settings.yaml`` in the home dir."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError


class SettingsLoadError(Exception):
    """Raised when the settings file cannot be loaded or validated."""


class ShellSettings(BaseModel):
    prompt: str = "{cwd}$ "
    read_size: int = Field(default=65536, gt=0)
    history_size: int = Field(default=1000, ge=0)
    env: dict[str, str] = {}
    runner: Literal["auto", "builtin", "process"] = "auto"


def load_settings(path: Path | None = None) -> ShellSettings:
    """Load settings from *path* (default: the home-dir settings file).

    A missing or empty file is not an error; defaults apply. Anything else
    that goes wrong raises :class:`SettingsLoadError`.
    """
    if path is None:
        from pipeshell.config import get_settings_path

        path = get_settings_path()
    if not path.exists():
        return ShellSettings()

    try:
        data = yaml.safe_load(path.read_text())
    except OSError as e:
        raise SettingsLoadError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise SettingsLoadError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return ShellSettings()
    if not isinstance(data, dict):
        raise SettingsLoadError(
            f"Expected a YAML mapping in {path}, got {type(data).__name__}"
        )
    try:
        return ShellSettings.model_validate(data)
    except ValidationError as e:
        raise SettingsLoadError(f"Validation failed for {path}:\n{e}") from e
