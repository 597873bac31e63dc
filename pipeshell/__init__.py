"""pipeshell: shell-style pipelines over in-process byte pipes."""

__version__ = "0.1.0"
