"""Logging setup for pipeshell: one stderr handler on the ``pipeshell`` logger."""

from __future__ import annotations

import logging
import sys
import threading

_ROOT = "pipeshell"

_lock = threading.Lock()
_handler: logging.Handler | None = None


class _TagFormatter(logging.Formatter):
    """Render ``[tag] message``; the tag is the logger name without ``pipeshell.``."""

    def __init__(self) -> None:
        super().__init__("%(tag)s%(message)s")

    def format(self, record: logging.LogRecord) -> str:
        tag = record.name.removeprefix(f"{_ROOT}.")
        record.tag = "" if tag == _ROOT else f"[{tag}] "
        return super().format(record)


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach the stderr handler once and return the ``pipeshell`` logger.

    The level is WARNING, or DEBUG when *verbose* is set. Passing
    ``verbose=True`` after an earlier quiet setup still switches to DEBUG,
    so ``--verbose`` wins over the lazy setup done by :func:`get_logger`.
    """
    global _handler
    logger = logging.getLogger(_ROOT)
    with _lock:
        if _handler is None:
            _handler = logging.StreamHandler(sys.stderr)
            _handler.setFormatter(_TagFormatter())
            logger.addHandler(_handler)
            logger.propagate = False
            logger.setLevel(logging.WARNING)
        if verbose:
            logger.setLevel(logging.DEBUG)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the ``pipeshell.<name>`` logger, setting up output on first use."""
    setup_logging()
    return logging.getLogger(f"{_ROOT}.{name}")
