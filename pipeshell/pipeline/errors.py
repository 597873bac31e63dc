"""Errors raised while building or starting a pipeline."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for errors that stop a pipeline before any stage runs."""


class StructuralError(PipelineError):
    """The command line is not a well-formed pipeline."""


class RedirectError(PipelineError):
    """The output redirect target could not be opened."""
