"""Pipeline module: parse a command line into stages and run them over byte pipes."""

from pipeshell.pipeline.builder import parse_line, parse_tokens
from pipeshell.pipeline.errors import PipelineError, RedirectError, StructuralError
from pipeshell.pipeline.executor import PipelineResult, StageResult, StageStatus, run_pipeline
from pipeshell.pipeline.schema import PipelineDefinition, Redirect, Stage
from pipeshell.pipeline.tokenizer import tokenize

__all__ = [
    "PipelineDefinition",
    "PipelineError",
    "PipelineResult",
    "Redirect",
    "RedirectError",
    "Stage",
    "StageResult",
    "StageStatus",
    "StructuralError",
    "parse_line",
    "parse_tokens",
    "run_pipeline",
    "tokenize",
]
