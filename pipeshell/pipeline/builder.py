"""Turn a flat token list into a :class:`PipelineDefinition`."""

from __future__ import annotations

from collections.abc import Sequence

from pipeshell.pipeline.errors import StructuralError
from pipeshell.pipeline.schema import PipelineDefinition, Redirect, Stage
from pipeshell.pipeline.tokenizer import tokenize

PIPE = "|"
_REDIRECT_MODES = {">": "truncate", ">>": "append"}


def parse_tokens(tokens: Sequence[str]) -> PipelineDefinition:
    """Split *tokens* on ``|`` into stages and pull a trailing ``>``/``>>`` redirect.

    Raises :class:`StructuralError` for an empty line, a trailing pipe, an
    empty segment, or a redirect without a target or a command.
    """
    if not tokens:
        raise StructuralError("empty command line")
    if tokens[-1] == PIPE:
        raise StructuralError("trailing pipe")

    segments: list[list[str]] = [[]]
    for token in tokens:
        if token == PIPE:
            segments.append([])
        else:
            segments[-1].append(token)
    if any(not segment for segment in segments):
        raise StructuralError("empty pipe segment")

    last = segments[-1]
    redirect = None
    if last[-1] in _REDIRECT_MODES:
        raise StructuralError("missing redirect target")
    if len(last) >= 2 and last[-2] in _REDIRECT_MODES:
        if not last[-1]:
            raise StructuralError("missing redirect target")
        redirect = Redirect(mode=_REDIRECT_MODES[last[-2]], path=last[-1])
        del last[-2:]
        if not last:
            raise StructuralError("missing command before redirect")

    stages = [Stage(args=segment) for segment in segments[:-1]]
    stages.append(Stage(args=last, redirect=redirect))
    return PipelineDefinition(stages=stages)


def parse_line(line: str) -> PipelineDefinition | None:
    """Tokenize and parse *line*; ``None`` when the line holds no words."""
    tokens = tokenize(line)
    if not tokens:
        return None
    return parse_tokens(tokens)
