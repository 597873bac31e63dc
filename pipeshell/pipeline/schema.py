"""Pydantic models for parsed pipelines."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator


class Redirect(BaseModel):
    mode: Literal["truncate", "append"]
    path: str = Field(min_length=1)

    @property
    def operator(self) -> str:
        return ">>" if self.mode == "append" else ">"


class Stage(BaseModel):
    args: list[str] = Field(min_length=1)
    redirect: Redirect | None = None

    @property
    def name(self) -> str:
        return self.args[0]

    def __str__(self) -> str:
        text = " ".join(self.args)
        if self.redirect is not None:
            text += f" {self.redirect.operator} {self.redirect.path}"
        return text


class PipelineDefinition(BaseModel):
    stages: list[Stage] = Field(min_length=1)

    @model_validator(mode="after")
    def _redirect_only_on_last(self) -> PipelineDefinition:
        for stage in self.stages[:-1]:
            if stage.redirect is not None:
                raise ValueError(f"Only the last stage may redirect output (got '{stage}')")
        return self

    @property
    def redirect(self) -> Redirect | None:
        return self.stages[-1].redirect

    @property
    def pipe_count(self) -> int:
        return len(self.stages) - 1

    def __str__(self) -> str:
        return " | ".join(str(s) for s in self.stages)
