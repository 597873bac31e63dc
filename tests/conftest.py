"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import pytest

from pipeshell.commands.base import Invocation
from pipeshell.config import get_home_dir
from pipeshell.pipe import BytePipe
from pipeshell.pipeline.schema import PipelineDefinition, Stage

CommandFunc = Callable[[Invocation], Awaitable[int]]


class CollectSink:
    """Output sink that records everything written and how often it was closed."""

    def __init__(self) -> None:
        self.chunks: list[bytes] = []
        self.close_count = 0

    @property
    def data(self) -> bytes:
        return b"".join(self.chunks)

    async def write(self, data: bytes) -> None:
        self.chunks.append(bytes(data))

    async def close(self) -> None:
        self.close_count += 1


class ListSource:
    """Input source that hands out the given chunks, then end-of-stream."""

    def __init__(self, *chunks: bytes) -> None:
        self._chunks = [c for c in chunks if c]

    async def read(self, max_len: int) -> bytes:
        if not self._chunks or max_len == 0:
            return b""
        chunk = self._chunks.pop(0)
        if len(chunk) > max_len:
            self._chunks.insert(0, chunk[max_len:])
            chunk = chunk[:max_len]
        return chunk


class StalledSource:
    """Input source whose reads never complete, like an idle terminal."""

    def __init__(self) -> None:
        self.reads = 0

    async def read(self, max_len: int) -> bytes:
        self.reads += 1
        await asyncio.Event().wait()
        return b""


class ScriptedRunner:
    """Command runner dispatching on ``args[0]`` to coroutine functions."""

    def __init__(self, commands: dict[str, CommandFunc]) -> None:
        self.commands = commands
        self.invocations: list[Invocation] = []

    async def run(self, invocation: Invocation) -> int:
        self.invocations.append(invocation)
        return await self.commands[invocation.name](invocation)


class CountingPipe(BytePipe):
    """BytePipe that records every instance and how often each was closed."""

    instances: list[CountingPipe] = []

    def __init__(self) -> None:
        super().__init__()
        self.close_count = 0
        CountingPipe.instances.append(self)

    async def close(self) -> None:
        self.close_count += 1
        await super().close()


async def read_all(source, max_len: int = 1024) -> bytes:
    """Read *source* to end-of-stream."""
    chunks = []
    while chunk := await source.read(max_len):
        chunks.append(chunk)
    return b"".join(chunks)


def make_pipeline(*stages: list[str], redirect=None) -> PipelineDefinition:
    """Build a PipelineDefinition from argument lists; *redirect* applies to the last stage."""
    built = [Stage(args=list(args)) for args in stages]
    if redirect is not None:
        built[-1] = Stage(args=list(stages[-1]), redirect=redirect)
    return PipelineDefinition(stages=built)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    """Point PIPESHELL_HOME at a temp dir so no test touches ~/.pipeshell."""
    monkeypatch.setenv("PIPESHELL_HOME", str(tmp_path / "home"))
    get_home_dir.cache_clear()
    yield
    get_home_dir.cache_clear()


@pytest.fixture
def counting_pipes(monkeypatch):
    """Make the executor allocate CountingPipe instances; yields the instance list."""
    CountingPipe.instances = []
    monkeypatch.setattr("pipeshell.pipeline.executor.BytePipe", CountingPipe)
    return CountingPipe.instances
