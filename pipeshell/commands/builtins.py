"""Builtin commands that run inside the event loop.

Each builtin is an ``async def`` taking an :class:`Invocation` and returning
an exit code, registered with ``@register_builtin``. Builtins stream through
their stdin in ``read_size`` chunks and check for cancellation between
chunks.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path
from typing import TypeVar

from pipeshell.commands.base import CommandNotFound, Invocation

BuiltinFunc = Callable[[Invocation], Awaitable[int]]

_builtins: dict[str, BuiltinFunc] = {}
_summaries: dict[str, str] = {}

_F = TypeVar("_F", bound=BuiltinFunc)

_WHITESPACE = frozenset(b" \t\n\r\v\f")


def register_builtin(name: str, summary: str = "") -> Callable[[_F], _F]:
    """Decorator that registers a builtin command under *name*.

    Usage::

        @register_builtin("upper", "uppercase stdin")
        async def _upper(inv):
            ...
    """

    def decorator(func: _F) -> _F:
        if name in _builtins:
            raise ValueError(f"Builtin '{name}' is already registered")
        _builtins[name] = func
        _summaries[name] = summary
        return func

    return decorator


def get_builtin(name: str) -> BuiltinFunc | None:
    return _builtins.get(name)


def builtin_names() -> list[str]:
    return sorted(_builtins)


def builtin_summaries() -> dict[str, str]:
    return {name: _summaries[name] for name in builtin_names()}


class BuiltinRunner:
    """Run registered builtins; anything else is :class:`CommandNotFound`."""

    def has(self, name: str) -> bool:
        return name in _builtins

    async def run(self, invocation: Invocation) -> int:
        func = get_builtin(invocation.name)
        if func is None:
            raise CommandNotFound(invocation.name)
        return await func(invocation)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _iter_stdin(inv: Invocation) -> AsyncIterator[bytes]:
    while True:
        chunk = await inv.read_stdin()
        if not chunk:
            return
        yield chunk
        # Let other stages run even when every read is satisfied immediately.
        await asyncio.sleep(0)


async def _transform(inv: Invocation, func: Callable[[bytes], bytes]) -> int:
    async for chunk in _iter_stdin(inv):
        await inv.stdout.write(func(chunk))
    return 0


def _read_file_chunks(path: Path, size: int) -> list[bytes]:
    chunks = []
    with open(path, "rb") as fh:
        while chunk := fh.read(size):
            chunks.append(chunk)
    return chunks


def _parse_count(args: list[str], default: int) -> int:
    """Parse ``-n N``, ``-nN`` or ``-N``; raises ValueError on anything else."""
    if not args:
        return default
    first = args[0]
    if first == "-n" and len(args) == 2:
        value = args[1]
    elif first.startswith("-n") and len(args) == 1:
        value = first[2:]
    elif first.startswith("-") and len(args) == 1:
        value = first[1:]
    else:
        raise ValueError(f"invalid arguments: {' '.join(args)}")
    count = int(value)
    if count < 0:
        raise ValueError(f"invalid line count: {value}")
    return count


# ---------------------------------------------------------------------------
# Builtins
# ---------------------------------------------------------------------------


@register_builtin("echo", "write arguments to stdout (-n: no trailing newline)")
async def _echo(inv: Invocation) -> int:
    args = inv.args[1:]
    newline = True
    if args and args[0] == "-n":
        newline = False
        args = args[1:]
    text = " ".join(args) + ("\n" if newline else "")
    await inv.stdout.write(text.encode())
    return 0


@register_builtin("cat", "copy files (or stdin) to stdout")
async def _cat(inv: Invocation) -> int:
    paths = inv.args[1:] or ["-"]
    status = 0
    for name in paths:
        if name == "-":
            async for chunk in _iter_stdin(inv):
                await inv.stdout.write(chunk)
            continue
        inv.check_cancelled()
        path = inv.cwd / name
        try:
            chunks = await asyncio.to_thread(_read_file_chunks, path, inv.read_size)
        except OSError as e:
            await inv.print_error(f"{name}: {e.strerror or e}")
            status = 1
            continue
        for chunk in chunks:
            inv.check_cancelled()
            await inv.stdout.write(chunk)
    return status


@register_builtin("head", "copy the first N lines of stdin (-n N, default 10)")
async def _head(inv: Invocation) -> int:
    try:
        remaining = _parse_count(inv.args[1:], 10)
    except ValueError as e:
        await inv.print_error(str(e))
        return 2
    if remaining == 0:
        return 0
    async for chunk in _iter_stdin(inv):
        start = 0
        while remaining and (nl := chunk.find(b"\n", start)) != -1:
            start = nl + 1
            remaining -= 1
        if not remaining:
            await inv.stdout.write(chunk[:start])
            return 0
        await inv.stdout.write(chunk)
    return 0


@register_builtin("wc", "count lines, words and bytes of stdin (-l, -w, -c)")
async def _wc(inv: Invocation) -> int:
    flags = set(inv.args[1:])
    unknown = flags - {"-l", "-w", "-c"}
    if unknown:
        await inv.print_error(f"unknown option: {sorted(unknown)[0]}")
        return 2

    lines = words = size = 0
    in_word = False
    async for chunk in _iter_stdin(inv):
        size += len(chunk)
        lines += chunk.count(b"\n")
        for byte in chunk:
            is_space = byte in _WHITESPACE
            if not is_space and not in_word:
                words += 1
            in_word = not is_space

    counts = []
    if not flags or "-l" in flags:
        counts.append(lines)
    if not flags or "-w" in flags:
        counts.append(words)
    if not flags or "-c" in flags:
        counts.append(size)
    await inv.stdout.write((" ".join(str(c) for c in counts) + "\n").encode())
    return 0


@register_builtin("upper", "uppercase stdin")
async def _upper(inv: Invocation) -> int:
    return await _transform(inv, bytes.upper)


@register_builtin("lower", "lowercase stdin")
async def _lower(inv: Invocation) -> int:
    return await _transform(inv, bytes.lower)


@register_builtin("true", "exit with status 0")
async def _true(inv: Invocation) -> int:
    return 0


@register_builtin("false", "exit with status 1")
async def _false(inv: Invocation) -> int:
    return 1


@register_builtin("help", "list builtin commands")
async def _help(inv: Invocation) -> int:
    summaries = builtin_summaries()
    width = max(len(name) for name in summaries)
    lines = [f"{name.ljust(width)}  {summary}" for name, summary in summaries.items()]
    await inv.stdout.write(("\n".join(lines) + "\n").encode())
    return 0
