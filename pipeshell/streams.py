"""Stage endpoints: input sources, output sinks, and redirect targets."""

from __future__ import annotations

import asyncio
import os
import sys
from typing import TYPE_CHECKING, BinaryIO, Protocol, runtime_checkable

from pipeshell._log import get_logger

if TYPE_CHECKING:
    from pipeshell.context import ExecutionContext
    from pipeshell.pipeline.schema import Redirect

logger = get_logger("streams")


@runtime_checkable
class InputSource(Protocol):
    async def read(self, max_len: int) -> bytes: ...


@runtime_checkable
class OutputSink(Protocol):
    async def write(self, data: bytes) -> None: ...

    async def close(self) -> None: ...


class StreamSource:
    """Read from a binary stream (default: the process's stdin).

    A terminal is polled with ``loop.add_reader`` so an abandoned read is
    dropped as soon as its stage ends; anything else is read with ``read1``
    in a worker thread.
    """

    def __init__(self, stream: BinaryIO | None = None) -> None:
        self._stream = stream

    async def read(self, max_len: int) -> bytes:
        if max_len == 0:
            return b""
        stream = self._stream if self._stream is not None else sys.stdin.buffer
        fd = _tty_fileno(stream)
        if fd is not None:
            try:
                return await _read_fd(fd, max_len)
            except NotImplementedError:
                pass
        reader = getattr(stream, "read1", stream.read)
        return await asyncio.to_thread(reader, max_len)


def _tty_fileno(stream: BinaryIO) -> int | None:
    try:
        return stream.fileno() if stream.isatty() else None
    except (AttributeError, OSError, ValueError):
        return None


async def _read_fd(fd: int, max_len: int) -> bytes:
    loop = asyncio.get_running_loop()
    ready: asyncio.Future[bytes] = loop.create_future()

    def _on_readable() -> None:
        if ready.done():
            return
        try:
            ready.set_result(os.read(fd, max_len))
        except OSError as e:
            ready.set_exception(e)

    loop.add_reader(fd, _on_readable)
    try:
        return await ready
    finally:
        loop.remove_reader(fd)


class StreamSink:
    """Write to a binary stream (default: stdout, or stderr with ``error=True``).

    The default stream is looked up on every write so that redirected
    ``sys.stdout`` objects (test runners, Rich consoles) are honoured.
    Closing never closes the underlying stream.
    """

    def __init__(self, stream: BinaryIO | None = None, *, error: bool = False) -> None:
        self._stream = stream
        self._error = error

    def _target(self) -> BinaryIO:
        if self._stream is not None:
            return self._stream
        text = sys.stderr if self._error else sys.stdout
        # Text written through the wrapper must land before our bytes.
        text.flush()
        return text.buffer

    async def write(self, data: bytes) -> None:
        if not data:
            return
        target = self._target()
        target.write(data)
        target.flush()

    async def close(self) -> None:
        pass


class FileSink:
    """Output sink backed by an open file; writes and close run in a worker thread."""

    def __init__(self, fh: BinaryIO, path: str = "") -> None:
        self._fh = fh
        self.path = path or getattr(fh, "name", "")

    @property
    def closed(self) -> bool:
        return self._fh.closed

    async def write(self, data: bytes) -> None:
        if data:
            await asyncio.to_thread(self._fh.write, data)

    async def close(self) -> None:
        if not self._fh.closed:
            await asyncio.to_thread(self._fh.close)


async def open_redirect(redirect: Redirect, context: ExecutionContext) -> FileSink:
    """Open the file named by *redirect*, relative to the context's working directory.

    ``truncate`` empties an existing file; ``append`` keeps its contents and
    positions writes at the end.
    """
    from pipeshell.pipeline.errors import RedirectError

    path = context.resolve_path(redirect.path)
    mode = "ab" if redirect.mode == "append" else "wb"
    try:
        fh = await asyncio.to_thread(open, path, mode)
    except OSError as e:
        raise RedirectError(f"cannot open {redirect.path}: {e.strerror or e}") from e
    logger.debug("redirect %s -> %s (%s)", redirect.path, path, redirect.mode)
    return FileSink(fh, str(path))
