"""In-memory byte pipe connecting one stage's output to the next stage's input.

The pipe keeps every chunk it was given and a read cursor pointing at the
last byte handed out. Readers that find nothing to read park an
``asyncio.Future`` in a FIFO queue; each ``write()`` wakes the oldest one,
``close()`` wakes all of them.

Closing does not discard unread data: readers drain the chunks still
buffered and only then get ``b""``. This departs from the stricter contract
where any read after close returns ``b""`` at once, even with data pending.

All methods are coroutines so a pipe can stand in for both an input source
and an output sink, but only :meth:`BytePipe.read` ever suspends.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque

logger = logging.getLogger(__name__)

_NOTHING_READ = (-1, -1)


class Deferred:
    """One-shot completion cell: pending until :meth:`settle`, then settled forever."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def settled(self) -> bool:
        return self._event.is_set()

    def settle(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class BytePipe:
    """Single-producer, single-consumer byte channel with blocking reads."""

    def __init__(self) -> None:
        self._chunks: list[bytes] = []
        # (chunk index, offset) of the last byte returned by read().
        self._cursor: tuple[int, int] = _NOTHING_READ
        self._pending: deque[asyncio.Future[None]] = deque()
        self._writer_closed = Deferred()

    @property
    def closed(self) -> bool:
        return self._writer_closed.settled

    @property
    def pending_reads(self) -> int:
        return sum(1 for f in self._pending if not f.done())

    async def write(self, data: bytes) -> None:
        """Append a copy of *data* and wake the oldest pending reader."""
        if not data:
            return
        if self.closed:
            logger.debug("write of %d bytes after close", len(data))
        self._chunks.append(bytes(data))
        self._wake_one()

    async def read(self, max_len: int) -> bytes:
        """Return up to *max_len* bytes from the current chunk, or ``b""`` at end of stream.

        Suspends while the writer is open and everything written so far has
        been consumed. Never returns bytes from more than one chunk.
        """
        if max_len < 0:
            raise ValueError(f"max_len must be non-negative, got {max_len}")
        if max_len == 0:
            return b""

        while True:
            position = self._next_position()
            if position is not None:
                index, offset = position
                data = self._chunks[index][offset : offset + max_len]
                self._cursor = (index, offset + len(data) - 1)
                return data
            if self.closed:
                return b""

            waiter = asyncio.get_running_loop().create_future()
            self._pending.append(waiter)
            try:
                await waiter
            finally:
                if not waiter.done():
                    waiter.cancel()

    async def close(self) -> None:
        """Mark the writer side finished (idempotent) and wake every pending reader."""
        if not self.closed:
            self._writer_closed.settle()
            while self._pending:
                waiter = self._pending.popleft()
                if not waiter.done():
                    waiter.set_result(None)
        await self._writer_closed.wait()

    def _wake_one(self) -> None:
        while self._pending:
            waiter = self._pending.popleft()
            # Readers cancelled while parked leave a done future behind.
            if not waiter.done():
                waiter.set_result(None)
                return

    def _next_position(self) -> tuple[int, int] | None:
        index, offset = self._cursor
        if (index, offset) == _NOTHING_READ:
            return (0, 0) if self._chunks else None
        if offset + 1 < len(self._chunks[index]):
            return index, offset + 1
        if index == len(self._chunks) - 1:
            return None
        return index + 1, 0
