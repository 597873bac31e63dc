"""Cooperative cancellation shared by every stage of one pipeline."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """Pipeline-wide request to stop.

    Purely advisory: command runners poll :attr:`cancelled` or await
    :meth:`wait`; nothing is interrupted by the token itself.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
