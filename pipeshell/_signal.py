"""Double-Ctrl-C handler that cancels the foreground pipeline."""

from __future__ import annotations

import asyncio
import os
import signal
import sys
from collections.abc import Callable

from pipeshell.cancellation import CancellationToken


def install_cancel_handler(
    token: CancellationToken,
    *,
    loop: asyncio.AbstractEventLoop | None = None,
    on_first_signal: Callable[[], None] | None = None,
) -> Callable[[], None]:
    """Route SIGINT to *token* for the lifetime of one pipeline.

    First signal: calls *on_first_signal* (if given), then cancels *token*.
    Second signal: calls ``os._exit(130)`` immediately.

    Returns a callable that restores the previous SIGINT handling.
    """
    loop = loop or asyncio.get_running_loop()

    def _handler() -> None:
        if token.cancelled:
            print("\nForce shutdown.", file=sys.stderr, flush=True)
            os._exit(130)
        if on_first_signal is not None:
            on_first_signal()
        token.cancel("interrupted")

    try:
        loop.add_signal_handler(signal.SIGINT, _handler)
    except (NotImplementedError, RuntimeError):
        # Windows event loops, or a loop not running in the main thread.
        previous = signal.getsignal(signal.SIGINT)

        def _fallback(signum: int, frame: object) -> None:
            loop.call_soon_threadsafe(_handler)

        try:
            signal.signal(signal.SIGINT, _fallback)
        except ValueError:
            return lambda: None

        def _restore_fallback() -> None:
            signal.signal(signal.SIGINT, previous)

        return _restore_fallback

    def _restore() -> None:
        loop.remove_signal_handler(signal.SIGINT)

    return _restore
