"""Cooperative cancellation shared by the orchestrator and the merge session."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class CancellationToken:
    """Flag checked between units of work; setting it never interrupts one."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@contextmanager
def sigint_cancellation(token: CancellationToken | None = None) -> Iterator[CancellationToken]:
    """Route SIGINT to `token` for the duration of the block.

    A second SIGINT falls back to the previous handler. Outside the main thread
    signal handlers cannot be installed and the token is yielded unchanged.
    """
    token = token or CancellationToken()
    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    previous_handler = signal.getsignal(signal.SIGINT)

    def _handle_interrupt(signum, frame):
        if token.cancelled and callable(previous_handler):
            previous_handler(signum, frame)
            return
        logger.warning("interrupt received; stopping after the current unit of work")
        token.cancel()

    signal.signal(signal.SIGINT, _handle_interrupt)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous_handler)
