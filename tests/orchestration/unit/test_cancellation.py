"""Cancellation token tests."""

from __future__ import annotations

import os
import signal
import threading

from conversion_pipeline.orchestration import CancellationToken, sigint_cancellation


def test_token_starts_uncancelled_and_latches() -> None:
    token = CancellationToken()

    assert token.cancelled is False
    token.cancel()
    token.cancel()
    assert token.cancelled is True


def test_sigint_sets_the_token_and_restores_the_previous_handler() -> None:
    previous = signal.getsignal(signal.SIGINT)

    with sigint_cancellation() as token:
        os.kill(os.getpid(), signal.SIGINT)
        assert token.cancelled is True

    assert signal.getsignal(signal.SIGINT) is previous


def test_second_sigint_reaches_the_previous_handler() -> None:
    received: list[int] = []
    original = signal.signal(signal.SIGINT, lambda signum, frame: received.append(signum))
    try:
        with sigint_cancellation() as token:
            os.kill(os.getpid(), signal.SIGINT)
            os.kill(os.getpid(), signal.SIGINT)
        assert token.cancelled is True
        assert received == [signal.SIGINT]
    finally:
        signal.signal(signal.SIGINT, original)


def test_outside_main_thread_the_token_is_yielded_without_a_handler() -> None:
    results: list[bool] = []
    supplied = CancellationToken()

    def _worker() -> None:
        with sigint_cancellation(supplied) as token:
            results.append(token is supplied)

    thread = threading.Thread(target=_worker)
    thread.start()
    thread.join()

    assert results == [True]
