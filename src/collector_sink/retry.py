"""Deadline-bounded polling with backoff."""

from __future__ import annotations

import time
from typing import Callable

from .errors import StreamTimeoutError


def backoff_delay(attempt: int, *, base_delay_seconds: float, max_delay_seconds: float) -> float:
    return min(base_delay_seconds * (2 ** (attempt - 1)), max_delay_seconds)


def poll_until(
    check: Callable[[float], bool],
    *,
    timeout_seconds: float,
    interval_seconds: float,
    max_interval_seconds: float,
    on_wait: Callable[[int, float], None] | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Call ``check(remaining_seconds)`` until it returns True or the deadline passes.

    ``check`` receives the time left before the deadline and must not block
    longer than that. The sleep between attempts doubles from
    ``interval_seconds`` up to ``max_interval_seconds`` and is clipped to the
    deadline; no check starts once the deadline has passed. Returns the number
    of checks made; raises ``StreamTimeoutError`` on expiry.
    """
    deadline = clock() + timeout_seconds
    attempt = 0
    while True:
        remaining = deadline - clock()
        if remaining <= 0:
            raise StreamTimeoutError("WAIT_TIMEOUT", f"attempts={attempt} timeout={timeout_seconds}s")
        attempt += 1
        if check(remaining):
            return attempt
        remaining = deadline - clock()
        if remaining <= 0:
            raise StreamTimeoutError("WAIT_TIMEOUT", f"attempts={attempt} timeout={timeout_seconds}s")
        delay = backoff_delay(
            attempt,
            base_delay_seconds=interval_seconds,
            max_delay_seconds=max_interval_seconds,
        )
        delay = min(delay, remaining)
        if on_wait:
            on_wait(attempt, delay)
        sleep(delay)
