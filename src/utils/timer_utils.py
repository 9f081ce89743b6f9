"""Elapsed-time helpers for response timing."""

import time


def start_clock() -> float:
    """Monotonic start mark for elapsed_ms()."""
    return time.monotonic()


def elapsed_ms(start: float) -> float:
    """
    Milliseconds since ``start``.

    Example:
        >>> started = start_clock()
        >>> ...
        >>> response_time = int(elapsed_ms(started))
    """
    return (time.monotonic() - start) * 1000
