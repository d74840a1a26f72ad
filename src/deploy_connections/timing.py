"""Time an operation and report how long it took."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from .observability import log_info

T = TypeVar("T")


def time_operation(callback: Callable[[], T], *, label: str = "operation") -> tuple[T, float]:
    """Run *callback* and return ``(result, elapsed_seconds)`` rounded to 4 decimals.

    Examples
    --------
    >>> result, elapsed = time_operation(lambda: 42)
    >>> result, elapsed >= 0
    (42, True)
    """

    started = time.perf_counter()
    result = callback()
    elapsed = round(time.perf_counter() - started, 4)
    log_info("operation_timed", label=label, seconds=elapsed)
    return result, elapsed
