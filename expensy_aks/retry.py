from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
import time
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PollResult(Generic[T]):
    value: T | None
    attempts: int
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return bool(self.value)


def poll(
    probe: Callable[[], T | None],
    *,
    max_attempts: int,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
    cancel: threading.Event | None = None,
    on_attempt: Callable[[int, int], None] | None = None,
) -> PollResult[T]:
    """Call ``probe`` until it returns a truthy value or ``max_attempts`` is spent.

    The wait happens only between empty results, never after the final attempt.
    When ``cancel`` is given, the wait uses ``cancel.wait`` so that setting the
    event stops the loop without waiting out the interval.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if interval < 0:
        raise ValueError("interval must not be negative")

    for attempt in range(1, max_attempts + 1):
        if cancel is not None and cancel.is_set():
            logger.debug("Polling cancelled before attempt %s", attempt)
            return PollResult(value=None, attempts=attempt - 1, cancelled=True)

        value = probe()
        if value:
            return PollResult(value=value, attempts=attempt)

        if attempt == max_attempts:
            break
        if on_attempt is not None:
            on_attempt(attempt, max_attempts)
        if cancel is not None:
            if cancel.wait(interval):
                return PollResult(value=None, attempts=attempt, cancelled=True)
        else:
            sleep(interval)

    return PollResult(value=None, attempts=max_attempts)
