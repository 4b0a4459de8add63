"""Bounded polling over a single cancellable timer."""

import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from authdeploy.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CancellableTimer:
    """Sleeps on a threading.Event so a wait can be cut short.

    One timer is shared by every wait in a pipeline run; cancelling it
    ends the current wait and makes later waits return immediately.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep for the given seconds.

        Returns:
            True if the timer was cancelled during or before the wait
        """
        if seconds <= 0:
            return self.cancelled
        return self._event.wait(seconds)

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()


@dataclass
class PollResult(Generic[T]):
    """Outcome of a poll_until call."""

    satisfied: bool
    value: T | None = None
    attempts: int = 0
    elapsed: float = 0.0
    cancelled: bool = False


def poll_until(
    condition: Callable[[], T | None],
    timeout: float,
    interval: float,
    timer: CancellableTimer | None = None,
    on_attempt: Callable[[int, int, Any], None] | None = None,
    description: str = "condition",
) -> PollResult[T]:
    """Evaluate ``condition`` until it returns a truthy value.

    The condition is checked ``ceil(timeout / interval)`` times (at least
    once) with ``interval`` seconds between checks. There is no sleep
    after the final check.

    Args:
        condition: Callable returning a truthy value once satisfied
        timeout: Total time budget in seconds
        interval: Seconds between checks
        timer: Timer to sleep on; a fresh one is used if omitted
        on_attempt: Called as ``(attempt, attempts, value)`` after each
            unsatisfied check, before sleeping
        description: Used in log messages

    Returns:
        PollResult with the last value seen
    """
    timer = timer or CancellableTimer()
    attempts = max(1, math.ceil(timeout / interval)) if interval > 0 else 1
    started = time.monotonic()
    value: T | None = None

    for attempt in range(1, attempts + 1):
        value = condition()
        if value:
            logger.debug("Poll satisfied", what=description, attempt=attempt)
            return PollResult(
                satisfied=True,
                value=value,
                attempts=attempt,
                elapsed=time.monotonic() - started,
            )

        if on_attempt:
            on_attempt(attempt, attempts, value)

        if attempt < attempts and timer.wait(interval):
            logger.info("Poll cancelled", what=description, attempt=attempt)
            return PollResult(
                satisfied=False,
                value=value,
                attempts=attempt,
                elapsed=time.monotonic() - started,
                cancelled=True,
            )

    logger.info("Poll exhausted", what=description, attempts=attempts)
    return PollResult(
        satisfied=False,
        value=value,
        attempts=attempts,
        elapsed=time.monotonic() - started,
    )
