"""Bounded polling used by lock acquisition and device boot."""

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


def await_condition(
    predicate: Callable[[], bool],
    interval: float,
    timeout: float,
    ignore_errors: tuple[type[Exception], ...] = (),
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Poll ``predicate`` until it returns True or ``timeout`` elapses.

    The predicate is checked immediately, then after every ``interval``;
    the last sleep is shortened so the final check lands on the deadline.

    Args:
        predicate: Condition to poll
        interval: Seconds to sleep between checks
        timeout: Total budget in seconds
        ignore_errors: Exceptions from the predicate that count as "not yet"
        clock: Monotonic clock (injectable for tests)
        sleep: Sleep function (injectable for tests)

    Returns:
        True if the predicate held before the deadline, False on timeout
    """
    deadline = clock() + timeout
    while True:
        try:
            if predicate():
                return True
        except ignore_errors as e:
            logger.debug(f"Condition check failed, retrying: {e}")
        remaining = deadline - clock()
        if remaining <= 0:
            return False
        sleep(min(interval, remaining))
