"""
Bounded polling with backoff.

Used where another request (or an external adapter) is expected to write
state that we need to read, and storage may lag behind. Polling never runs
indefinitely: after the last attempt the caller gets a :class:`TimedOut`
carrying whatever was read last.
"""

from typing import Any, Callable, NamedTuple, Union
import logging
import time

logger = logging.getLogger(__name__)


class Ok(NamedTuple):
    """The accepted value was observed."""

    value: Any
    attempts: int = 1


class TimedOut(NamedTuple):
    """The attempts ran out. ``value`` is what the final attempt read."""

    value: Any
    attempts: int


Polled = Union[Ok, TimedOut]


def poll(read: Callable[[], Any], accept: Callable[[Any], bool],
         attempts: int = 3, delay: float = 0.2, backoff: float = 1.0,
         sleep: Callable[[float], None] = time.sleep) -> Polled:
    """
    Call ``read`` until ``accept`` approves its result.

    Parameters
    ----------
    read : callable
        Produces the current value. Exceptions propagate.
    accept : callable
        Predicate on the value returned by ``read``.
    attempts : int
        Maximum number of calls to ``read``. Must be at least 1.
    delay : float
        Seconds to wait before the second attempt.
    backoff : float
        Multiplier applied to ``delay`` after each wait. ``1.0`` gives a
        fixed schedule.
    sleep : callable
        Used to wait between attempts.

    Returns
    -------
    :class:`Ok` or :class:`TimedOut`

    """
    if attempts < 1:
        raise ValueError('attempts must be at least 1')
    value = read()
    for attempt in range(1, attempts + 1):
        if accept(value):
            return Ok(value, attempt)
        if attempt == attempts:
            break
        logger.debug('Poll attempt %i not accepted, waiting %.3fs',
                     attempt, delay)
        sleep(delay)
        delay *= backoff
        value = read()
    logger.debug('Gave up polling after %i attempts', attempts)
    return TimedOut(value, attempts)
