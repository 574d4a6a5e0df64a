"""
Condition polling utility.

Retries a probe until it produces a value or a deadline passes. Only "not
yet" (a ``None`` result) is retried; any exception raised by the probe ends
the wait immediately.
"""

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, TypeVar, Union

from ..errors import InvalidArgument, WaitTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

Predicate = Callable[[], Union[T, None, Awaitable[Union[T, None]]]]


async def wait_for(predicate: Predicate, interval: float, timeout: float) -> T:
    """
    Poll ``predicate`` until it returns something other than None.

    A timeout of 0 probes exactly once without sleeping, which is how
    one-shot "is this already true" checks are expressed.

    The wait is cancellable: cancelling the awaiting task interrupts the
    sleep between probes.

    Args:
        predicate: Sync or async callable returning None while not ready
        interval: Seconds to sleep between probes
        timeout: Seconds after which to give up

    Returns:
        The first non-None value returned by the predicate

    Raises:
        WaitTimeout: If the deadline passes without a result
        InvalidArgument: If interval or timeout is negative, or interval is 0
            with a non-zero timeout
    """
    if interval < 0 or timeout < 0:
        raise InvalidArgument(f"interval and timeout must be non-negative, got {interval=} {timeout=}")
    if timeout > 0 and interval == 0:
        raise InvalidArgument("interval must be positive when waiting with a timeout")

    deadline = time.monotonic() + timeout
    attempts = 0
    while True:
        attempts += 1
        result = predicate()
        if inspect.isawaitable(result):
            result = await result
        if result is not None:
            return result

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        logger.debug(f"Condition not met after {attempts} attempt(s), retrying in {interval}s")
        await asyncio.sleep(min(interval, remaining))

    raise WaitTimeout(f"Condition not met within {timeout}s ({attempts} attempt(s))")
