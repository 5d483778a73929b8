"""Bounded-retry polling against the cluster.

Replaces hardcoded time.sleep() calls with a deadline-bounded loop that tells
"not visible yet" apart from "broken": retryable errors keep the loop going,
anything else fails fast.

Classes:
    PollWaiter: Polling loop with injectable clock and sleep

Functions:
    wait_for: Poll with the default PollWaiter

Example:
    from kube_e2e.polling import wait_for

    wait_for(
        lambda: client.get(handle)["status"].get("phase") == "Ready",
        timeout=30.0,
        retry_interval=1.0,
        description="memcached phase Ready",
    )
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from kube_e2e.config import PollingConfig
from kube_e2e.errors import KindNotRegisteredError, ObjectNotFoundError, PollingTimeoutError

logger = structlog.get_logger(__name__)

# "Not visible yet": keep polling
RETRYABLE_ERRORS: tuple[type[Exception], ...] = (ObjectNotFoundError, KindNotRegisteredError)


class PollWaiter:
    """Repeatedly evaluates a condition until success, timeout, or fatal error.

    The condition is evaluated only at instants strictly before the deadline.
    A condition that would first hold exactly at the deadline is therefore a
    timeout, and a zero timeout always times out without evaluating the
    condition.

    Args:
        clock: Monotonic clock in seconds.
        sleep: Sleep function in seconds.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep

    def wait_for(
        self,
        condition: Callable[[], bool],
        timeout: float,
        retry_interval: float,
        description: str = "condition",
        *,
        retry_on: tuple[type[Exception], ...] = (),
    ) -> None:
        """Poll until condition is True.

        Args:
            condition: Callable returning True when the condition is met.
                Typically performs one cluster read.
            timeout: Maximum wait time in seconds.
            retry_interval: Poll interval in seconds.
            description: Description for log events and error messages.
            retry_on: Extra exception types treated as "try again".

        Raises:
            PollingTimeoutError: If the condition is not met before the
                deadline.
            Exception: Any non-retryable error raised by the condition,
                propagated immediately.
        """
        if retry_interval <= 0:
            msg = f"retry_interval must be positive, got {retry_interval}"
            raise ValueError(msg)

        retryable = RETRYABLE_ERRORS + retry_on
        start_time = self._clock()
        last_error: Exception | None = None
        attempts = 0

        while True:
            elapsed = self._clock() - start_time
            if elapsed >= timeout:
                logger.debug(
                    "poll.timeout",
                    description=description,
                    timeout=timeout,
                    attempts=attempts,
                )
                raise PollingTimeoutError(description, timeout, last_error)

            attempts += 1
            try:
                satisfied = condition()
            except retryable as e:
                last_error = e
                satisfied = False

            if satisfied:
                # A read that returns after the deadline does not count
                if self._clock() - start_time < timeout:
                    logger.debug("poll.satisfied", description=description, attempts=attempts)
                    return
                logger.debug(
                    "poll.timeout",
                    description=description,
                    timeout=timeout,
                    attempts=attempts,
                )
                raise PollingTimeoutError(description, timeout, last_error)

            # Sleep for interval, but don't exceed remaining time
            remaining = timeout - (self._clock() - start_time)
            sleep_time = min(retry_interval, remaining)
            if sleep_time > 0:
                self._sleep(sleep_time)

    def wait_with(self, condition: Callable[[], bool], config: PollingConfig) -> None:
        """Poll using a PollingConfig for timeout, interval and description."""
        self.wait_for(condition, config.timeout, config.interval, config.description)


_default_waiter = PollWaiter()


def wait_for(
    condition: Callable[[], bool],
    timeout: float,
    retry_interval: float,
    description: str = "condition",
    *,
    retry_on: tuple[type[Exception], ...] = (),
) -> None:
    """Poll until condition is True using the real clock.

    See PollWaiter.wait_for.
    """
    _default_waiter.wait_for(
        condition,
        timeout,
        retry_interval,
        description,
        retry_on=retry_on,
    )


__all__ = [
    "RETRYABLE_ERRORS",
    "PollWaiter",
    "wait_for",
]
