"""Bounded polling with stall detection.

Hey future me - every "ask again until it's ready" loop against a provider goes
through poll_until(). It stops on the first of:
- is_done(value)                       -> DONE
- is_failed(value)                     -> FAILED
- is_stalled(value) for > stall_deadline consecutive seconds -> STALLED
- deadline elapsed                     -> TIMEOUT

The stall window opens at poll start and resets whenever an observation is not
stalled. Transient errors from fetch() are logged and the loop keeps going; they
neither open nor close the stall window.

clock/sleep are injectable so tests can drive time without waiting.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PollStopReason(str, Enum):
    """Why a poll loop ended."""

    DONE = "done"
    FAILED = "failed"
    STALLED = "stalled"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class PollPolicy:
    """Timing parameters of a poll loop (seconds)."""

    interval: float = 1.5
    deadline: float = 30.0
    stall_deadline: float = 10.0


@dataclass(frozen=True)
class PollOutcome(Generic[T]):
    """Result of poll_until()."""

    reason: PollStopReason
    value: T | None
    elapsed: float
    attempts: int

    @property
    def succeeded(self) -> bool:
        return self.reason == PollStopReason.DONE


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    *,
    is_done: Callable[[T], bool],
    is_failed: Callable[[T], bool] = lambda _value: False,
    is_stalled: Callable[[T], bool] = lambda _value: False,
    policy: PollPolicy | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    transient_errors: tuple[type[Exception], ...] = (Exception,),
    label: str = "poll",
) -> PollOutcome[T]:
    """Call ``fetch`` every ``policy.interval`` seconds until a stop condition.

    Args:
        fetch: Coroutine factory returning the current provider state
        is_done: Success predicate
        is_failed: Terminal failure predicate
        is_stalled: "No progress" predicate used for stall detection
        policy: Interval, absolute deadline and stall deadline
        clock: Monotonic clock in seconds
        sleep: Awaitable sleep
        transient_errors: Exceptions from fetch() that are logged and retried
        label: Name used in log lines

    Returns:
        PollOutcome with the stop reason and the last observed value
    """
    policy = policy or PollPolicy()
    start = clock()
    stall_started: float | None = start
    attempts = 0
    last: T | None = None

    while True:
        elapsed = clock() - start
        if elapsed >= policy.deadline:
            logger.info(f"{label}: timed out after {elapsed:.1f}s ({attempts} attempts)")
            return PollOutcome(PollStopReason.TIMEOUT, last, elapsed, attempts)

        await sleep(policy.interval)
        attempts += 1

        try:
            value = await fetch()
        except transient_errors as e:
            logger.warning(f"{label}: attempt {attempts} failed: {e}")
            continue

        last = value
        now = clock()

        if is_done(value):
            return PollOutcome(PollStopReason.DONE, value, now - start, attempts)
        if is_failed(value):
            return PollOutcome(PollStopReason.FAILED, value, now - start, attempts)

        if is_stalled(value):
            if stall_started is None:
                stall_started = now
            if now - stall_started > policy.stall_deadline:
                logger.info(
                    f"{label}: no progress for {now - stall_started:.1f}s, giving up"
                )
                return PollOutcome(PollStopReason.STALLED, value, now - start, attempts)
        else:
            stall_started = None


__all__ = ["PollStopReason", "PollPolicy", "PollOutcome", "poll_until"]
