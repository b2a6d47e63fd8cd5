# Hey future me - SQLite has ONE writer at a time. A sync run writes a mapping
# per track while API requests read and the manual mapping save writes too, so
# "database is locked" does happen. The lock is temporary: wait, retry, done.
#
# USAGE:
#   @with_db_retry(max_attempts=3)
#   async def upsert_track_mapping(self, mapping: TrackMapping) -> None:
#       ...
"""Retry async repository calls that hit a SQLite lock."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

_LOCK_MARKERS = ("locked", "busy")


def is_lock_error(exception: Exception) -> bool:
    """True for the OperationalErrors SQLite raises while another writer holds the lock."""
    if isinstance(exception, OperationalError):
        text = str(exception).lower()
        return any(marker in text for marker in _LOCK_MARKERS)
    return False


def backoff_schedule(
    retries: int, initial_delay: float, max_delay: float, backoff_factor: float
) -> Iterator[float]:
    """Yield the pause before each retry: 0.5s, 1s, 2s, ... capped at max_delay."""
    delay = initial_delay
    for _ in range(retries):
        yield min(delay, max_delay)
        delay *= backoff_factor


def with_db_retry(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    backoff_factor: float = 2.0,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry the decorated coroutine while it fails with a lock error.

    Any other exception, including non-lock OperationalErrors, goes straight
    to the caller. After max_attempts the last lock error is re-raised.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            pauses = backoff_schedule(max_attempts - 1, initial_delay, max_delay, backoff_factor)
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except OperationalError as e:
                    if not is_lock_error(e):
                        raise
                    pause = next(pauses, None)
                    if pause is None:
                        logger.error(
                            "%s: database still locked after %d attempts",
                            func.__qualname__,
                            attempt,
                        )
                        raise
                    logger.warning(
                        "%s: database locked (attempt %d/%d), next try in %.1fs",
                        func.__qualname__,
                        attempt,
                        max_attempts,
                        pause,
                    )
                    await asyncio.sleep(pause)
                    attempt += 1

        return wrapper

    return decorator


__all__ = ["backoff_schedule", "is_lock_error", "with_db_retry"]
