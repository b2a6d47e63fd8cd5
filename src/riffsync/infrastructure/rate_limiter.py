"""
Rate limiting for provider calls and sync pacing.

Two layers:
- RateLimiter: token bucket with adaptive backoff on 429, one per provider
  client. Every HTTP request acquires a token.
- Pacers (ITrackPacer): the per-track backpressure policy of an album sync.
  FixedIntervalPacer waits a fixed delay before every track after the first;
  TokenBucketPacer spends one RateLimiter token per track.

USAGE:
    limiter = RateLimiter.for_content_fetch(max_requests_per_second=1.0, burst=2)

    async with limiter:
        response = await client.post(url, json=body)

    # On 429:
    await limiter.handle_rate_limit_response(retry_after)

    pacer = FixedIntervalPacer(delay_seconds=2.0)
    for index, track in enumerate(tracks):
        await pacer.wait_turn(index)
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from riffsync.domain.ports import ITrackPacer

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RateLimiterConfig:
    """Bucket size, refill speed and the 429 backoff curve of one provider."""

    max_tokens: int = 2
    refill_rate: float = 1.0  # tokens per second
    max_backoff_seconds: float = 120.0
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


class RateLimiter:
    """Token bucket rate limiter with adaptive backoff.

    acquire() reserves a token even when the bucket is empty and then sleeps
    off the debt outside the lock, so concurrent callers queue in arrival
    order instead of racing for the next refill.

    Use it as an async context manager; a clean exit resets the backoff.
    """

    def __init__(self, config: RateLimiterConfig | None = None, name: str = "default") -> None:
        self.config = config or RateLimiterConfig()
        self._name = name
        self._tokens = float(self.config.max_tokens)
        self._stamp = time.monotonic()
        self._current_backoff = self.config.initial_backoff_seconds
        self._lock = asyncio.Lock()

    @classmethod
    def for_content_fetch(
        cls, max_requests_per_second: float = 1.0, burst: int = 2
    ) -> "RateLimiter":
        """Limiter for the debrid gateway.

        Hey future me - the debrid API hands out 429s quickly when a whole album
        is selected file by file. Keep the sustained rate low.
        """
        config = RateLimiterConfig(
            max_tokens=burst,
            refill_rate=max_requests_per_second,
            initial_backoff_seconds=2.0,
        )
        return cls(config, name="content_fetch")

    @classmethod
    def for_media_search(cls) -> "RateLimiter":
        """Limiter for Piped instances (public, shared, fragile)."""
        return cls(
            RateLimiterConfig(max_tokens=3, max_backoff_seconds=30.0),
            name="media_search",
        )

    @classmethod
    def for_track_pacing(cls, delay_seconds: float, burst: int = 1) -> "RateLimiter":
        """Limiter spending one token per synced track, refilled every ``delay_seconds``."""
        return cls(
            RateLimiterConfig(max_tokens=burst, refill_rate=1.0 / delay_seconds),
            name="track_pacing",
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def available_tokens(self) -> float:
        """Tokens in the bucket right now; negative while callers are queued."""
        self._top_up()
        return self._tokens

    def _top_up(self) -> None:
        now = time.monotonic()
        earned = (now - self._stamp) * self.config.refill_rate
        self._stamp = now
        if earned > 0:
            self._tokens = min(float(self.config.max_tokens), self._tokens + earned)

    def _escalate_backoff(self, retry_after: float | None) -> float:
        """Pick the wait for this 429 and move the backoff one step up."""
        cap = self.config.max_backoff_seconds
        level = self._current_backoff
        wait = level if retry_after is None else float(retry_after)
        self._current_backoff = min(level * self.config.backoff_multiplier, cap)
        return min(wait, cap)

    async def acquire(self) -> None:
        """Take one token, sleeping until it is actually earned."""
        async with self._lock:
            self._top_up()
            self._tokens -= 1.0
            debt = -self._tokens
            remaining = self._tokens

        if debt <= 0:
            logger.debug(f"RateLimiter[{self._name}]: token granted, {remaining:.1f} left")
            return

        delay = debt / self.config.refill_rate
        logger.debug(f"RateLimiter[{self._name}]: bucket empty, queued for {delay:.2f}s")
        await asyncio.sleep(delay)

    async def handle_rate_limit_response(self, retry_after: float | None = None) -> float:
        """Back off after a 429.

        Args:
            retry_after: Retry-After header value in seconds, if the provider sent one

        Returns:
            The number of seconds actually waited
        """
        async with self._lock:
            level = self._current_backoff
            wait = self._escalate_backoff(retry_after)
            # Empty bucket so callers arriving during the pause queue behind it
            self._tokens = min(self._tokens, 0.0)

        logger.warning(
            f"RateLimiter[{self._name}]: provider answered 429, pausing {wait:.1f}s "
            f"(backoff was {level:.1f}s)"
        )
        await asyncio.sleep(wait)
        return wait

    def reset_backoff(self) -> None:
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        if exc_type is None:
            self.reset_backoff()


class FixedIntervalPacer(ITrackPacer):
    """Fixed delay before every track after the first."""

    def __init__(self, delay_seconds: float = 2.0, sleep: SleepFunc | None = None) -> None:
        self._delay = delay_seconds
        self._sleep = sleep or asyncio.sleep

    @property
    def delay_seconds(self) -> float:
        return self._delay

    async def wait_turn(self, index: int) -> None:
        if index == 0 or self._delay <= 0:
            return
        logger.debug(f"Pacing: waiting {self._delay:.1f}s before track #{index + 1}")
        await self._sleep(self._delay)


class TokenBucketPacer(ITrackPacer):
    """One RateLimiter token per track; bursts are allowed up to the bucket size."""

    def __init__(self, limiter: RateLimiter) -> None:
        self._limiter = limiter

    async def wait_turn(self, index: int) -> None:
        await self._limiter.acquire()


__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
    "FixedIntervalPacer",
    "TokenBucketPacer",
]
