"""Tests for bounded polling with stall detection."""

from collections.abc import Iterator

import pytest

from riffsync.domain.exceptions import ProviderError
from riffsync.infrastructure.polling import PollPolicy, PollStopReason, poll_until

# Hey future me - nothing here actually sleeps. FakeClock.sleep advances the
# clock, so "30 seconds" of polling runs in microseconds and the timings in the
# assertions are exact.


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class Progress:
    """Feeds a scripted sequence of progress values, repeating the last one."""

    def __init__(self, values: list[float | Exception]) -> None:
        self._values: Iterator[float | Exception] = iter(values)
        self._last = values[-1]
        self.calls = 0

    async def __call__(self) -> float:
        self.calls += 1
        value = next(self._values, self._last)
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy() -> PollPolicy:
    return PollPolicy(interval=1.5, deadline=30.0, stall_deadline=10.0)


class TestPollUntil:
    """Test poll_until stop conditions."""

    @pytest.mark.asyncio
    async def test_done(self, clock: FakeClock, policy: PollPolicy) -> None:
        """Stops on the first done observation."""
        fetch = Progress([10.0, 50.0, 100.0])

        outcome = await poll_until(
            fetch, is_done=lambda p: p >= 100, policy=policy, clock=clock, sleep=clock.sleep
        )

        assert outcome.reason == PollStopReason.DONE
        assert outcome.succeeded
        assert outcome.value == 100.0
        assert outcome.attempts == 3
        assert outcome.elapsed == pytest.approx(4.5)

    @pytest.mark.asyncio
    async def test_sleeps_before_every_attempt(
        self, clock: FakeClock, policy: PollPolicy
    ) -> None:
        fetch = Progress([100.0])

        await poll_until(
            fetch, is_done=lambda p: p >= 100, policy=policy, clock=clock, sleep=clock.sleep
        )

        assert clock.sleeps == [1.5]

    @pytest.mark.asyncio
    async def test_failed(self, clock: FakeClock, policy: PollPolicy) -> None:
        fetch = Progress([5.0, -1.0])

        outcome = await poll_until(
            fetch,
            is_done=lambda p: p >= 100,
            is_failed=lambda p: p < 0,
            policy=policy,
            clock=clock,
            sleep=clock.sleep,
        )

        assert outcome.reason == PollStopReason.FAILED
        assert not outcome.succeeded
        assert outcome.attempts == 2

    @pytest.mark.asyncio
    async def test_stall_without_progress(self, clock: FakeClock, policy: PollPolicy) -> None:
        """Progress stuck at 0 gives up once more than 10s passed: 7th attempt, t=10.5."""
        fetch = Progress([0.0])

        outcome = await poll_until(
            fetch,
            is_done=lambda p: p >= 100,
            is_stalled=lambda p: p == 0,
            policy=policy,
            clock=clock,
            sleep=clock.sleep,
        )

        assert outcome.reason == PollStopReason.STALLED
        assert outcome.attempts == 7
        assert outcome.elapsed == pytest.approx(10.5)

    @pytest.mark.asyncio
    async def test_progress_resets_stall_window(
        self, clock: FakeClock, policy: PollPolicy
    ) -> None:
        """A non-zero observation closes the window; the next zero reopens it."""
        fetch = Progress([0.0, 0.0, 0.0, 0.0, 0.0, 5.0, 0.0])

        outcome = await poll_until(
            fetch,
            is_done=lambda p: p >= 100,
            is_stalled=lambda p: p == 0,
            policy=policy,
            clock=clock,
            sleep=clock.sleep,
        )

        # Window reopens at t=10.5 (attempt 7) and expires past t=20.5.
        assert outcome.reason == PollStopReason.STALLED
        assert outcome.attempts == 14
        assert outcome.elapsed == pytest.approx(21.0)

    @pytest.mark.asyncio
    async def test_timeout(self, clock: FakeClock, policy: PollPolicy) -> None:
        """Slow but steady progress ends at the absolute deadline."""
        fetch = Progress([1.0])

        outcome = await poll_until(
            fetch,
            is_done=lambda p: p >= 100,
            is_stalled=lambda p: p == 0,
            policy=policy,
            clock=clock,
            sleep=clock.sleep,
        )

        assert outcome.reason == PollStopReason.TIMEOUT
        assert outcome.attempts == 20
        assert outcome.elapsed == pytest.approx(30.0)
        assert outcome.value == 1.0

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(
        self, clock: FakeClock, policy: PollPolicy
    ) -> None:
        fetch = Progress([ProviderError("content_fetch", "502"), 100.0])

        outcome = await poll_until(
            fetch,
            is_done=lambda p: p >= 100,
            policy=policy,
            clock=clock,
            sleep=clock.sleep,
            transient_errors=(ProviderError,),
        )

        assert outcome.succeeded
        assert outcome.attempts == 2

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self, clock: FakeClock, policy: PollPolicy) -> None:
        fetch = Progress([RuntimeError("boom")])

        with pytest.raises(RuntimeError, match="boom"):
            await poll_until(
                fetch,
                is_done=lambda p: p >= 100,
                policy=policy,
                clock=clock,
                sleep=clock.sleep,
                transient_errors=(ProviderError,),
            )

    @pytest.mark.asyncio
    async def test_errors_until_deadline_time_out(
        self, clock: FakeClock, policy: PollPolicy
    ) -> None:
        """A provider that never answers still ends at the deadline, value None."""
        fetch = Progress([ProviderError("content_fetch", "down")])

        outcome = await poll_until(
            fetch,
            is_done=lambda p: p >= 100,
            policy=policy,
            clock=clock,
            sleep=clock.sleep,
            transient_errors=(ProviderError,),
        )

        assert outcome.reason == PollStopReason.TIMEOUT
        assert outcome.value is None
