"""Tests for dependency factories that read settings."""

from riffsync.api.dependencies import get_track_pacer
from riffsync.config import Settings, SyncSettings
from riffsync.infrastructure.rate_limiter import FixedIntervalPacer, TokenBucketPacer


class TestTrackPacer:
    def test_fixed_by_default(self) -> None:
        pacer = get_track_pacer(Settings(sync=SyncSettings(inter_track_delay_seconds=3.0)))

        assert isinstance(pacer, FixedIntervalPacer)
        assert pacer.delay_seconds == 3.0

    def test_token_bucket_refills_one_track_per_delay(self) -> None:
        settings = Settings(
            sync=SyncSettings(inter_track_delay_seconds=4.0, pacing="token_bucket", pacing_burst=3)
        )

        pacer = get_track_pacer(settings)

        assert isinstance(pacer, TokenBucketPacer)
        limiter = pacer._limiter
        assert limiter.name == "track_pacing"
        assert limiter.config.max_tokens == 3
        assert limiter.config.refill_rate == 0.25

    def test_token_bucket_without_delay_does_not_wait(self) -> None:
        settings = Settings(sync=SyncSettings(inter_track_delay_seconds=0, pacing="token_bucket"))

        pacer = get_track_pacer(settings)

        assert isinstance(pacer, FixedIntervalPacer)
        assert pacer.delay_seconds == 0
