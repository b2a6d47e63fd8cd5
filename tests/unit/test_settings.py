"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from riffsync.config import Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        monkeypatch.chdir(tmp_path)
        settings = Settings()

        assert settings.sync.inter_track_delay_seconds == 2.0
        assert settings.sync.poll_interval_seconds == 1.5
        assert settings.sync.poll_max_wait_seconds == 30.0
        assert settings.sync.stall_timeout_seconds == 10.0
        assert settings.sync.fallback_enabled is True
        assert settings.sync.pacing == "fixed"
        assert settings.content_fetch.base_url == ""
        assert settings.database.url.startswith("sqlite+aiosqlite://")

    def test_nested_env_override(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("RIFFSYNC_SYNC__INTER_TRACK_DELAY_SECONDS", "3.5")
        monkeypatch.setenv("RIFFSYNC_CONTENT_FETCH__BASE_URL", "https://gateway.test/api")
        monkeypatch.setenv("RIFFSYNC_LOG_LEVEL", "debug")
        monkeypatch.setenv("RIFFSYNC_SYNC__PACING", "token_bucket")

        settings = Settings()

        assert settings.sync.inter_track_delay_seconds == 3.5
        assert settings.content_fetch.base_url == "https://gateway.test/api"
        assert settings.log_level == "DEBUG"
        assert settings.sync.pacing == "token_bucket"

    def test_rejects_invalid_values(self, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("RIFFSYNC_SYNC__BUNDLE_COVERAGE_RATIO", "1.5")

        with pytest.raises(ValidationError):
            Settings()

    def test_get_settings_is_cached(self) -> None:
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
