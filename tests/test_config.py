"""Tests for settings defaults and environment loading."""

import pytest

from calcengine.config import AppSettings, EngineSettings, WorkerSettings


class TestSettings:
    """Tests for EngineSettings, WorkerSettings and AppSettings."""

    def test_engine_defaults(self) -> None:
        """EngineSettings defaults match the documented thresholds."""
        settings = EngineSettings()
        assert settings.sort_direct_threshold == 100_000
        assert settings.sort_chunk_size == 10_000
        assert settings.default_rsi_period == 14
        assert settings.default_bollinger_period == 20
        assert settings.default_bollinger_std_dev == 2.0

    def test_engine_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """ENGINE_ environment variables override defaults."""
        monkeypatch.setenv("ENGINE_SORT_CHUNK_SIZE", "500")
        assert EngineSettings().sort_chunk_size == 500

    def test_non_positive_chunk_size_rejected(self) -> None:
        """A zero chunk size fails validation."""
        with pytest.raises(ValueError):
            EngineSettings(sort_chunk_size=0)

    @pytest.mark.parametrize(("requested", "expected"), [(0, 1), (3, 3), (64, 8)])
    def test_pool_size_clamped(self, requested: int, expected: int) -> None:
        """Pool size is clamped into 1..8."""
        assert WorkerSettings(pool_size=requested).pool_size == expected

    def test_app_settings_nested_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Double-underscore variables reach nested settings."""
        monkeypatch.setenv("WORKER__TASK_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        settings = AppSettings(_env_file=None)
        assert settings.log_level == "DEBUG"
        assert settings.worker.task_timeout_seconds == 2.5
