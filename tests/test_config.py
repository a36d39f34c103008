"""Tests for environment-driven settings."""

from pathlib import Path

from clicksand.config import DB_PATH, MAX_DELTA_SECONDS, Settings


class TestSettingsFromEnv:
    def test_defaults(self, monkeypatch):
        for name in ("CLICKSAND_DB", "CLICKSAND_PORT", "CLICKSAND_TIMEZONE", "CLICKSAND_MAX_DELTA_SECONDS"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()
        assert settings.db_path == DB_PATH
        assert settings.port == 3000
        assert settings.timezone == "UTC"
        assert settings.max_delta_seconds == MAX_DELTA_SECONDS
        assert settings.browser_time_on_ingest
        assert not settings.video_counts_toward_achievements

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CLICKSAND_DB", str(tmp_path / "x.db"))
        monkeypatch.setenv("CLICKSAND_PORT", "8080")
        monkeypatch.setenv("CLICKSAND_TIMEZONE", "Europe/Berlin")
        monkeypatch.setenv("CLICKSAND_VIDEO_ACHIEVEMENTS", "yes")
        monkeypatch.setenv("CLICKSAND_BROWSER_TIME_ON_INGEST", "0")
        monkeypatch.setenv("CLICKSAND_LOG_LEVEL", "debug")
        settings = Settings.from_env()
        assert settings.db_path == Path(tmp_path / "x.db")
        assert settings.port == 8080
        assert settings.timezone == "Europe/Berlin"
        assert settings.video_counts_toward_achievements
        assert not settings.browser_time_on_ingest
        assert settings.log_level == "DEBUG"

    def test_invalid_numbers_keep_defaults(self, monkeypatch):
        monkeypatch.setenv("CLICKSAND_PORT", "eighty")
        monkeypatch.setenv("CLICKSAND_SAVE_DEBOUNCE_SECONDS", "soon")
        settings = Settings.from_env()
        assert settings.port == 3000
        assert settings.save_debounce_seconds == 2.0

    def test_idle_eviction_window(self, monkeypatch):
        monkeypatch.setenv("CLICKSAND_IDLE_EVICT_SECONDS", "120")
        assert Settings.from_env().idle_evict_seconds == 120.0
        monkeypatch.setenv("CLICKSAND_IDLE_EVICT_SECONDS", "0")
        assert Settings.from_env().idle_evict_seconds == 1.0

    def test_default_rules_are_copied(self):
        first = Settings()
        first.default_rules.pop("youtube.com")
        assert "youtube.com" in Settings().default_rules
