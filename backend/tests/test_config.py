"""
Tests for Settings defaults and environment overrides
"""
from examwatch.core.config import Settings


class TestSettings:

    def test_channel_timing_defaults(self):
        settings = Settings()

        assert settings.heartbeat_interval_seconds == 30
        assert settings.reconnect_delay_seconds == 3
        assert settings.monitor_poll_interval_seconds == 5
        assert settings.max_violation_length == 500

    def test_only_used_knobs_are_declared(self):
        assert "port" not in Settings.model_fields

    def test_database_url_override(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///override.db")

        assert Settings().async_database_url == "sqlite+aiosqlite:///override.db"

    def test_postgres_url_from_parts(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)

        url = Settings(database_url=None).async_database_url

        assert url.startswith("postgresql+asyncpg://")
