"""Unit tests for settings loading."""

from wakawars.config import Settings, get_settings


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.sync_batch_size == 9
        assert settings.wakatime_cache_ttl_seconds == 120
        assert settings.weekend_days == [4, 5, 6]
        assert settings.daily_rank_rewards == {1: 3, 2: 2, 3: 1}

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("WW_SYNC_BATCH_SIZE", "5")
        monkeypatch.setenv("WW_DAILY_RANK_REWARDS", '{"1": 10}')
        settings = Settings(_env_file=None)
        assert settings.sync_batch_size == 5
        assert settings.daily_rank_rewards == {1: 10}

    def test_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()
