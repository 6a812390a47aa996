"""Unit tests for config/settings.py."""

from config.settings import Settings, get_settings


class TestDefaults:
    def test_rate_limit_defaults(self, monkeypatch):
        monkeypatch.delenv("DISCOGS_RATE_LIMIT", raising=False)
        s = Settings(_env_file=None)
        assert s.discogs_rate_limit == 60
        assert s.discogs_max_retries == 3
        assert s.discogs_exhausted_cooldown == 60.0
        assert s.discogs_request_timeout == 10.0

    def test_jitter_defaults(self):
        s = Settings(_env_file=None)
        assert (s.enrichment_jitter_min, s.enrichment_jitter_max) == (0.5, 2.0)

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("DISCOGS_RATE_LIMIT", "25")
        monkeypatch.setenv("DISCOGS_TOKEN", "env-token")
        s = Settings(_env_file=None)
        assert s.discogs_rate_limit == 25
        assert s.discogs_token == "env-token"


class TestOAuthConfigured:
    def test_both_present(self):
        s = Settings(_env_file=None, discogs_consumer_key="ck", discogs_consumer_secret="cs")
        assert s.oauth_configured is True

    def test_secret_missing(self):
        s = Settings(_env_file=None, discogs_consumer_key="ck", discogs_consumer_secret=None)
        assert s.oauth_configured is False


class TestGetSettings:
    def test_returns_settings_instance(self):
        get_settings.cache_clear()
        s = get_settings()
        assert isinstance(s, Settings)

    def test_caches_result(self):
        get_settings.cache_clear()
        s1 = get_settings()
        s2 = get_settings()
        assert s1 is s2
        get_settings.cache_clear()
