from pathlib import Path

import pytest

from wikicache.config import Settings, get_settings, reset_settings


class TestSettings:
    """Test Settings class field defaults and computed properties."""

    def test_default_endpoints(self):
        s = Settings(_env_file=None)
        assert s.wiki_api_url == "https://en.wikipedia.org/w/api.php"
        assert s.wiki_rest_url == "https://en.wikipedia.org/api/rest_v1"
        assert s.wiki_article_url == "https://en.wikipedia.org/wiki"
        assert s.http_timeout == 10.0

    def test_endpoint_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WIKI_API_URL", "https://de.wikipedia.org/w/api.php")
        s = Settings(_env_file=None)
        assert s.wiki_api_url == "https://de.wikipedia.org/w/api.php"

    def test_cache_defaults(self):
        s = Settings(_env_file=None)
        assert s.cache_durable_mirror is False
        assert s.cache_sweep_interval == 60.0

    def test_cache_settings_from_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CACHE_DURABLE_MIRROR", "true")
        monkeypatch.setenv("CACHE_SWEEP_INTERVAL", "15")
        s = Settings(_env_file=None)
        assert s.cache_durable_mirror is True
        assert s.cache_sweep_interval == 15.0

    def test_default_data_dir(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("DATA_DIR", raising=False)
        s = Settings(_env_file=None)
        # Project-relative, not CWD-relative
        expected = Path(__file__).resolve().parent.parent / "data"
        assert s.data_dir == expected

    def test_custom_data_dir(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DATA_DIR", "/tmp/custom")
        s = Settings()
        assert s.data_dir == Path("/tmp/custom")

    def test_default_log_level(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        s = Settings(_env_file=None)
        assert s.log_level == "INFO"

    def test_custom_log_level(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        s = Settings()
        assert s.log_level == "DEBUG"

    def test_cache_db_path_computed(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DATA_DIR", "/srv/data")
        s = Settings()
        assert s.cache_db_path == Path("/srv/data/cache.db")

    def test_transport_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("MCP_TRANSPORT", raising=False)
        s = Settings(_env_file=None)
        assert s.mcp_transport == "stdio"
        assert s.mcp_port == 8000


class TestGetSettings:
    """Test the lazy singleton get_settings / reset_settings."""

    def setup_method(self):
        reset_settings()

    def teardown_method(self):
        reset_settings()

    def test_get_settings_returns_settings(self):
        assert isinstance(get_settings(), Settings)

    def test_get_settings_is_singleton(self):
        s1 = get_settings()
        s2 = get_settings()
        assert s1 is s2

    def test_reset_settings_clears_cache(self):
        s1 = get_settings()
        reset_settings()
        s2 = get_settings()
        assert s1 is not s2
