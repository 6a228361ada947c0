"""Tests for settings validation."""

import pytest
from pydantic import ValidationError

from cityweather.config import ConfigurationError, Settings, require_upstream


class TestSettings:

    def test_defaults(self):
        config = Settings(_env_file=None)
        assert config.catalog_path
        assert config.cache_ttl == 600

    def test_log_level_is_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            Settings(environment="moon")

    @pytest.mark.parametrize("value, expected", [
        ("['http://a.test', 'http://b.test']", ["http://a.test", "http://b.test"]),
        ("http://a.test", ["http://a.test"]),
        (["http://c.test"], ["http://c.test"]),
    ])
    def test_cors_origins(self, value, expected):
        assert Settings(cors_origins=value).cors_origins == expected

    def test_upstream_url_trailing_slash(self):
        config = Settings(openweather_api_url="https://api.openweathermap.org/")
        assert config.openweather_api_url == "https://api.openweathermap.org"

    def test_cache_ttl_bounds(self):
        with pytest.raises(ValidationError):
            Settings(cache_ttl=5)


class TestRequireUpstream:

    def test_missing_everything(self):
        config = Settings(openweather_api_url=None, openweather_api_key=None)
        with pytest.raises(ConfigurationError, match="OPENWEATHER_API_URL and OPENWEATHER_API_KEY"):
            require_upstream(config)

    def test_missing_key(self):
        config = Settings(openweather_api_url="https://owm.test", openweather_api_key="")
        with pytest.raises(ConfigurationError, match="OPENWEATHER_API_KEY"):
            require_upstream(config)

    def test_configured(self, upstream_settings):
        require_upstream(upstream_settings)
