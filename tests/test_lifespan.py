"""Startup and shutdown of the full application."""

import pytest
from fastapi.testclient import TestClient

from cityweather.cache import cache_manager
from cityweather.catalog import DatasetError, catalog_manager
from cityweather.config import ConfigurationError, settings
from cityweather.main import app
from cityweather.weather_client import weather_client

from conftest import UPSTREAM_KEY, UPSTREAM_URL


@pytest.fixture
def configured(monkeypatch, catalog_file):
    monkeypatch.setattr(settings, "openweather_api_url", UPSTREAM_URL)
    monkeypatch.setattr(settings, "openweather_api_key", UPSTREAM_KEY)
    monkeypatch.setattr(settings, "catalog_path", str(catalog_file))
    # Nothing listens on port 1: the cache falls back to local only.
    monkeypatch.setattr(cache_manager.redis_cache, "url", "redis://127.0.0.1:1/0")
    catalog_manager.reset()
    yield
    catalog_manager.reset()


def test_refuses_to_start_without_upstream_settings(monkeypatch):
    monkeypatch.setattr(settings, "openweather_api_key", None)
    with pytest.raises(ConfigurationError, match="OPENWEATHER_API_KEY"):
        with TestClient(app):
            pass
    assert not catalog_manager.is_ready


def test_refuses_to_start_with_missing_catalog(configured, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "catalog_path", str(tmp_path / "missing.json"))
    with pytest.raises(DatasetError):
        with TestClient(app):
            pass
    assert not catalog_manager.is_ready
    assert not weather_client.is_ready


def test_serves_lookups_after_startup(configured):
    with TestClient(app) as client:
        assert catalog_manager.is_ready

        r = client.get("/city", params={"q": "Rotterdam"})
        assert r.status_code == 200
        assert [c["id"] for c in r.json()] == [2747891]

        health = client.get("/health").json()
        assert health["dependencies"]["catalog"] == "healthy"
        assert health["dependencies"]["weather_api"] == "healthy"
        assert health["dependencies"]["redis"] == "unhealthy"
        assert health["status"] == "degraded"

        info = client.get("/info").json()
        assert info["catalog"]["cities"] == 7

    assert not weather_client.is_ready
