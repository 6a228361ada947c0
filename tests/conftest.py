"""Shared fixtures for the city weather service tests."""

import asyncio
import json
import os

# Settings are read at import time; keep tests off real infrastructure.
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("KAFKA_ENABLED", "false")

import httpx
import pytest
from fastapi.testclient import TestClient

from cityweather.cache import CacheManager, get_cache
from cityweather.catalog import CatalogContext, get_catalog, load
from cityweather.config import Settings
from cityweather.kafka_logger import KafkaLogger, get_kafka_logger
from cityweather.main import app
from cityweather.weather_client import WeatherClient, get_weather_client

UPSTREAM_URL = "https://owm.test"
UPSTREAM_KEY = "test-key"


def city(id, name, country="NL", lon=4.89, lat=52.37, **extra):
    return {"id": id, "name": name, "country": country, "coord": {"lon": lon, "lat": lat}, **extra}


@pytest.fixture
def raw_cities():
    return [
        city(2759794, "Amsterdam"),
        city(2759793, "Amsterdam Noord", lon=4.92, lat=52.39),
        city(2747891, "Rotterdam", lon=4.48, lat=51.92),
        city(5106292, "West New York", country="US", lon=-74.01, lat=40.79),
        city(5128581, "New York", country="US", lon=-74.01, lat=40.71),
        city(2643743, "London", country="GB", lon=-0.13, lat=51.51),
        city(6058560, "London", country="CA", lon=-81.23, lat=42.98),
    ]


@pytest.fixture
def catalog_file(tmp_path, raw_cities):
    path = tmp_path / "city.list.json"
    path.write_text(json.dumps(raw_cities), encoding="utf-8")
    return path


@pytest.fixture
def catalog(raw_cities):
    return CatalogContext.from_records(load(raw_cities))


@pytest.fixture
def upstream_settings():
    return Settings(openweather_api_url=UPSTREAM_URL, openweather_api_key=UPSTREAM_KEY)


class UpstreamRecorder:
    """Mock OpenWeatherMap: records requests and answers from ``routes``."""

    def __init__(self):
        self.requests = []
        self.routes = {}

    def add(self, method, path, status_code=200, json=None, error=None):
        self.routes[(method, path)] = (status_code, json, error)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code, body, error = self.routes.get(
            (request.method, request.url.path), (404, {"cod": "404", "message": "not found"}, None)
        )
        if error is not None:
            raise error
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=body)


@pytest.fixture
def upstream():
    return UpstreamRecorder()


@pytest.fixture
def weather_client(upstream_settings, upstream):
    client = WeatherClient(config=upstream_settings, transport=httpx.MockTransport(upstream))
    asyncio.run(client.initialize())
    return client


@pytest.fixture
def kafka():
    return KafkaLogger(topic="test_events")


@pytest.fixture
def cache():
    return CacheManager(max_size=10, ttl=600, redis_url="redis://localhost:6379/0")


@pytest.fixture
def client(catalog, kafka, cache, weather_client):
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_kafka_logger] = lambda: kafka
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_weather_client] = lambda: weather_client
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
