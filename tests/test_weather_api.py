"""Tests for the weather and station proxy endpoints."""

import json

import httpx
import pytest

from cityweather.schemas import StationCreateRequest, generated_external_id

from conftest import UPSTREAM_KEY

CURRENT = {
    "coord": {"lon": 4.89, "lat": 52.37},
    "weather": [{"description": "light rain"}],
    "main": {"temp": 11.2, "feels_like": 10.1, "humidity": 87, "pressure": 1011},
    "wind": {"speed": 5.1, "deg": 240, "gust": 9.3},
    "dt": 1700000000,
}

FORECAST = {
    "city": {"coord": {"lat": 52.37, "lon": 4.89}},
    "list": [{"dt": 1700000000, "main": {"temp_min": 8.0, "temp_max": 12.0}, "weather": [{"main": "Rain"}]}],
}


class TestStations:

    def test_create_station_forwards_body(self, client, upstream):
        upstream.add("POST", "/data/3.0/stations", 201, {"ID": "abc123", "name": "Roof", "external_id": "ROOF_TOP"})

        r = client.post("/stations", json={
            "name": "Roof top", "latitude": "52.1", "longitude": 4.3, "altitude": 12,
        })

        assert r.status_code == 201
        assert r.json()["ID"] == "abc123"

        sent = upstream.requests[-1]
        assert sent.url.params["appid"] == UPSTREAM_KEY
        assert json.loads(sent.content) == {
            "name": "Roof top",
            "latitude": 52.1,
            "longitude": 4.3,
            "altitude": 12.0,
            "external_id": "ROOF_TOP",
        }

    def test_create_station_keeps_explicit_external_id(self, client, upstream):
        upstream.add("POST", "/data/3.0/stations", 201, {"ID": "x"})
        client.post("/stations", json={
            "name": "Roof", "latitude": 1, "longitude": 2, "altitude": 3, "external_id": "MY_ID",
        })
        assert json.loads(upstream.requests[-1].content)["external_id"] == "MY_ID"

    @pytest.mark.parametrize("body", [
        {"name": "  ", "latitude": 1, "longitude": 2, "altitude": 3},
        {"name": "x" * 121, "latitude": 1, "longitude": 2, "altitude": 3},
        {"name": "Roof", "longitude": 2, "altitude": 3},
        {"name": "Roof", "latitude": "north", "longitude": 2, "altitude": 3},
    ])
    def test_create_station_validation(self, client, upstream, body):
        r = client.post("/stations", json=body)

        assert r.status_code == 422
        assert r.json()["error_type"] == "validation_error"
        assert upstream.requests == []

    def test_upstream_error_is_relayed(self, client, upstream):
        upstream.add("POST", "/data/3.0/stations", 401, {"cod": 401, "message": "Invalid API key."})

        r = client.post("/stations", json={"name": "Roof", "latitude": 1, "longitude": 2, "altitude": 3})

        assert r.status_code == 401
        assert r.json() == {"cod": 401, "message": "Invalid API key."}

    def test_delete_station(self, client, upstream):
        upstream.add("DELETE", "/data/3.0/stations/abc123", 204)

        r = client.delete("/stations/abc123")

        assert r.status_code == 204
        assert r.content == b""
        assert upstream.requests[-1].url.path == "/data/3.0/stations/abc123"

    def test_delete_unknown_station(self, client):
        r = client.delete("/stations/unknown")
        assert r.status_code == 404
        assert r.json()["cod"] == "404"

    def test_list_stations(self, client, upstream):
        upstream.add("GET", "/data/3.0/stations", 200, [{"id": "abc123", "name": "Roof"}])

        r = client.get("/stations")

        assert r.status_code == 200
        assert r.json() == [{"id": "abc123", "name": "Roof"}]


class TestWeather:

    def test_current_weather(self, client, upstream):
        upstream.add("GET", "/data/2.5/weather", 200, CURRENT)

        r = client.get("/weather/2759794")

        assert r.status_code == 200
        assert r.json() == CURRENT
        params = upstream.requests[-1].url.params
        assert params["id"] == "2759794"
        assert params["units"] == "metric"
        assert params["appid"] == UPSTREAM_KEY

    def test_current_weather_is_cached(self, client, upstream, cache, kafka):
        upstream.add("GET", "/data/2.5/weather", 200, CURRENT)

        first = client.get("/weather/2759794")
        second = client.get("/weather/2759794")

        assert first.json() == second.json() == CURRENT
        assert len(upstream.requests) == 1
        assert cache.local_cache.get_stats()["total_hits"] == 1
        assert kafka.get_metrics()["cache_hits"] == 1

    def test_forecast(self, client, upstream):
        upstream.add("GET", "/data/2.5/forecast", 200, FORECAST)

        r = client.get("/forecast/2759794")

        assert r.status_code == 200
        assert r.json()["list"][0]["main"]["temp_max"] == 12.0

    def test_upstream_failure_is_not_cached(self, client, upstream):
        upstream.add("GET", "/data/2.5/forecast", 404, {"cod": "404", "message": "city not found"})

        assert client.get("/forecast/1").status_code == 404
        assert client.get("/forecast/1").status_code == 404
        assert len(upstream.requests) == 2

    def test_non_numeric_city_id(self, client, upstream):
        r = client.get("/weather/amsterdam")
        assert r.status_code == 422
        assert upstream.requests == []

    def test_unreachable_upstream(self, client, upstream):
        upstream.add("GET", "/data/2.5/weather", error=httpx.ConnectError("connection refused"))

        r = client.get("/weather/2759794")

        assert r.status_code == 502
        assert r.json()["error_type"] == "upstream_error"

    def test_upstream_timeout(self, client, upstream):
        upstream.add("GET", "/data/3.0/stations", error=httpx.ReadTimeout("slow"))

        r = client.get("/stations")

        assert r.status_code == 502
        assert "timed out" in r.json()["detail"]


class TestStationSchema:

    @pytest.mark.parametrize("name, expected", [
        ("Roof top", "ROOF_TOP"),
        ("amsterdam  north\troof", "AMSTERDAM_NORTH_ROOF"),
        ("Single", "SINGLE"),
        ("  Roof top\t", "ROOF_TOP"),
        ("\tsolo \n", "SOLO"),
    ])
    def test_generated_external_id(self, name, expected):
        assert generated_external_id(name) == expected

    def test_model_fills_external_id(self):
        station = StationCreateRequest(name="Roof top", latitude=1, longitude=2, altitude=3)
        assert station.external_id == "ROOF_TOP"
