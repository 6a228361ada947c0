# City Weather Service - Upstream Weather API Client
# Thin async forwarding client for OpenWeatherMap station and weather endpoints

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from cityweather.config import Settings, require_upstream, settings

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Raised when the upstream weather API cannot be reached."""


@dataclass
class UpstreamResponse:
    """Upstream status code and decoded JSON body (None when empty)."""
    status_code: int
    payload: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class WeatherClient:
    """
    Forwards requests to OpenWeatherMap, appending the API key.
    Upstream status codes and bodies are returned unchanged, errors included.
    """

    def __init__(self, config: Settings = None, transport: httpx.AsyncBaseTransport = None):
        self.config = config or settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> None:
        """Open the shared HTTP client. Fails when upstream settings are missing."""
        require_upstream(self.config)
        self._client = httpx.AsyncClient(
            base_url=self.config.openweather_api_url,
            timeout=self.config.upstream_timeout,
            headers={"Content-Type": "application/json"},
            transport=self._transport,
        )
        logger.info(f"🌦️  Weather client ready for {self.config.openweather_api_url}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("🔐 Weather client closed")

    @property
    def is_ready(self) -> bool:
        return self._client is not None

    async def _request(
        self,
        method: str,
        path: str,
        params: Dict[str, Any] = None,
        json: Any = None,
    ) -> UpstreamResponse:
        if self._client is None:
            raise RuntimeError("Weather client not initialized - call initialize() first")

        query = {"appid": self.config.openweather_api_key, **(params or {})}
        try:
            response = await self._client.request(method, path, params=query, json=json)
        except httpx.TimeoutException as e:
            logger.error(f"❌ Upstream timeout on {method} {path}: {e}")
            raise UpstreamError(f"Weather API timed out on {method} /{path}") from e
        except httpx.HTTPError as e:
            logger.error(f"❌ Upstream request failed on {method} {path}: {e}")
            raise UpstreamError(f"Weather API unreachable on {method} /{path}") from e

        if not response.is_success:
            logger.warning(f"Upstream {method} {path} returned {response.status_code}")

        return UpstreamResponse(status_code=response.status_code, payload=_decode(response))

    # =============================================================================
    # STATIONS
    # =============================================================================

    async def list_stations(self) -> UpstreamResponse:
        return await self._request("GET", "data/3.0/stations")

    async def create_station(self, station: Dict[str, Any]) -> UpstreamResponse:
        return await self._request("POST", "data/3.0/stations", json=station)

    async def delete_station(self, station_id: str) -> UpstreamResponse:
        return await self._request("DELETE", f"data/3.0/stations/{station_id}")

    # =============================================================================
    # WEATHER
    # =============================================================================

    async def current_weather(self, city_id: int) -> UpstreamResponse:
        return await self._request("GET", "data/2.5/weather", params={"id": city_id, "units": "metric"})

    async def forecast(self, city_id: int) -> UpstreamResponse:
        """Five day / three hour forecast."""
        return await self._request("GET", "data/2.5/forecast", params={"id": city_id, "units": "metric"})


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return {"message": response.text}


# =============================================================================
# GLOBAL CLIENT INSTANCE
# =============================================================================

weather_client = WeatherClient()


def get_weather_client() -> WeatherClient:
    """FastAPI dependency to get the upstream weather client."""
    return weather_client


async def init_weather_client() -> None:
    await weather_client.initialize()


async def close_weather_client() -> None:
    await weather_client.close()
