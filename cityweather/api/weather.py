# City Weather Service - Weather Proxy Endpoints
# Station CRUD and weather reads forwarded to OpenWeatherMap

import logging
import time

from fastapi import APIRouter, Depends, Path, Response
from fastapi.responses import JSONResponse

from cityweather.cache import CacheManager, generate_cache_key, get_cache
from cityweather.kafka_logger import KafkaLogger, get_kafka_logger
from cityweather.schemas import StationCreateRequest
from cityweather.weather_client import UpstreamResponse, WeatherClient, get_weather_client

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _relay(upstream: UpstreamResponse) -> Response:
    """Mirror the upstream status and body."""
    if upstream.payload is None:
        return Response(status_code=upstream.status_code)
    return JSONResponse(status_code=upstream.status_code, content=upstream.payload)


async def _cached_read(kind: str, city_id: int, fetch, cache: CacheManager, kafka: KafkaLogger) -> Response:
    start_time = time.time()
    cache_key = generate_cache_key(kind, city_id)

    cached = await cache.get(cache_key)
    if cached is not None:
        kafka.log_request(kind, str(city_id), time.time() - start_time, status_code=200, cache_hit=True)
        return JSONResponse(status_code=200, content=cached)

    upstream = await fetch(city_id)
    if upstream.ok and upstream.payload is not None:
        await cache.set(cache_key, upstream.payload)

    kafka.log_request(kind, str(city_id), time.time() - start_time, status_code=upstream.status_code, cache_hit=False)
    return _relay(upstream)


# =============================================================================
# STATIONS
# =============================================================================

@router.get("/stations")
async def list_stations(client: WeatherClient = Depends(get_weather_client)):
    """List the custom weather stations registered upstream."""
    return _relay(await client.list_stations())


@router.post("/stations")
async def create_station(
    station: StationCreateRequest,
    client: WeatherClient = Depends(get_weather_client),
):
    """Register a weather station; the upstream response is returned as is."""
    upstream = await client.create_station(station.model_dump())
    if upstream.ok:
        logger.info(f"Station created: {station.external_id}")
    return _relay(upstream)


@router.delete("/stations/{station_id}")
async def delete_station(
    station_id: str = Path(..., min_length=1),
    client: WeatherClient = Depends(get_weather_client),
):
    upstream = await client.delete_station(station_id)
    if upstream.ok:
        logger.info(f"Station deleted: {station_id}")
    return _relay(upstream)


# =============================================================================
# WEATHER
# =============================================================================

@router.get("/weather/{city_id}")
async def current_weather(
    city_id: int,
    client: WeatherClient = Depends(get_weather_client),
    cache: CacheManager = Depends(get_cache),
    kafka: KafkaLogger = Depends(get_kafka_logger),
):
    """Current conditions for a catalog city id, metric units."""
    return await _cached_read("weather", city_id, client.current_weather, cache, kafka)


@router.get("/forecast/{city_id}")
async def forecast(
    city_id: int,
    client: WeatherClient = Depends(get_weather_client),
    cache: CacheManager = Depends(get_cache),
    kafka: KafkaLogger = Depends(get_kafka_logger),
):
    """Five day forecast in three hour steps for a catalog city id."""
    return await _cached_read("forecast", city_id, client.forecast, cache, kafka)
