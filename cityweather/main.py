# cityweather/main.py

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cityweather.api.cities import router as cities_router
from cityweather.api.weather import router as weather_router
from cityweather.cache import cache_manager, close_cache, init_cache
from cityweather.catalog import catalog_manager, init_catalog
from cityweather.config import settings, validate_configuration
from cityweather.kafka_logger import close_kafka, init_kafka, kafka_logger
from cityweather.schemas import HealthResponse
from cityweather.weather_client import (
    UpstreamError,
    close_weather_client,
    init_weather_client,
    weather_client,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Application startup time
app_start_time = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the catalog and open service connections before serving."""
    logger.info("🚀 Starting City Weather Service...")

    try:
        validate_configuration()

        logger.info("🌦️  Initializing weather client...")
        await init_weather_client()

        # The index must be complete before the first request is accepted.
        logger.info("🏙️  Building city catalog...")
        init_catalog(settings.catalog_path)
        logger.info("✅ City catalog ready")

        logger.info("🗄️  Initializing cache...")
        await init_cache()
        logger.info("✅ Cache initialized")

        logger.info("📨 Initializing Kafka...")
        await init_kafka()

        kafka_logger.log_system_event(
            "system_startup",
            "City Weather Service started",
            {"version": settings.app_version, "cities": len(catalog_manager.context)},
        )
        logger.info("🎉 City Weather Service started successfully")

    except Exception as e:
        logger.error(f"❌ Failed to start application: {e}")
        logger.error("💥 Application startup failed")
        await close_weather_client()
        raise

    yield

    logger.info("🛑 Shutting down City Weather Service...")

    try:
        kafka_logger.log_system_event(
            "system_shutdown",
            "City Weather Service shutting down",
            {"total_requests_processed": kafka_logger.total_requests},
        )
        await close_kafka()
        await close_cache()
        await close_weather_client()
        logger.info("🎯 City Weather Service shutdown complete")

    except Exception as e:
        logger.error(f"❌ Error during shutdown: {e}")


app = FastAPI(
    title=settings.project_name,
    version=settings.app_version,
    description="City name autocomplete over the OpenWeatherMap city list, plus a weather and station proxy",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests"""
    start_time = time.time()

    response = await call_next(request)

    response_time = time.time() - start_time
    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Time: {response_time:.4f}s"
    )

    return response


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error_data = {"detail": exc.detail, "error_type": "http_exception"}
    return JSONResponse(status_code=exc.status_code, content=error_data)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    error_data = {
        "detail": "Validation error",
        "error_type": "validation_error",
        "field_errors": jsonable_errors(exc),
    }
    return JSONResponse(status_code=422, content=error_data)


@app.exception_handler(UpstreamError)
async def upstream_exception_handler(request: Request, exc: UpstreamError):
    error_data = {"detail": str(exc), "error_type": "upstream_error"}
    return JSONResponse(status_code=502, content=error_data)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    error_data = {"detail": "Internal server error", "error_type": "general_exception"}
    return JSONResponse(status_code=500, content=error_data)


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without the non-serializable ``ctx``/``input`` members."""
    return [
        {key: value for key, value in error.items() if key in ("type", "loc", "msg")}
        for error in exc.errors()
    ]


@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.project_name}",
        "version": settings.app_version,
        "documentation": "/docs",
        "health": "/health",
        "city_lookup": "/city?q=",
    }


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check that verifies the catalog and service dependencies"""
    try:
        start_time = time.time()

        catalog_health = catalog_manager.is_ready
        cache_health = await cache_manager.health_check()
        kafka_health = kafka_logger.is_healthy()
        upstream_health = weather_client.is_ready

        response_time_ms = (time.time() - start_time) * 1000

        # The catalog is the only hard requirement for lookups
        if catalog_health and upstream_health and cache_health and kafka_health:
            status = "healthy"
        elif catalog_health:
            status = "degraded"
        else:
            status = "unhealthy"

        return HealthResponse(
            status=status,
            response_time_ms=response_time_ms,
            dependencies={
                "catalog": "healthy" if catalog_health else "unhealthy",
                "weather_api": "healthy" if upstream_health else "unhealthy",
                "redis": "healthy" if cache_health else "unhealthy",
                "kafka": "healthy" if kafka_health else "unhealthy",
            }
        )

    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")


@app.get("/info")
async def app_info():
    uptime_seconds = time.time() - app_start_time
    return {
        "name": settings.project_name,
        "version": settings.app_version,
        "uptime_seconds": round(uptime_seconds, 2),
        "environment": settings.environment,
        "catalog": catalog_manager.get_info(),
        "features": {
            "city_search": "Case-insensitive prefix match on full city names",
            "caching": f"Local LRU ({settings.cache_max_size} items) + Redis, {settings.cache_ttl}s TTL",
            "events": "Apache Kafka request events",
        },
    }


@app.get("/metrics", tags=["metrics"])
async def get_metrics():
    """Return cache and request metrics."""
    return {
        "cache_metrics": cache_manager.get_stats(),
        "performance_metrics": kafka_logger.get_metrics(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


app.include_router(cities_router, tags=["cities"])
app.include_router(weather_router, tags=["weather"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cityweather.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
