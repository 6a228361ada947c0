# City Weather Service - Configuration Management
# Pydantic Settings for environment-aware configuration

import ast
import logging
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised when a required setting is missing or unusable at startup."""


class Settings(BaseSettings):
    """
    Application settings with environment variable support.
    Uses Pydantic Settings for type validation and environment loading.
    """

    # =============================================================================
    # APPLICATION METADATA
    # =============================================================================
    project_name: str = Field(default="City Weather Service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode toggle")
    log_level: str = Field(default="INFO", description="Logging level")
    environment: str = Field(default="development", description="Environment name")

    # =============================================================================
    # API CONFIGURATION
    # =============================================================================
    api_host: str = Field(default="0.0.0.0", description="API host binding")
    api_port: int = Field(default=9000, description="API port")

    # =============================================================================
    # CITY CATALOG
    # =============================================================================
    catalog_path: str = Field(
        default="city.list.json",
        description="Path to the OpenWeatherMap city list JSON document"
    )

    # =============================================================================
    # UPSTREAM WEATHER API (OpenWeatherMap)
    # =============================================================================
    openweather_api_url: Optional[str] = Field(
        default=None,
        description="OpenWeatherMap API root, e.g. https://api.openweathermap.org"
    )
    openweather_api_key: Optional[str] = Field(default=None, description="OpenWeatherMap API key")
    upstream_timeout: float = Field(
        default=10.0,
        description="Upstream request timeout in seconds",
        gt=0
    )

    # =============================================================================
    # REDIS CONFIGURATION (Caching)
    # =============================================================================
    redis_url: str = Field(
        default="redis://redis:6379/0",
        description="Complete Redis connection URL"
    )

    # =============================================================================
    # CACHE CONFIGURATION (LRU)
    # =============================================================================
    cache_ttl: int = Field(
        default=600,
        description="Cache TTL in seconds (10 minutes)",
        ge=60,
        le=3600
    )
    cache_max_size: int = Field(
        default=100,
        description="Maximum local cache size (LRU)",
        ge=1,
        le=10000
    )

    # =============================================================================
    # KAFKA CONFIGURATION (Request events)
    # =============================================================================
    kafka_enabled: bool = Field(default=True, description="Publish request events to Kafka")
    kafka_bootstrap_servers: str = Field(
        default="kafka:9092",
        description="Kafka bootstrap servers"
    )
    kafka_topic: str = Field(
        default="city_weather_events",
        description="Kafka topic for request events"
    )
    kafka_connect_retries: int = Field(default=5, ge=1, description="Kafka connection attempts")
    kafka_retry_delay: float = Field(default=5.0, ge=0, description="Seconds between Kafka attempts")

    # =============================================================================
    # CORS CONFIGURATION
    # =============================================================================
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="CORS allowed origins"
    )

    # =============================================================================
    # VALIDATORS
    # =============================================================================

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of {valid_levels}')
        return v.upper()

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the expected values."""
        valid_envs = ['development', 'staging', 'production', 'testing']
        if v.lower() not in valid_envs:
            raise ValueError(f'Environment must be one of {valid_envs}')
        return v.lower()

    @field_validator('cors_origins', mode='before')
    @classmethod
    def validate_cors_origins(cls, v):
        """Accept a list literal or a single origin from env vars."""
        if isinstance(v, str):
            try:
                return ast.literal_eval(v)
            except (ValueError, SyntaxError):
                return [v]
        return v

    @field_validator('openweather_api_url')
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip('/') if v else v

    # =============================================================================
    # COMPUTED PROPERTIES
    # =============================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
        populate_by_name=True
    )


# =============================================================================
# GLOBAL SETTINGS INSTANCE
# =============================================================================

def get_settings() -> Settings:
    """
    Get application settings instance.
    This function can be overridden in tests for dependency injection.
    """
    return Settings()


settings = get_settings()


# =============================================================================
# CONFIGURATION VALIDATION
# =============================================================================

def require_upstream(config: Settings = None) -> None:
    """Fail unless the OpenWeatherMap root and key are both configured."""
    config = config or settings
    missing = [
        name for name in ("openweather_api_url", "openweather_api_key")
        if not getattr(config, name)
    ]
    if missing:
        raise ConfigurationError(
            f"Please set up {' and '.join(name.upper() for name in missing)} environment variables."
        )


def validate_configuration(config: Settings = None) -> None:
    """
    Validate the current configuration and log warnings for potential issues.
    """
    config = config or settings
    logger = logging.getLogger(__name__)

    if config.is_production:
        if config.debug:
            logger.warning("⚠️  Debug mode is enabled in production!")

        if "*" in config.cors_origins:
            logger.warning("⚠️  CORS allows all origins in production!")

    if config.cache_max_size > 1000:
        logger.warning(f"⚠️  Large cache size: {config.cache_max_size}")

    if not config.redis_url.startswith(("redis://", "rediss://", "unix://")):
        logger.error("❌ Invalid Redis URL format")

    logger.info(f"✅ Configuration validated for environment: {config.environment}")
