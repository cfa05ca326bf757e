"""Application configuration pulled from environment variables via pydantic."""
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the picnic planner service."""
    model_config = SettingsConfigDict(env_prefix="PICNIC_", extra="ignore")

    forecast_source: str = "open_meteo"  # options: open_meteo
    forecast_url: str = "https://api.open-meteo.com/v1/forecast"
    archive_url: str = "https://archive-api.open-meteo.com/v1/archive"
    geocoding_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    request_timeout_seconds: float | None = None
    user_agent: str = "picnic-planner/1.0"
    cache_redis_url: str | None = None
    cache_prefix: str = "wx"
    cache_version: str = "v3"
    forecast_ttl_seconds: int = 6 * 60 * 60
    historical_ttl_seconds: int = 7 * 24 * 60 * 60
    forecast_days: int = 14
    history_years: int = 10
    geocode_results: int = 5
    log_level: str = "INFO"

    @field_validator("forecast_url", "archive_url", "geocoding_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @field_validator("cache_prefix", "cache_version", mode="after")
    @classmethod
    def no_separator(cls, v: str) -> str:
        if not v or ":" in v:
            raise ValueError("cache prefix/version must be non-empty and must not contain ':'")
        return v

    @model_validator(mode="after")
    def historical_outlives_forecast(self) -> "Settings":
        if self.historical_ttl_seconds <= self.forecast_ttl_seconds:
            raise ValueError("historical_ttl_seconds must exceed forecast_ttl_seconds")
        return self


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4)}")
