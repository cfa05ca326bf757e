"""Factory helpers for choosing a weather provider at startup."""

from __future__ import annotations

from functools import partial

from picnic_planner import config
from picnic_planner.data_sources import open_meteo_client
from picnic_planner.data_sources.base import CallableWeatherProvider, WeatherProvider
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


DEFAULT_SOURCE_NAME = "open_meteo"


def build_provider(settings: config.Settings | None = None) -> WeatherProvider:
    """Instantiate the configured weather provider."""
    settings = settings or config.settings
    source = (settings.forecast_source or DEFAULT_SOURCE_NAME).lower()

    if source == "open_meteo":
        logger.info("Using Open-Meteo data source",
                    extra={"forecast_url": settings.forecast_url, "timeout": settings.request_timeout_seconds})
        open_meteo_client.session.headers["User-Agent"] = settings.user_agent
        timeout = settings.request_timeout_seconds
        return CallableWeatherProvider(
            daily_forecast=partial(open_meteo_client.fetch_daily_forecast,
                                   url=settings.forecast_url, timeout=timeout),
            historical_day=partial(open_meteo_client.fetch_historical_day,
                                   url=settings.archive_url, timeout=timeout),
            geocoder=partial(open_meteo_client.geocode,
                             url=settings.geocoding_url, timeout=timeout),
        )

    raise ValueError(f"Unknown forecast source '{source}'")
