"""Weather providers and the factory that selects one at startup."""

from .base import CallableWeatherProvider, WeatherProvider
from .factory import build_provider
from .open_meteo_client import fetch_daily_forecast, fetch_historical_day, geocode

__all__ = [
    "build_provider",
    "WeatherProvider",
    "CallableWeatherProvider",
    "fetch_daily_forecast",
    "fetch_historical_day",
    "geocode",
]
