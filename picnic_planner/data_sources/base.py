"""Interfaces and helpers for weather providers."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Callable, List, Protocol

from picnic_planner.measurements import ForecastDay, GeocodeResult, Measurement


class WeatherProvider(Protocol):
    """Interface for anything that can provide daily forecasts, archive days and place lookups."""

    def fetch_daily_forecast(
        self,
        latitude: float,
        longitude: float,
        *,
        start_date: dt.date,
        end_date: dt.date,
        timezone: str = "auto",
    ) -> List[ForecastDay]:
        """Return one base-unit day per date in range, ascending."""
        ...

    def fetch_historical_day(
        self,
        latitude: float,
        longitude: float,
        day: dt.date,
        *,
        timezone: str = "auto",
    ) -> Measurement:
        """Return the Measurement for a single past date, or raise."""
        ...

    def geocode(self, query: str, *, count: int = 5) -> List[GeocodeResult]:
        """Return ordered matches; empty on no match, raise on transport error."""
        ...


@dataclass
class CallableWeatherProvider(WeatherProvider):
    """Wrap three callables so they can be swapped for different backends."""

    daily_forecast: Callable[..., List[ForecastDay]]
    historical_day: Callable[..., Measurement]
    geocoder: Callable[..., List[GeocodeResult]]

    def fetch_daily_forecast(self, *args, **kwargs) -> List[ForecastDay]:
        """Delegate to the configured forecast callable."""
        return self.daily_forecast(*args, **kwargs)

    def fetch_historical_day(self, *args, **kwargs) -> Measurement:
        """Delegate to the configured archive callable."""
        return self.historical_day(*args, **kwargs)

    def geocode(self, *args, **kwargs) -> List[GeocodeResult]:
        """Delegate to the configured geocoding callable."""
        return self.geocoder(*args, **kwargs)
