"""Helpers for fetching daily forecasts, archive days and geocoding matches from Open-Meteo."""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Mapping, Optional, Tuple

import requests

from picnic_planner.errors import PartialDataError, ProviderError
from picnic_planner.measurements import ForecastDay, GeocodeResult, Measurement
from picnic_planner.units import PRECIPITATION, TEMPERATURE, WIND, QuantityFamily
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag='open_meteo_client')

session = requests.Session()
session.headers.update({"User-Agent": "picnic-planner/1.0"})

OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
OPEN_METEO_ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"
OPEN_METEO_GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"

# Base units are requested explicitly; any other unit reported back is converted.
BASE_UNIT_PARAMS = {
    "temperature_unit": "celsius",
    "wind_speed_unit": "kmh",
    "precipitation_unit": "mm",
}

# Open-Meteo daily variable -> (Measurement field, quantity family or None for %)
DAILY_FIELDS: Dict[str, Tuple[str, Optional[QuantityFamily]]] = {
    "temperature_2m_max": ("temperature_max", TEMPERATURE),
    "temperature_2m_min": ("temperature_min", TEMPERATURE),
    "precipitation_sum": ("precipitation_sum", PRECIPITATION),
    "wind_speed_10m_max": ("wind_speed_max", WIND),
    "relative_humidity_2m_mean": ("relative_humidity_mean", None),
}

ALLOWED_HUMIDITY_UNITS = {"%", "percent"}


def _get_json(url: str, params: Mapping[str, Any], *, timeout: Optional[float], context: str) -> Any:
    """GET ``url`` and decode JSON, translating every failure into ProviderError."""
    try:
        resp = session.get(url, params=params, timeout=timeout)
        resp.raise_for_status()
    except requests.HTTPError as exc:
        status = getattr(exc.response, "status_code", None)
        logger.error("Open-Meteo returned an error status",
                     extra={"context": context, "status_code": status})
        raise ProviderError(f"Open-Meteo {context} request failed with status {status}",
                            status_code=status) from exc
    except requests.RequestException as exc:
        logger.error("Open-Meteo request failed", extra={"context": context, "error": str(exc)})
        raise ProviderError(f"Open-Meteo {context} request failed: {exc}") from exc
    try:
        return resp.json()
    except ValueError as exc:
        logger.error("Open-Meteo returned a non-JSON body", extra={"context": context})
        raise ProviderError(f"Open-Meteo {context} response was not valid JSON") from exc


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _unit_normalizers(units: Mapping[str, Any], *, context: str) -> Dict[str, Optional[str]]:
    """Return the reported unit per daily variable when it differs from the base unit.

    Unknown units are logged and the values are used as-is.
    """
    reported: Dict[str, Optional[str]] = {}
    for variable, (_, family) in DAILY_FIELDS.items():
        actual = units.get(variable) if units else None
        reported[variable] = None
        if not actual:
            continue
        if family is None:
            if actual not in ALLOWED_HUMIDITY_UNITS:
                logger.warning("Unexpected Open-Meteo unit",
                               extra={"context": context, "field": variable, "unit": actual, "expected": "%"})
            continue
        if not family.is_valid(actual):
            logger.warning("Unexpected Open-Meteo unit",
                           extra={"context": context, "field": variable, "unit": actual,
                                  "expected": family.base_unit.value})
            continue
        if family.parse(actual) != family.base_unit:
            logger.warning("Converting Open-Meteo values to base units",
                           extra={"context": context, "field": variable, "unit": actual})
            reported[variable] = actual
    return reported


def _parse_daily(data: Any, *, context: str) -> List[ForecastDay]:
    """Turn a ``daily`` block into ForecastDays; missing arrays or nulls become absent fields."""
    if not isinstance(data, dict) or not isinstance(data.get("daily"), dict):
        raise ProviderError(f"Open-Meteo {context} response has no daily block")
    daily = data["daily"]
    dates = daily.get("time") or []
    convert_from = _unit_normalizers(data.get("daily_units") or {}, context=context)

    days: List[ForecastDay] = []
    for i, raw_date in enumerate(dates):
        try:
            day = dt.date.fromisoformat(raw_date)
        except (TypeError, ValueError) as exc:
            raise ProviderError(f"Open-Meteo {context} response has an invalid date {raw_date!r}") from exc
        values: Dict[str, Optional[float]] = {}
        for variable, (field_name, family) in DAILY_FIELDS.items():
            series = daily.get(variable)
            value = _number(series[i]) if isinstance(series, list) and i < len(series) else None
            unit = convert_from[variable]
            if value is not None and unit is not None and family is not None:
                value = family.to_base(value, unit)
            values[field_name] = value
        days.append(ForecastDay(date=day, measurement=Measurement(**values)))
    days.sort(key=lambda d: d.date)
    return days


def _daily_params(latitude: float, longitude: float, start: dt.date, end: dt.date, timezone: str) -> dict:
    return {
        "latitude": latitude,
        "longitude": longitude,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "daily": ",".join(DAILY_FIELDS),
        "timezone": timezone,
        **BASE_UNIT_PARAMS,
    }


def fetch_daily_forecast(latitude: float,
                         longitude: float,
                         *,
                         start_date: dt.date,
                         end_date: dt.date,
                         timezone: str = "auto",
                         url: str = OPEN_METEO_FORECAST_URL,
                         timeout: Optional[float] = None,
                         ) -> List[ForecastDay]:
    """Fetch one base-unit Measurement per date in ``[start_date, end_date]``, ascending."""
    if end_date < start_date:
        raise ValueError("end_date must not precede start_date")
    params = _daily_params(latitude, longitude, start_date, end_date, timezone)
    logger.info("Fetching daily forecast",
                extra={"latitude": latitude, "longitude": longitude,
                       "start": params["start_date"], "end": params["end_date"]})
    data = _get_json(url, params, timeout=timeout, context="forecast")
    return _parse_daily(data, context="forecast")


def fetch_historical_day(latitude: float,
                         longitude: float,
                         day: dt.date,
                         *,
                         timezone: str = "auto",
                         url: str = OPEN_METEO_ARCHIVE_URL,
                         timeout: Optional[float] = None,
                         ) -> Measurement:
    """Fetch the archived Measurement for a single past date.

    Raises PartialDataError when the archive answers without a row for the day.
    """
    params = _daily_params(latitude, longitude, day, day, timezone)
    data = _get_json(url, params, timeout=timeout, context="archive")
    rows = _parse_daily(data, context="archive")
    if not rows:
        raise PartialDataError(f"No archive data for {day.isoformat()}")
    return rows[0].measurement


def geocode(query: str,
            *,
            count: int = 5,
            language: str = "en",
            url: str = OPEN_METEO_GEOCODING_URL,
            timeout: Optional[float] = None,
            ) -> List[GeocodeResult]:
    """Look up places by free-text name; an empty list means no match."""
    query = (query or "").strip()
    if not query:
        return []
    params = {"name": query, "count": count, "language": language, "format": "json"}
    data = _get_json(url, params, timeout=timeout, context="geocoding")
    results = data.get("results") if isinstance(data, dict) else None
    matches: List[GeocodeResult] = []
    for item in results or []:
        lat, lon = _number(item.get("latitude")), _number(item.get("longitude"))
        if lat is None or lon is None or not item.get("name"):
            logger.debug("Skipping incomplete geocoding match", extra={"match": item})
            continue
        matches.append(GeocodeResult(
            name=item["name"],
            latitude=lat,
            longitude=lon,
            country=item.get("country"),
            region=item.get("admin1"),
            timezone=item.get("timezone"),
        ))
    return matches
