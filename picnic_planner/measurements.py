"""Daily measurement records in base units and their cache payload shapes."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, fields
from typing import Any, List, Mapping, Optional

from picnic_planner.domain import DisplayUnits, SuitabilityGrade
from picnic_planner.units import format_humidity, format_precipitation, format_temperature, format_wind_speed


def _optional_float(value: Any) -> Optional[float]:
    """Accept None or a real number; anything else is a malformed payload."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Expected a number or null, got {type(value).__name__}")
    return float(value)


@dataclass(frozen=True)
class Location:
    """A point to forecast for. ``timezone="auto"`` lets the provider decide."""
    latitude: float
    longitude: float
    timezone: str = "auto"
    name: Optional[str] = None


@dataclass(frozen=True)
class Measurement:
    """A day's readings in base units (°C, km/h, mm, %). ``None`` means not reported."""
    temperature_max: Optional[float] = None
    temperature_min: Optional[float] = None
    precipitation_sum: Optional[float] = None
    wind_speed_max: Optional[float] = None
    relative_humidity_mean: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Measurement":
        return cls(**{f.name: _optional_float(data[f.name]) for f in fields(cls)})


MEASUREMENT_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(Measurement))


@dataclass(frozen=True)
class ForecastDay:
    """Raw (ungraded) forecast for one calendar date."""
    date: dt.date
    measurement: Measurement

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), **self.measurement.to_dict()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ForecastDay":
        return cls(date=dt.date.fromisoformat(data["date"]), measurement=Measurement.from_dict(data))


def forecast_days_to_payload(days: List[ForecastDay]) -> list[dict]:
    return [d.to_dict() for d in days]


def forecast_days_from_payload(payload: Any) -> List[ForecastDay]:
    """Decode a cached forecast list; raises on any structural problem."""
    if not isinstance(payload, list):
        raise TypeError("Forecast payload must be a list")
    return [ForecastDay.from_dict(item) for item in payload]


@dataclass(frozen=True)
class RatedDay:
    """A forecast day together with the grade derived from the current preferences."""
    date: dt.date
    measurement: Measurement
    grade: SuitabilityGrade

    def to_display_strings(self, units: DisplayUnits) -> dict:
        """Return a display-friendly dict in the caller's units."""
        m = self.measurement
        return {
            "date": self.date.isoformat(),
            "grade": self.grade.value,
            "temperature_max": format_temperature(m.temperature_max, units.temperature),
            "temperature_min": format_temperature(m.temperature_min, units.temperature),
            "precipitation_sum": format_precipitation(m.precipitation_sum, units.precipitation),
            "wind_speed_max": format_wind_speed(m.wind_speed_max, units.wind),
            "relative_humidity_mean": format_humidity(m.relative_humidity_mean),
        }


@dataclass(frozen=True)
class HistoricalRecord:
    """One past year's readings for the same calendar day; empty if the lookup failed."""
    year: int
    date: Optional[dt.date]
    measurement: Measurement = field(default_factory=Measurement)

    @property
    def is_empty(self) -> bool:
        return self.measurement.is_empty

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "date": self.date.isoformat() if self.date else None,
            **self.measurement.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HistoricalRecord":
        raw_date = data["date"]
        return cls(
            year=int(data["year"]),
            date=dt.date.fromisoformat(raw_date) if raw_date else None,
            measurement=Measurement.from_dict(data),
        )


@dataclass(frozen=True)
class HistoricalSummary:
    """Trailing-years records for a calendar day plus averages over present values."""
    date: dt.date
    records: List[HistoricalRecord]
    averages: Measurement

    @property
    def years_with_data(self) -> int:
        return sum(1 for r in self.records if not r.is_empty)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "records": [r.to_dict() for r in self.records],
            "averages": self.averages.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HistoricalSummary":
        return cls(
            date=dt.date.fromisoformat(data["date"]),
            records=[HistoricalRecord.from_dict(r) for r in data["records"]],
            averages=Measurement.from_dict(data["averages"]),
        )


@dataclass(frozen=True)
class GeocodeResult:
    """A geocoding match."""
    name: str
    latitude: float
    longitude: float
    country: Optional[str] = None
    region: Optional[str] = None
    timezone: Optional[str] = None
