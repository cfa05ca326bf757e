"""Domain vocabulary and strict schemas for picnic suitability.

This module defines the grades, the user's preference window and the
structured per-dimension checks produced by the classifier. No fetching or
caching logic lives here.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from picnic_planner.units import (
    PRECIPITATION,
    TEMPERATURE,
    WIND,
    PrecipitationUnit,
    TemperatureUnit,
    WindUnit,
)


class _StrictBaseModel(BaseModel):
    """Base model with strict extra handling."""

    model_config = ConfigDict(extra="forbid")


class SuitabilityGrade(str, Enum):
    """How suitable a day is for a picnic."""
    IDEAL = "ideal"
    FAIR = "fair"
    POOR = "poor"


class Dimension(str, Enum):
    """The four measurement dimensions a preference window constrains."""
    TEMPERATURE = "temperature"
    WIND = "wind"
    PRECIPITATION = "precipitation"
    HUMIDITY = "humidity"


# (min field, max field) per dimension, in PreferenceWindow naming.
PREFERENCE_PAIRS: Dict[Dimension, Tuple[str, str]] = {
    Dimension.TEMPERATURE: ("temp_min", "temp_max"),
    Dimension.WIND: ("wind_min", "wind_max"),
    Dimension.PRECIPITATION: ("rain_min", "rain_max"),
    Dimension.HUMIDITY: ("humidity_min", "humidity_max"),
}

MIN_EXCEEDS_MAX = "Min cannot exceed Max"


class DisplayUnits(_StrictBaseModel):
    """Units the user sees and edits preferences in."""
    temperature: TemperatureUnit = TemperatureUnit.FAHRENHEIT
    wind: WindUnit = WindUnit.MPH
    precipitation: PrecipitationUnit = PrecipitationUnit.INCH

    @field_validator("temperature", mode="before")
    @classmethod
    def _parse_temperature(cls, v):
        return TEMPERATURE.parse(v)

    @field_validator("wind", mode="before")
    @classmethod
    def _parse_wind(cls, v):
        return WIND.parse(v)

    @field_validator("precipitation", mode="before")
    @classmethod
    def _parse_precipitation(cls, v):
        return PRECIPITATION.parse(v)


class Bounds(_StrictBaseModel):
    """Inclusive numeric range."""
    low: float
    high: float

    def contains(self, value: Optional[float]) -> bool:
        """False for absent values; never defaults to acceptable."""
        if value is None:
            return False
        return self.low <= value <= self.high


class BaseBounds(_StrictBaseModel):
    """A preference window expressed in base units (°C, km/h, mm, %)."""
    temperature: Bounds
    wind: Bounds
    precipitation: Bounds
    humidity: Bounds

    def for_dimension(self, dimension: Dimension) -> Bounds:
        return getattr(self, dimension.value)


class PreferenceWindow(_StrictBaseModel):
    """User-adjustable acceptable ranges, stored in the user's display units.

    Bounds are not checked on construction; callers that persist a window must
    consult ``validation_errors()`` first (see ``PreferenceStore.save``).
    """
    temp_min: float = 64.0
    temp_max: float = 82.0
    wind_min: float = 0.0
    wind_max: float = 12.0
    rain_min: float = 0.0
    rain_max: float = 0.1
    humidity_min: float = 30.0
    humidity_max: float = 70.0
    units: DisplayUnits = Field(default_factory=DisplayUnits)

    def validation_errors(self) -> Dict[str, str]:
        """Return ``{min_field: message}`` for every pair whose min exceeds its max."""
        errors: Dict[str, str] = {}
        for low_field, high_field in PREFERENCE_PAIRS.values():
            if getattr(self, low_field) > getattr(self, high_field):
                errors[low_field] = MIN_EXCEEDS_MAX
        return errors

    def base_bounds(self) -> BaseBounds:
        """Convert every bound to base units for classification."""
        u = self.units
        return BaseBounds(
            temperature=Bounds(low=TEMPERATURE.to_base(self.temp_min, u.temperature),
                               high=TEMPERATURE.to_base(self.temp_max, u.temperature)),
            wind=Bounds(low=WIND.to_base(self.wind_min, u.wind),
                        high=WIND.to_base(self.wind_max, u.wind)),
            precipitation=Bounds(low=PRECIPITATION.to_base(self.rain_min, u.precipitation),
                                 high=PRECIPITATION.to_base(self.rain_max, u.precipitation)),
            humidity=Bounds(low=self.humidity_min, high=self.humidity_max),
        )

    def in_units(self, units: DisplayUnits) -> "PreferenceWindow":
        """Re-express the same bounds in other display units."""
        src = self.units
        return PreferenceWindow(
            temp_min=TEMPERATURE.convert(self.temp_min, src.temperature, units.temperature),
            temp_max=TEMPERATURE.convert(self.temp_max, src.temperature, units.temperature),
            wind_min=WIND.convert(self.wind_min, src.wind, units.wind),
            wind_max=WIND.convert(self.wind_max, src.wind, units.wind),
            rain_min=PRECIPITATION.convert(self.rain_min, src.precipitation, units.precipitation),
            rain_max=PRECIPITATION.convert(self.rain_max, src.precipitation, units.precipitation),
            humidity_min=self.humidity_min,
            humidity_max=self.humidity_max,
            units=units,
        )


class DimensionCheck(_StrictBaseModel):
    """Outcome of one range predicate."""
    value: float | None = None
    bounds: Bounds
    in_range: bool
    reason: str


class DayAssessment(_StrictBaseModel):
    """Per-dimension checks and the resulting grade for one day."""
    grade: SuitabilityGrade
    acceptable_count: int = Field(ge=0, le=4)
    checks: Dict[Dimension, DimensionCheck] = Field(default_factory=dict)
