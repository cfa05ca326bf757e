"""Unit conversion between display units and the fixed base units.

Base units are Celsius for temperature, km/h for wind speed and millimetres
for precipitation. Relative humidity is always a percentage and is never
converted. Every unit is a linear scale onto its family's base unit, so
``from_base(to_base(x))`` reproduces ``x`` up to floating-point precision.
Families are independent of each other.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Generic, Mapping, Optional, Type, TypeVar


class TemperatureUnit(str, Enum):
    """Supported temperature units."""
    CELSIUS = "C"
    FAHRENHEIT = "F"
    KELVIN = "K"


class WindUnit(str, Enum):
    """Supported wind-speed units."""
    KMH = "kmh"
    MPH = "mph"
    MS = "ms"
    KNOTS = "knots"


class PrecipitationUnit(str, Enum):
    """Supported precipitation-depth units."""
    MM = "mm"
    INCH = "in"
    CM = "cm"


U = TypeVar("U", bound=Enum)


@dataclass(frozen=True)
class LinearScale:
    """``base = value * factor + offset``."""
    factor: float
    offset: float = 0.0

    def to_base(self, value: float) -> float:
        return value * self.factor + self.offset

    def from_base(self, value: float) -> float:
        return (value - self.offset) / self.factor


@dataclass(frozen=True)
class QuantityFamily(Generic[U]):
    """A set of interchangeable units for one physical quantity."""
    name: str
    unit_type: Type[U]
    base_unit: U
    scales: Mapping[U, LinearScale]
    synonyms: Mapping[str, U]

    def parse(self, unit: "str | U") -> U:
        """Resolve a unit enum, enum value or provider/UI synonym."""
        if isinstance(unit, self.unit_type):
            return unit
        key = str(unit).strip().lower()
        for member in self.unit_type:
            if key == str(member.value).lower():
                return member
        try:
            return self.synonyms[key]
        except KeyError:
            raise ValueError(f"Unknown {self.name} unit: {unit!r}") from None

    def is_valid(self, unit: str) -> bool:
        try:
            self.parse(unit)
        except ValueError:
            return False
        return True

    def to_base(self, value: float, unit: "str | U") -> float:
        return self.scales[self.parse(unit)].to_base(value)

    def from_base(self, value: float, unit: "str | U") -> float:
        return self.scales[self.parse(unit)].from_base(value)

    def convert(self, value: float, from_unit: "str | U", to_unit: "str | U") -> float:
        """Convert between two units of this family via the base unit."""
        src, dst = self.parse(from_unit), self.parse(to_unit)
        if src == dst:
            return value
        return self.from_base(self.to_base(value, src), dst)


TEMPERATURE = QuantityFamily(
    name="temperature",
    unit_type=TemperatureUnit,
    base_unit=TemperatureUnit.CELSIUS,
    scales={
        TemperatureUnit.CELSIUS: LinearScale(1.0),
        TemperatureUnit.FAHRENHEIT: LinearScale(5.0 / 9.0, -32.0 * 5.0 / 9.0),
        TemperatureUnit.KELVIN: LinearScale(1.0, -273.15),
    },
    synonyms={
        "°c": TemperatureUnit.CELSIUS,
        "celsius": TemperatureUnit.CELSIUS,
        "°f": TemperatureUnit.FAHRENHEIT,
        "fahrenheit": TemperatureUnit.FAHRENHEIT,
        "°k": TemperatureUnit.KELVIN,
        "kelvin": TemperatureUnit.KELVIN,
    },
)

WIND = QuantityFamily(
    name="wind",
    unit_type=WindUnit,
    base_unit=WindUnit.KMH,
    scales={
        WindUnit.KMH: LinearScale(1.0),
        WindUnit.MPH: LinearScale(1.609344),
        WindUnit.MS: LinearScale(3.6),
        WindUnit.KNOTS: LinearScale(1.852),
    },
    synonyms={
        "km/h": WindUnit.KMH,
        "kph": WindUnit.KMH,
        "mi/h": WindUnit.MPH,
        "m/s": WindUnit.MS,
        "mps": WindUnit.MS,
        "ms^-1": WindUnit.MS,
        "kn": WindUnit.KNOTS,
        "kt": WindUnit.KNOTS,
    },
)

PRECIPITATION = QuantityFamily(
    name="precipitation",
    unit_type=PrecipitationUnit,
    base_unit=PrecipitationUnit.MM,
    scales={
        PrecipitationUnit.MM: LinearScale(1.0),
        PrecipitationUnit.INCH: LinearScale(25.4),
        PrecipitationUnit.CM: LinearScale(10.0),
    },
    synonyms={
        "millimeter": PrecipitationUnit.MM,
        "millimetre": PrecipitationUnit.MM,
        "inch": PrecipitationUnit.INCH,
        "inches": PrecipitationUnit.INCH,
        "centimeter": PrecipitationUnit.CM,
        "centimetre": PrecipitationUnit.CM,
    },
)


UNIT_LABELS: Dict[Enum, str] = {
    TemperatureUnit.CELSIUS: "°C",
    TemperatureUnit.FAHRENHEIT: "°F",
    TemperatureUnit.KELVIN: "K",
    WindUnit.KMH: "km/h",
    WindUnit.MPH: "mph",
    WindUnit.MS: "m/s",
    WindUnit.KNOTS: "knots",
    PrecipitationUnit.MM: "mm",
    PrecipitationUnit.INCH: "in",
    PrecipitationUnit.CM: "cm",
}

MISSING_VALUE = "—"


def temperature_to_base(value: float, unit: str | TemperatureUnit) -> float:
    return TEMPERATURE.to_base(value, unit)


def temperature_from_base(value: float, unit: str | TemperatureUnit) -> float:
    return TEMPERATURE.from_base(value, unit)


def wind_to_base(value: float, unit: str | WindUnit) -> float:
    return WIND.to_base(value, unit)


def wind_from_base(value: float, unit: str | WindUnit) -> float:
    return WIND.from_base(value, unit)


def precipitation_to_base(value: float, unit: str | PrecipitationUnit) -> float:
    return PRECIPITATION.to_base(value, unit)


def precipitation_from_base(value: float, unit: str | PrecipitationUnit) -> float:
    return PRECIPITATION.from_base(value, unit)


def convert_temperature(value: float, from_unit: str | TemperatureUnit, to_unit: str | TemperatureUnit) -> float:
    return TEMPERATURE.convert(value, from_unit, to_unit)


def convert_wind_speed(value: float, from_unit: str | WindUnit, to_unit: str | WindUnit) -> float:
    return WIND.convert(value, from_unit, to_unit)


def convert_precipitation(value: float, from_unit: str | PrecipitationUnit,
                          to_unit: str | PrecipitationUnit) -> float:
    return PRECIPITATION.convert(value, from_unit, to_unit)


# ---------------------------------------------------------------------------
# Display formatting. Inputs are always base-unit values.
# ---------------------------------------------------------------------------


def format_temperature(celsius: Optional[float], unit: str | TemperatureUnit) -> str:
    """Format a Celsius value in the display unit, e.g. ``"72°F"``."""
    if celsius is None:
        return MISSING_VALUE
    target = TEMPERATURE.parse(unit)
    return f"{TEMPERATURE.from_base(celsius, target):.0f}{UNIT_LABELS[target]}"


def format_wind_speed(kmh: Optional[float], unit: str | WindUnit) -> str:
    """Format a km/h value in the display unit, e.g. ``"15 mph"`` or ``"6.7 m/s"``."""
    if kmh is None:
        return MISSING_VALUE
    target = WIND.parse(unit)
    display = WIND.from_base(kmh, target)
    if target == WindUnit.MS:
        return f"{display:.1f} {UNIT_LABELS[target]}"
    return f"{display:.0f} {UNIT_LABELS[target]}"


def format_precipitation(mm: Optional[float], unit: str | PrecipitationUnit) -> str:
    """Format a millimetre value in the display unit, e.g. ``"0.25 in"``."""
    if mm is None:
        return MISSING_VALUE
    target = PRECIPITATION.parse(unit)
    display = PRECIPITATION.from_base(mm, target)
    if target == PrecipitationUnit.INCH:
        return f"{display:.2f} {UNIT_LABELS[target]}"
    return f"{display:.1f} {UNIT_LABELS[target]}"


def format_humidity(percent: Optional[float]) -> str:
    if percent is None:
        return MISSING_VALUE
    return f"{percent:.0f}%"
