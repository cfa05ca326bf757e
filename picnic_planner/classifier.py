"""Deterministic day suitability classification.

This module turns one day's base-unit Measurement plus a PreferenceWindow into
a SuitabilityGrade. Four independent range checks are counted: all four in
range is ideal, three is fair, anything less is poor. An absent reading is
never in range. No I/O happens here, so re-grading cached days after a
preference change is a plain function call.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from picnic_planner.domain import (
    BaseBounds,
    Bounds,
    DayAssessment,
    Dimension,
    DimensionCheck,
    PreferenceWindow,
    SuitabilityGrade,
)
from picnic_planner.measurements import ForecastDay, Measurement, RatedDay


def _reading(measurement: Measurement, dimension: Dimension) -> Optional[float]:
    """Pick the reading each dimension is judged on (daily max temperature, as in the UI)."""
    if dimension is Dimension.TEMPERATURE:
        return measurement.temperature_max
    if dimension is Dimension.WIND:
        return measurement.wind_speed_max
    if dimension is Dimension.PRECIPITATION:
        return measurement.precipitation_sum
    return measurement.relative_humidity_mean


def _in_range(value: Optional[float], bounds: Bounds) -> bool:
    return value is not None and bounds.low <= value <= bounds.high


def _judge(dimension: Dimension, value: Optional[float], bounds: Bounds) -> DimensionCheck:
    """Judge one reading against its base-unit bounds."""
    name = dimension.value
    if value is None:
        return DimensionCheck(value=None, bounds=bounds, in_range=False,
                              reason=f"No {name} reading")
    if value < bounds.low:
        return DimensionCheck(value=value, bounds=bounds, in_range=False,
                              reason=f"{name.capitalize()} {value:.1f} below {bounds.low:.1f}")
    if value > bounds.high:
        return DimensionCheck(value=value, bounds=bounds, in_range=False,
                              reason=f"{name.capitalize()} {value:.1f} above {bounds.high:.1f}")
    return DimensionCheck(value=value, bounds=bounds, in_range=True,
                          reason=f"{name.capitalize()} {value:.1f} within {bounds.low:.1f}-{bounds.high:.1f}")


def grade_for_count(acceptable_count: int) -> SuitabilityGrade:
    """Map the number of in-range dimensions onto a grade."""
    if acceptable_count == len(Dimension):
        return SuitabilityGrade.IDEAL
    if acceptable_count == len(Dimension) - 1:
        return SuitabilityGrade.FAIR
    return SuitabilityGrade.POOR


def count_acceptable(measurement: Measurement, bounds: BaseBounds) -> int:
    """Number of dimensions whose reading lies inside its bounds."""
    return sum(1 for dim in Dimension if _in_range(_reading(measurement, dim), bounds.for_dimension(dim)))


def assess_with_bounds(measurement: Measurement, bounds: BaseBounds) -> DayAssessment:
    """Like ``assess_day`` for callers that already hold base-unit bounds."""
    checks = {
        dim: _judge(dim, _reading(measurement, dim), bounds.for_dimension(dim))
        for dim in Dimension
    }
    count = sum(1 for check in checks.values() if check.in_range)
    return DayAssessment(grade=grade_for_count(count), acceptable_count=count, checks=checks)


def assess_day(measurement: Measurement, window: PreferenceWindow) -> DayAssessment:
    """Return the per-dimension checks and grade for one day."""
    return assess_with_bounds(measurement, window.base_bounds())


def classify(measurement: Measurement, window: PreferenceWindow) -> SuitabilityGrade:
    return grade_for_count(count_acceptable(measurement, window.base_bounds()))


def grade_days(days: Iterable[ForecastDay], window: PreferenceWindow) -> List[RatedDay]:
    """Grade raw forecast days against ``window``, preserving order."""
    bounds = window.base_bounds()
    return [
        RatedDay(date=day.date, measurement=day.measurement,
                 grade=grade_for_count(count_acceptable(day.measurement, bounds)))
        for day in days
    ]
