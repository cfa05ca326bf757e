"""HTTP API for the picnic planner."""

import datetime as dt
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from picnic_planner.classifier import assess_with_bounds
from picnic_planner.domain import (
    BaseBounds,
    Dimension,
    DimensionCheck,
    DisplayUnits,
    PreferenceWindow,
    SuitabilityGrade,
)
from picnic_planner.measurements import GeocodeResult, HistoricalSummary, Location, RatedDay
from picnic_planner.orchestrator import OutlookState, default_range
from picnic_planner.services import Services
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api")

router = APIRouter()


def get_services(request: Request) -> Services:
    """Resolve the services wired into the application."""
    return request.app.state.services


class MeasurementModel(BaseModel):
    """Base-unit readings (°C, km/h, mm, %); null means not reported."""
    temperature_max: Optional[float] = None
    temperature_min: Optional[float] = None
    precipitation_sum: Optional[float] = None
    wind_speed_max: Optional[float] = None
    relative_humidity_mean: Optional[float] = None


class RatedDayResponse(BaseModel):
    """One graded day: raw values, display strings and the base-unit check per dimension."""
    date: dt.date
    grade: SuitabilityGrade
    measurement: MeasurementModel
    display: Dict[str, str]
    checks: Dict[Dimension, DimensionCheck]


class LocationModel(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    timezone: str = "auto"
    name: Optional[str] = None


class OutlookResponse(BaseModel):
    location: LocationModel
    start: dt.date
    end: dt.date
    units: DisplayUnits
    days: List[RatedDayResponse]


class HistoricalRecordModel(MeasurementModel):
    year: int
    date: Optional[dt.date] = None


class HistoricalResponse(BaseModel):
    date: dt.date
    years_with_data: int
    averages: MeasurementModel
    records: List[HistoricalRecordModel]


class GeocodeMatch(BaseModel):
    name: str
    latitude: float
    longitude: float
    country: Optional[str] = None
    region: Optional[str] = None
    timezone: Optional[str] = None


class GeocodeResponse(BaseModel):
    query: str
    results: List[GeocodeMatch]


class SelectionRequest(LocationModel):
    """Incoming live selection."""
    start: Optional[dt.date] = None
    end: Optional[dt.date] = None


class SelectionResponse(BaseModel):
    """Live outlook state."""
    location: Optional[LocationModel] = None
    start: Optional[dt.date] = None
    end: Optional[dt.date] = None
    loading: bool = False
    error: Optional[str] = None
    units: DisplayUnits
    days: List[RatedDayResponse] = Field(default_factory=list)


class CacheClearResponse(BaseModel):
    removed: int


def _validate_timezone(tz_str: str) -> str:
    """Accept "auto" or an IANA zone name."""
    if tz_str == "auto":
        return tz_str
    try:
        ZoneInfo(tz_str)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid timezone: {tz_str}")
    return tz_str


def _resolve_range(start: Optional[dt.date], end: Optional[dt.date], days: int) -> tuple[dt.date, dt.date]:
    default_start, default_end = default_range(dt.date.today(), days)
    start = start or default_start
    end = end or (start + (default_end - default_start))
    if end < start:
        raise HTTPException(status_code=400, detail="end must not precede start")
    return start, end


def _rated_day(day: RatedDay, units: DisplayUnits, bounds: BaseBounds) -> RatedDayResponse:
    return RatedDayResponse(
        date=day.date,
        grade=day.grade,
        measurement=MeasurementModel(**day.measurement.to_dict()),
        display=day.to_display_strings(units),
        checks=assess_with_bounds(day.measurement, bounds).checks,
    )


def _location_model(location: Location) -> LocationModel:
    return LocationModel(latitude=location.latitude, longitude=location.longitude,
                         timezone=location.timezone, name=location.name)


def _historical_response(summary: HistoricalSummary) -> HistoricalResponse:
    return HistoricalResponse(
        date=summary.date,
        years_with_data=summary.years_with_data,
        averages=MeasurementModel(**summary.averages.to_dict()),
        records=[HistoricalRecordModel(**record.to_dict()) for record in summary.records],
    )


def _selection_response(state: OutlookState, window: PreferenceWindow) -> SelectionResponse:
    selection = state.selection
    bounds = window.base_bounds()
    return SelectionResponse(
        location=_location_model(selection.location) if selection else None,
        start=selection.start_date if selection else None,
        end=selection.end_date if selection else None,
        loading=state.loading,
        error=state.error,
        units=window.units,
        days=[_rated_day(day, window.units, bounds) for day in state.days],
    )


@router.get("/outlook", response_model=OutlookResponse)
async def get_outlook(
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    timezone: str = "auto",
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
    services: Services = Depends(get_services),
):
    """Return the graded outlook for a location and date range (default: the next 14 days)."""
    timezone = _validate_timezone(timezone)
    start, end = _resolve_range(start, end, services.settings.forecast_days)
    location = Location(latitude=latitude, longitude=longitude, timezone=timezone)
    window = services.orchestrator.window
    logger.info("Outlook requested", extra={"latitude": latitude, "longitude": longitude,
                                            "start": start.isoformat(), "end": end.isoformat()})
    days = await services.orchestrator.get_rated_outlook(location, start, end, window)
    bounds = window.base_bounds()
    return OutlookResponse(
        location=_location_model(location),
        start=start,
        end=end,
        units=window.units,
        days=[_rated_day(day, window.units, bounds) for day in days],
    )


@router.get("/historical", response_model=HistoricalResponse)
async def get_historical(
    date: dt.date,
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    timezone: str = "auto",
    services: Services = Depends(get_services),
):
    """Return trailing-years context for a calendar date."""
    timezone = _validate_timezone(timezone)
    location = Location(latitude=latitude, longitude=longitude, timezone=timezone)
    summary = await services.aggregator.aggregate(location, date)
    return _historical_response(summary)


@router.get("/geocode", response_model=GeocodeResponse)
async def get_geocode(
    q: str = Query(min_length=1),
    services: Services = Depends(get_services),
):
    """Look up places matching a free-text query."""
    matches: List[GeocodeResult] = await run_in_threadpool(
        services.provider.geocode, q, count=services.settings.geocode_results
    )
    return GeocodeResponse(
        query=q,
        results=[GeocodeMatch(name=m.name, latitude=m.latitude, longitude=m.longitude,
                              country=m.country, region=m.region, timezone=m.timezone)
                 for m in matches],
    )


@router.get("/preferences", response_model=PreferenceWindow)
def get_preferences(services: Services = Depends(get_services)):
    """Return the saved preference window (defaults if none saved)."""
    return services.preferences.load()


@router.put("/preferences", response_model=PreferenceWindow)
def put_preferences(window: PreferenceWindow, services: Services = Depends(get_services)):
    """Validate and save a preference window; live outlooks re-grade immediately."""
    return services.preferences.save(window)


@router.put("/preferences/units", response_model=PreferenceWindow)
def put_preference_units(units: DisplayUnits, services: Services = Depends(get_services)):
    """Switch display units; saved bounds are converted, not reinterpreted."""
    return services.preferences.set_units(units)


@router.post("/preferences/reset", response_model=PreferenceWindow)
def reset_preferences(services: Services = Depends(get_services)):
    """Restore the default preference window."""
    return services.preferences.reset()


@router.put("/selection", response_model=SelectionResponse)
async def put_selection(req: SelectionRequest, services: Services = Depends(get_services)):
    """Change the live selection and load its outlook."""
    timezone = _validate_timezone(req.timezone)
    start, end = _resolve_range(req.start, req.end, services.settings.forecast_days)
    location = Location(latitude=req.latitude, longitude=req.longitude, timezone=timezone, name=req.name)
    state = await services.orchestrator.select(location, start, end)
    return _selection_response(state, services.orchestrator.window)


@router.get("/selection", response_model=SelectionResponse)
def get_selection(services: Services = Depends(get_services)):
    """Return the live outlook, graded against the current preferences."""
    orchestrator = services.orchestrator
    return _selection_response(orchestrator.state, orchestrator.window)


@router.post("/cache/clear", response_model=CacheClearResponse)
def clear_cache(services: Services = Depends(get_services)):
    """Drop every cached forecast and historical summary."""
    removed = services.cache.clear()
    logger.info("Cache cleared", extra={"removed": removed})
    return CacheClearResponse(removed=removed)
