"""Rated forecast outlook: cache, provider fetch and classification composed.

Only raw (ungraded) forecast days are ever cached. Grades are derived on every
read from the current preference window, so a preference change re-grades
held or cached days without a network round trip while a new location or
date range forces a fetch.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import threading
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from picnic_planner.cache import CacheKey, KeyedTTLCache
from picnic_planner.cancellation import CancellationToken
from picnic_planner.classifier import grade_days
from picnic_planner.data_sources.base import WeatherProvider
from picnic_planner.domain import PreferenceWindow
from picnic_planner.errors import OperationCancelled, ProviderError
from picnic_planner.historical import HistoricalAggregator
from picnic_planner.measurements import (
    ForecastDay,
    HistoricalSummary,
    Location,
    RatedDay,
    forecast_days_from_payload,
    forecast_days_to_payload,
)
from picnic_planner.preferences import PreferenceStore
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="orchestrator")

FORECAST_NAMESPACE = "forecast"
DEFAULT_FORECAST_DAYS = 14
DEFAULT_FORECAST_TTL_SECONDS = 6 * 60 * 60


def default_range(today: dt.date, days: int = DEFAULT_FORECAST_DAYS) -> Tuple[dt.date, dt.date]:
    """Return ``(today, today + days - 1)``."""
    if days < 1:
        raise ValueError("days must be at least 1")
    return today, today + dt.timedelta(days=days - 1)


@dataclass(frozen=True)
class Selection:
    """What the live consumer currently wants to see."""
    location: Location
    start_date: dt.date
    end_date: dt.date


@dataclass
class OutlookState:
    """Snapshot of the live outlook: the selection, its graded days and any error."""
    selection: Optional[Selection] = None
    days: List[RatedDay] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


class ForecastOrchestrator:
    """Produce graded outlooks and keep a live one in step with preferences.

    The orchestrator subscribes to the preference store on construction and
    stays subscribed until ``close()``.
    """

    def __init__(
        self,
        provider: WeatherProvider,
        cache: KeyedTTLCache,
        preferences: PreferenceStore,
        *,
        aggregator: Optional[HistoricalAggregator] = None,
        ttl_seconds: float = DEFAULT_FORECAST_TTL_SECONDS,
        forecast_days: int = DEFAULT_FORECAST_DAYS,
    ) -> None:
        self.provider = provider
        self.cache = cache
        self.preferences = preferences
        self.aggregator = aggregator
        self.ttl_seconds = ttl_seconds
        self.forecast_days = forecast_days

        self._lock = threading.Lock()
        self._window = preferences.load()
        self._state = OutlookState()
        self._raw_days: List[ForecastDay] = []
        self._outlook_token: Optional[CancellationToken] = None
        self._history_request: Optional[Tuple[Location, dt.date]] = None
        self._history_token: Optional[CancellationToken] = None
        self._unsubscribe = preferences.subscribe(self._on_preferences_changed)

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    @property
    def window(self) -> PreferenceWindow:
        with self._lock:
            return self._window

    @property
    def state(self) -> OutlookState:
        with self._lock:
            return self._state

    def _on_preferences_changed(self, window: PreferenceWindow) -> None:
        """Re-grade held raw days against the new window; no fetch."""
        with self._lock:
            self._window = window
            if self._raw_days:
                self._state = replace(self._state, days=grade_days(self._raw_days, window))
        logger.debug("Preferences changed; outlook re-graded", extra={"days": len(self._raw_days)})

    def close(self) -> None:
        """Stop observing preferences and cancel outstanding work."""
        self._unsubscribe()
        with self._lock:
            for token in (self._outlook_token, self._history_token):
                if token is not None:
                    token.cancel("closed")

    # ------------------------------------------------------------------
    # Stateless outlook
    # ------------------------------------------------------------------

    def cache_key(self, location: Location, start_date: dt.date, end_date: dt.date) -> CacheKey:
        return self.cache.key(
            FORECAST_NAMESPACE,
            latitude=location.latitude,
            longitude=location.longitude,
            start=start_date,
            end=end_date,
            timezone=location.timezone,
        )

    async def fetch_raw_days(
        self,
        location: Location,
        start_date: dt.date,
        end_date: dt.date,
        *,
        token: Optional[CancellationToken] = None,
    ) -> List[ForecastDay]:
        """Return raw days from cache, or fetch them once and cache them.

        Any provider failure surfaces as ProviderError with the cause attached
        and leaves the cache untouched.
        """
        if end_date < start_date:
            raise ValueError("end_date must not precede start_date")
        key = self.cache_key(location, start_date, end_date)
        cached = self.cache.get(key, decode=forecast_days_from_payload)
        if cached is not None:
            logger.debug("Forecast cache hit", extra={"start": start_date.isoformat(), "end": end_date.isoformat()})
            return cached

        if token is not None:
            token.raise_if_cancelled()
        try:
            days = await asyncio.to_thread(
                self.provider.fetch_daily_forecast,
                location.latitude,
                location.longitude,
                start_date=start_date,
                end_date=end_date,
                timezone=location.timezone,
            )
        except ProviderError as exc:
            logger.error("Forecast fetch failed", extra={"error": str(exc), "status_code": exc.status_code})
            raise
        except Exception as exc:
            logger.error("Forecast fetch failed", extra={"error": str(exc), "error_type": type(exc).__name__})
            raise ProviderError(f"Forecast fetch failed: {exc}") from exc

        days = list(days)
        if days:
            self.cache.put(key, forecast_days_to_payload(days), ttl=self.ttl_seconds)
        return days

    async def get_rated_outlook(
        self,
        location: Location,
        start_date: dt.date,
        end_date: dt.date,
        window: Optional[PreferenceWindow] = None,
        *,
        token: Optional[CancellationToken] = None,
    ) -> List[RatedDay]:
        """Return ``(date, measurement, grade)`` for every day in range, ascending.

        ``window`` defaults to the latest saved preferences.
        """
        days = await self.fetch_raw_days(location, start_date, end_date, token=token)
        return grade_days(days, window or self.window)

    # ------------------------------------------------------------------
    # Live selection
    # ------------------------------------------------------------------

    def _is_current(self, selection: Selection, token: CancellationToken) -> bool:
        with self._lock:
            return self._outlook_token is token and self._state.selection == selection

    async def select(
        self,
        location: Location,
        start_date: Optional[dt.date] = None,
        end_date: Optional[dt.date] = None,
    ) -> OutlookState:
        """Make ``location``/range the live selection and load its outlook.

        A result that arrives after a newer selection was made is dropped and
        the newer state is returned unchanged. A provider failure clears the
        days and records the error. An omitted end spans ``forecast_days``
        from the start; an end before the start raises ValueError and leaves
        the live state untouched.
        """
        if start_date is None:
            start_date = dt.date.today()
        if end_date is None:
            end_date = default_range(start_date, self.forecast_days)[1]
        if end_date < start_date:
            raise ValueError("end_date must not precede start_date")
        selection = Selection(location=location, start_date=start_date, end_date=end_date)
        token = CancellationToken()
        with self._lock:
            if self._outlook_token is not None:
                self._outlook_token.cancel("superseded")
            self._outlook_token = token
            self._raw_days = []
            self._state = OutlookState(selection=selection, loading=True)

        try:
            raw_days = await self.fetch_raw_days(location, start_date, end_date, token=token)
        except OperationCancelled:
            logger.debug("Outlook request superseded before dispatch")
            return self.state
        except ProviderError as exc:
            if not self._is_current(selection, token):
                return self.state
            with self._lock:
                self._state = OutlookState(selection=selection, days=[], loading=False, error=str(exc))
                return self._state

        if not self._is_current(selection, token):
            logger.debug("Discarding stale outlook",
                         extra={"start": start_date.isoformat(), "end": end_date.isoformat()})
            return self.state
        with self._lock:
            self._raw_days = raw_days
            self._state = OutlookState(
                selection=selection,
                days=grade_days(raw_days, self._window),
                loading=False,
            )
            return self._state

    async def historical(self, location: Location, day: dt.date) -> Optional[HistoricalSummary]:
        """Load historical context for ``day``; None if a newer request superseded this one."""
        if self.aggregator is None:
            raise RuntimeError("No historical aggregator configured")
        request = (location, day)
        token = CancellationToken()
        with self._lock:
            if self._history_token is not None:
                self._history_token.cancel("superseded")
            self._history_token = token
            self._history_request = request

        try:
            summary = await self.aggregator.aggregate(location, day, token=token)
        except OperationCancelled:
            return None

        with self._lock:
            if self._history_token is not token or self._history_request != request:
                logger.debug("Discarding stale historical summary", extra={"date": day.isoformat()})
                return None
        return summary
