"""Trailing-years historical context for a calendar day.

One archive lookup per past year is dispatched concurrently. A year whose
lookup fails keeps its slot in the summary as an empty record and is left out
of the averages; it never counts as zero.
"""

from __future__ import annotations

import asyncio
import calendar
import datetime as dt
from statistics import fmean
from typing import Iterable, List, Optional

from picnic_planner.cache import KeyedTTLCache
from picnic_planner.cancellation import CancellationToken
from picnic_planner.data_sources.base import WeatherProvider
from picnic_planner.errors import OperationCancelled, PartialDataError
from picnic_planner.measurements import (
    MEASUREMENT_FIELDS,
    HistoricalRecord,
    HistoricalSummary,
    Location,
    Measurement,
)
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="historical")

HISTORICAL_NAMESPACE = "historical"
DEFAULT_YEARS = 10
DEFAULT_HISTORICAL_TTL_SECONDS = 7 * 24 * 60 * 60


def same_day_in_year(day: dt.date, year: int) -> Optional[dt.date]:
    """Return ``day`` moved to ``year``, or None for 29 February in a non-leap year."""
    if day.month == 2 and day.day == 29 and not calendar.isleap(year):
        return None
    return day.replace(year=year)


def average_measurements(records: Iterable[HistoricalRecord]) -> Measurement:
    """Mean of present values per field, rounded to one decimal; absent when no year reported it."""
    records = list(records)
    averages = {}
    for name in MEASUREMENT_FIELDS:
        present = [getattr(r.measurement, name) for r in records
                   if getattr(r.measurement, name) is not None]
        averages[name] = round(fmean(present), 1) if present else None
    return Measurement(**averages)


class HistoricalAggregator:
    """Build and cache a HistoricalSummary for a location and calendar date."""

    def __init__(
        self,
        provider: WeatherProvider,
        cache: KeyedTTLCache,
        *,
        years: int = DEFAULT_YEARS,
        ttl_seconds: float = DEFAULT_HISTORICAL_TTL_SECONDS,
    ) -> None:
        if years < 1:
            raise ValueError("years must be at least 1")
        self.provider = provider
        self.cache = cache
        self.years = years
        self.ttl_seconds = ttl_seconds

    def cache_key(self, location: Location, day: dt.date):
        return self.cache.key(
            HISTORICAL_NAMESPACE,
            latitude=location.latitude,
            longitude=location.longitude,
            date=day,
            timezone=location.timezone,
            years=self.years,
        )

    async def _lookup(self, location: Location, day: dt.date, year: int,
                      token: Optional[CancellationToken]) -> HistoricalRecord:
        target = same_day_in_year(day, year)
        if target is None:
            raise PartialDataError(f"{day:%m-%d} does not exist in {year}")
        if token is not None:
            token.raise_if_cancelled()
        measurement = await asyncio.to_thread(
            self.provider.fetch_historical_day,
            location.latitude,
            location.longitude,
            target,
            timezone=location.timezone,
        )
        return HistoricalRecord(year=year, date=target, measurement=measurement)

    async def aggregate(self, location: Location, day: dt.date, *,
                        token: Optional[CancellationToken] = None) -> HistoricalSummary:
        """Return the summary for ``day`` over the trailing years, newest year first.

        Raises OperationCancelled if ``token`` was cancelled by the time every
        lookup settled. A summary whose lookups all settled without a
        transient failure is cached first, even when it is then discarded.
        """
        key = self.cache_key(location, day)
        cached = self.cache.get(key, decode=HistoricalSummary.from_dict)
        if cached is not None:
            logger.debug("Historical cache hit", extra={"date": day.isoformat()})
            return cached

        years: List[int] = [day.year - offset for offset in range(1, self.years + 1)]
        logger.info("Aggregating historical context",
                    extra={"date": day.isoformat(), "years": len(years),
                           "latitude": location.latitude, "longitude": location.longitude})
        results = await asyncio.gather(
            *(self._lookup(location, day, year, token) for year in years),
            return_exceptions=True,
        )

        records: List[HistoricalRecord] = []
        transient_failures = 0
        skipped = 0
        for year, result in zip(years, results):
            if isinstance(result, HistoricalRecord):
                records.append(result)
                continue
            if not isinstance(result, Exception):
                raise result
            if isinstance(result, OperationCancelled):
                skipped += 1
                records.append(HistoricalRecord(year=year, date=same_day_in_year(day, year)))
                continue
            if not isinstance(result, PartialDataError):
                transient_failures += 1
            logger.warning("Historical lookup degraded to an empty record",
                           extra={"year": year, "error": str(result),
                                  "error_type": type(result).__name__})
            records.append(HistoricalRecord(year=year, date=same_day_in_year(day, year)))

        summary = HistoricalSummary(date=day, records=records, averages=average_measurements(records))
        if transient_failures or skipped:
            logger.info("Not caching incomplete historical summary",
                        extra={"date": day.isoformat(), "failed": transient_failures, "skipped": skipped})
        else:
            self.cache.put(key, summary.to_dict(), ttl=self.ttl_seconds)

        if token is not None and token.cancelled:
            raise OperationCancelled(token.reason or "cancelled")
        return summary
