"""Process-wide service wiring: store, cache, preferences, provider and orchestration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from picnic_planner import config
from picnic_planner.cache import KeyedTTLCache, build_cache
from picnic_planner.data_sources import WeatherProvider, build_provider
from picnic_planner.historical import HistoricalAggregator
from picnic_planner.kv_store import KeyValueStore, build_store
from picnic_planner.orchestrator import ForecastOrchestrator
from picnic_planner.preferences import PreferenceStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="services")


@dataclass
class Services:
    """Everything a request handler needs, injected through ``app.state``."""
    settings: config.Settings
    store: KeyValueStore
    cache: KeyedTTLCache
    preferences: PreferenceStore
    provider: WeatherProvider
    aggregator: HistoricalAggregator
    orchestrator: ForecastOrchestrator

    def close(self) -> None:
        self.orchestrator.close()


def build_services(
    settings: Optional[config.Settings] = None,
    *,
    provider: Optional[WeatherProvider] = None,
    store: Optional[KeyValueStore] = None,
) -> Services:
    """Wire store -> cache -> preferences -> provider -> aggregator -> orchestrator.

    ``provider`` and ``store`` override the configured ones (tests, alternate
    backends). Building the cache purges entries from older cache versions.
    """
    settings = settings or config.settings
    store = store if store is not None else build_store(settings)
    cache = build_cache(store, settings)
    preferences = PreferenceStore(store)
    provider = provider if provider is not None else build_provider(settings)
    aggregator = HistoricalAggregator(
        provider,
        cache,
        years=settings.history_years,
        ttl_seconds=settings.historical_ttl_seconds,
    )
    orchestrator = ForecastOrchestrator(
        provider,
        cache,
        preferences,
        aggregator=aggregator,
        ttl_seconds=settings.forecast_ttl_seconds,
        forecast_days=settings.forecast_days,
    )
    logger.info("Services initialized", extra={"store": type(store).__name__, "cache_version": cache.version})
    return Services(
        settings=settings,
        store=store,
        cache=cache,
        preferences=preferences,
        provider=provider,
        aggregator=aggregator,
        orchestrator=orchestrator,
    )
