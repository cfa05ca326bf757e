"""Persisted preference window with change notification."""

from __future__ import annotations

import json
import threading
from typing import Callable, List

from pydantic import ValidationError

from picnic_planner.domain import DisplayUnits, PreferenceWindow
from picnic_planner.errors import PreferenceValidationError
from picnic_planner.kv_store import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="preferences")

DEFAULT_PREFERENCES_KEY = "simple_picnic_preferences"

PreferenceListener = Callable[[PreferenceWindow], None]


class PreferenceStore:
    """Load/save the user's preference window and notify subscribers on change.

    Stored values are merged over the defaults on load, so a payload written
    before a field existed still loads. A missing or unreadable payload loads
    as the defaults.
    """

    def __init__(self, backend: KeyValueStore, key: str = DEFAULT_PREFERENCES_KEY) -> None:
        self.backend = backend
        self.key = key
        self._listeners: List[PreferenceListener] = []
        self._lock = threading.Lock()

    def load(self) -> PreferenceWindow:
        raw = self.backend.get(self.key)
        if raw is None:
            return PreferenceWindow()
        try:
            stored = json.loads(raw)
            if not isinstance(stored, dict):
                raise ValueError("stored preferences are not an object")
            merged = {**PreferenceWindow().model_dump(mode="json"), **stored}
            return PreferenceWindow.model_validate(merged)
        except (ValueError, ValidationError) as exc:
            logger.error("Error loading preferences; using defaults", extra={"error": str(exc)})
            return PreferenceWindow()

    def save(self, window: PreferenceWindow) -> PreferenceWindow:
        """Persist ``window`` and notify subscribers.

        Raises PreferenceValidationError (nothing is written) when any min
        exceeds its max.
        """
        errors = window.validation_errors()
        if errors:
            raise PreferenceValidationError(errors)
        self.backend.set(self.key, window.model_dump_json())
        logger.info("Preferences saved", extra={"units": window.units.model_dump(mode="json")})
        self._notify(window)
        return window

    def reset(self) -> PreferenceWindow:
        return self.save(PreferenceWindow())

    def set_units(self, units: DisplayUnits) -> PreferenceWindow:
        """Switch display units, converting the saved bounds so their meaning is kept."""
        return self.save(self.load().in_units(units))

    def subscribe(self, listener: PreferenceListener) -> Callable[[], None]:
        """Register ``listener``; the returned callable unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def _notify(self, window: PreferenceWindow) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(window)
            except Exception:
                logger.exception("Preference listener failed")
