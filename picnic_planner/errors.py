"""Exception taxonomy shared across the planner."""

from __future__ import annotations

from typing import Dict


class PicnicPlannerError(Exception):
    """Base class for planner errors."""


class PreferenceValidationError(PicnicPlannerError, ValueError):
    """A preference window failed validation; carries per-field messages."""

    def __init__(self, errors: Dict[str, str]) -> None:
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Invalid preference window: {fields}")


class ProviderError(PicnicPlannerError):
    """An upstream provider call failed or returned a non-success status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CacheCorruptionError(PicnicPlannerError):
    """A stored cache entry could not be decoded. Never escapes the cache."""


class PartialDataError(PicnicPlannerError):
    """The provider answered but had no data for the requested day."""


class OperationCancelled(PicnicPlannerError):
    """A superseded request observed its cancellation token."""
