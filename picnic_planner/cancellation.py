"""Cooperative cancellation shared by concurrent fetch branches."""

from __future__ import annotations

import threading
from typing import Optional

from picnic_planner.errors import OperationCancelled


class CancellationToken:
    """A one-way flag checked by branches before doing more work.

    Setting the flag never interrupts a request already on the wire; it only
    stops branches that have not dispatched yet and lets the owner discard the
    result once the group settles. Safe to share across worker threads.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "superseded") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled(self._reason or "cancelled")
