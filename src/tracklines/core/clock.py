"""Sources of "now" for the tracking service."""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional


class Clock(ABC):
    """Clock interface used for every timestamp the service writes."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        pass


class SystemClock(Clock):
    """Wall clock that never goes backwards within the process.

    If the system time steps back (NTP adjustment, manual change) the last
    returned value is repeated instead, so segment lengths stay non-negative.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = datetime.now(timezone.utc)
        with self._lock:
            if self._last is not None and current < self._last:
                current = self._last
            self._last = current
        return current


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
