"""Deterministic clock for service tests."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from tracklines.core.clock import Clock


class ManualClock(Clock):
    """Returns a fixed time until advanced."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 0, minutes: float = 0) -> datetime:
        self.current += timedelta(seconds=seconds, minutes=minutes)
        return self.current
