"""Duration segment arithmetic.

Functions here accept anything shaped like a duration row (ORM instance or
view) exposing ``started_at``, ``ended_at`` and ``is_deleted``.
"""

from datetime import datetime
from typing import Iterable, List, Optional, TypeVar

from ..core.clock import ensure_utc
from ..core.enums import LineState

D = TypeVar("D")


def live_segments(durations: Iterable[D]) -> List[D]:
    """Drop soft-deleted segments."""
    return [d for d in durations if not getattr(d, "is_deleted", False)]


def open_segments(durations: Iterable[D]) -> List[D]:
    """Live segments that have not been closed."""
    return [d for d in live_segments(durations) if d.ended_at is None]


def find_active(durations: Iterable[D]) -> Optional[D]:
    """Return the running segment, if any.

    More than one open segment means the line invariant was broken by an
    out-of-band writer; the most recently started one is reported.
    """
    candidates = open_segments(durations)
    if not candidates:
        return None
    return max(candidates, key=lambda d: ensure_utc(d.started_at))


def line_state(durations: Iterable[D]) -> LineState:
    """Running if one segment is open, otherwise paused."""
    return LineState.RUNNING if find_active(durations) is not None else LineState.PAUSED


def segment_seconds(duration, now: datetime) -> float:
    """Length of one segment, using ``now`` for an open one. Never negative."""
    started = ensure_utc(duration.started_at)
    ended = ensure_utc(duration.ended_at) if duration.ended_at is not None else ensure_utc(now)
    return max((ended - started).total_seconds(), 0.0)


def total_elapsed_seconds(durations: Iterable[D], now: datetime) -> float:
    """Sum of segment lengths over live segments."""
    return sum(segment_seconds(d, now) for d in live_segments(durations))


def sort_newest_started_first(durations: Iterable[D]) -> List[D]:
    """Order segments newest-started-first, ties broken by id."""
    return sorted(
        durations,
        key=lambda d: (ensure_utc(d.started_at), d.id or 0),
        reverse=True,
    )
