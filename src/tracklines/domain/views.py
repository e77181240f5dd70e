"""View projections handed out by the tracking service.

Views are immutable snapshots. They never hold a reference to a storage row,
so they can cross task boundaries and be published on the update channel.
"""

from datetime import datetime
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field  # type: ignore

from ..core.enums import LineState
from .durations import (
    line_state,
    live_segments,
    sort_newest_started_first,
    total_elapsed_seconds,
)


class BaseView(BaseModel):
    """Base view with ORM attribute loading."""

    model_config = ConfigDict(from_attributes=True, frozen=True)


class TrackerEntryView(BaseView):
    """A tracker as seen by callers."""

    id: int
    label: str
    created_at: datetime
    updated_at: datetime
    is_deleted: bool = False


class LineDurationView(BaseView):
    """One duration segment of a line."""

    id: int
    entry_line_id: int
    started_at: datetime
    ended_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.ended_at is None


class TrackerLineView(BaseView):
    """A line together with its live segments, newest-started-first."""

    id: int
    entry_id: int
    desc: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    is_deleted: bool = False
    durations: List[LineDurationView] = Field(default_factory=list)
    state: LineState = LineState.PAUSED
    elapsed_seconds: float = 0.0

    @property
    def active_duration(self) -> Optional[LineDurationView]:
        for duration in self.durations:
            if duration.ended_at is None:
                return duration
        return None

    @property
    def is_running(self) -> bool:
        return self.state == LineState.RUNNING


def build_entry_view(entry) -> TrackerEntryView:
    """Project a stored entry."""
    return TrackerEntryView.model_validate(entry)


def build_line_view(line, durations: Sequence, now: datetime) -> TrackerLineView:
    """Project a stored line and its segments.

    Soft-deleted segments are dropped; state and elapsed time are computed
    against ``now``.
    """
    segments = sort_newest_started_first(live_segments(durations))
    return TrackerLineView(
        id=line.id,
        entry_id=line.entry_id,
        desc=line.desc,
        started_at=line.started_at,
        ended_at=line.ended_at,
        created_at=line.created_at,
        updated_at=line.updated_at,
        is_deleted=bool(line.is_deleted),
        durations=[LineDurationView.model_validate(d) for d in segments],
        state=line_state(segments),
        elapsed_seconds=total_elapsed_seconds(segments, now),
    )
