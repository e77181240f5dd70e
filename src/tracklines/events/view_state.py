"""Authoritative in-memory view of trackers and lines.

Only the reconciler task mutates a ``TrackerViewState``. Everyone else reads
the immutable ``ViewSnapshot`` it publishes after each observation cycle.
"""

from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field  # type: ignore

from .schemas import ChannelMessage, SelectionChange, TrackerUpdate
from ..core.clock import ensure_utc
from ..core.enums import EntityKind
from ..domain.views import TrackerEntryView, TrackerLineView
from ..utils.logging_config import get_logger

logger = get_logger('propagation')

# Oldest tombstones are forgotten past this many per entity kind
MAX_TOMBSTONES = 4096


class ViewSnapshot(BaseModel):
    """What a UI or RPC client should currently display."""

    model_config = ConfigDict(frozen=True)

    version: int = 0
    trackers: List[TrackerEntryView] = Field(default_factory=list)
    lines: List[TrackerLineView] = Field(default_factory=list)
    selected_tracker_id: Optional[int] = None
    active_line_id: Optional[int] = None
    active_line_ids: List[int] = Field(default_factory=list)
    history: List[TrackerLineView] = Field(default_factory=list)


def _revision(view) -> datetime:
    """Newest timestamp carried by a view; lines also count their segments."""
    stamps = [ensure_utc(view.updated_at)]
    for duration in getattr(view, "durations", ()):
        stamps.append(ensure_utc(duration.updated_at))
    return max(stamps)


class Tombstones:
    """Insertion-ordered set of deleted ids with a size cap."""

    def __init__(self, limit: int = MAX_TOMBSTONES):
        self.limit = limit
        self._ids: "OrderedDict[int, None]" = OrderedDict()

    def add(self, item_id: int) -> None:
        self._ids[item_id] = None
        self._ids.move_to_end(item_id)
        while len(self._ids) > self.limit:
            self._ids.popitem(last=False)

    def clear(self) -> None:
        self._ids.clear()

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)


def _newest_first(views: Iterable, key=lambda v: v.created_at) -> List:
    return sorted(views, key=lambda v: (ensure_utc(key(v)), v.id), reverse=True)


class TrackerViewState:
    """Folds channel messages into trackers, lines, selection and active line."""

    def __init__(self, tombstone_limit: int = MAX_TOMBSTONES):
        self._trackers: Dict[int, TrackerEntryView] = {}
        self._lines: Dict[int, TrackerLineView] = {}
        self._deleted_trackers = Tombstones(tombstone_limit)
        self._deleted_lines = Tombstones(tombstone_limit)
        self.selected_tracker_id: Optional[int] = None
        self.version = 0

    def seed(self, trackers: Iterable[TrackerEntryView], lines: Iterable[TrackerLineView]) -> None:
        """Replace the state with a fresh history read."""
        self._trackers = {t.id: t for t in trackers if not t.is_deleted}
        self._lines = {
            line.id: line for line in lines
            if not line.is_deleted and line.entry_id in self._trackers
        }
        self._deleted_trackers.clear()
        self._deleted_lines.clear()
        if self.selected_tracker_id not in self._trackers:
            self.selected_tracker_id = None
        self.version += 1

    def apply(self, message: ChannelMessage) -> bool:
        """Fold one message. Returns True if anything visible changed."""
        if isinstance(message, SelectionChange):
            changed = self._apply_selection(message)
        elif isinstance(message, TrackerUpdate):
            if message.entity == EntityKind.ENTRY:
                changed = self._apply_entry(message.payload)
            else:
                changed = self._apply_line(message.payload)
        else:
            logger.warning(f"Ignoring unknown channel message {type(message).__name__}")
            changed = False

        if changed:
            self.version += 1
        return changed

    def _apply_selection(self, change: SelectionChange) -> bool:
        if change.tracker_id is not None and change.tracker_id not in self._trackers:
            logger.debug(f"Selection of unknown tracker {change.tracker_id} ignored")
            return False
        if change.tracker_id == self.selected_tracker_id:
            return False
        self.selected_tracker_id = change.tracker_id
        return True

    def _is_stale(self, current, incoming) -> bool:
        return current is not None and _revision(incoming) < _revision(current)

    def _apply_entry(self, entry: TrackerEntryView) -> bool:
        if entry.id in self._deleted_trackers:
            return False
        if self._is_stale(self._trackers.get(entry.id), entry):
            logger.debug(f"Stale update for tracker {entry.id} ignored")
            return False

        if entry.is_deleted:
            self._deleted_trackers.add(entry.id)
            self._trackers.pop(entry.id, None)
            for line_id in [lid for lid, line in self._lines.items() if line.entry_id == entry.id]:
                self._deleted_lines.add(line_id)
                del self._lines[line_id]
            if self.selected_tracker_id == entry.id:
                self.selected_tracker_id = None
            return True

        self._trackers[entry.id] = entry
        return True

    def _apply_line(self, line: TrackerLineView) -> bool:
        if line.id in self._deleted_lines or line.entry_id in self._deleted_trackers:
            return False
        if self._is_stale(self._lines.get(line.id), line):
            logger.debug(f"Stale update for line {line.id} ignored")
            return False

        if line.is_deleted:
            self._deleted_lines.add(line.id)
            self._lines.pop(line.id, None)
            return True

        self._lines[line.id] = line
        return True

    def active_lines(self) -> List[TrackerLineView]:
        """Running lines, most recently (re)started first."""
        running = [line for line in self._lines.values() if line.is_running]
        return sorted(
            running,
            key=lambda line: (ensure_utc(line.active_duration.started_at), line.id),
            reverse=True,
        )

    def snapshot(self) -> ViewSnapshot:
        lines = _newest_first(self._lines.values())
        active = self.active_lines()
        history = [line for line in lines if line.entry_id == self.selected_tracker_id]
        return ViewSnapshot(
            version=self.version,
            trackers=_newest_first(self._trackers.values()),
            lines=lines,
            selected_tracker_id=self.selected_tracker_id,
            # Only one line is surfaced as "the" active one
            active_line_id=active[0].id if active else None,
            active_line_ids=[line.id for line in active],
            history=history,
        )
