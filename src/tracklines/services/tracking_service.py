"""Tracking session service.

Owns the per-line state machine:

    start   : (none)  -> running   creates the line and its first open segment
    stop    : running -> paused    closes the open segment
    resume  : paused  -> running   opens a new segment
    remove  : any     -> deleted   soft-deletes the line (segments cascade)

Illegal transitions raise ``ValidationError``. Within one operation the
gateway calls are awaited strictly in sequence; mutations of the same line
are serialized by a per-line lock so that concurrent callers cannot open two
segments on one line. Starting a line and deleting its tracker share a
per-tracker lock, so no line is created under a tracker being deleted.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from .interfaces import TrackingServiceInterface
from ..core.clock import Clock, SystemClock
from ..core.errors import NotFoundError, ValidationError
from ..domain.durations import find_active
from ..domain.views import (
    TrackerEntryView,
    TrackerLineView,
    build_entry_view,
    build_line_view,
)
from ..events.channel import UpdateChannel
from ..events.schemas import TrackerUpdate
from ..repositories.interfaces import RepositoryContainer
from ..utils.logging_config import get_logger, log_exception

logger = get_logger('service')


class KeyedLocks:
    """One asyncio.Lock per id, discarded once nobody holds or waits on it."""

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}
        self._users: Dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, key: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class TrackingService(TrackingServiceInterface):
    """Default service over a repository container."""

    def __init__(
        self,
        repositories: RepositoryContainer,
        channel: Optional[UpdateChannel] = None,
        clock: Optional[Clock] = None,
    ):
        self.repos = repositories
        self.channel = channel
        self.clock = clock or SystemClock()
        self._line_locks = KeyedLocks()
        # Serializes line creation against tracker deletion
        self._entry_locks = KeyedLocks()

    # -- helpers -----------------------------------------------------------

    def _publish(self, update: TrackerUpdate) -> None:
        """Best-effort notification; the change is already persisted."""
        if self.channel is None:
            return
        try:
            self.channel.publish(update)
        except Exception as e:
            log_exception('propagation', e, {"entity": update.entity.value, "id": update.entity_id})

    @staticmethod
    def _check_label(label: Optional[str], entry_id: Optional[int] = None) -> str:
        if label is None or not label.strip():
            raise ValidationError("tracker", entry_id, "label must not be empty")
        return label

    async def _require_entry(self, entry_id: int):
        entry = await self.repos.entry.get_by_id(entry_id)
        if entry is None:
            raise NotFoundError("tracker", entry_id)
        return entry

    async def _require_line(self, line_id: int):
        line = await self.repos.line.get_by_id(line_id)
        if line is None:
            raise NotFoundError("line", line_id)
        return line

    async def _no_active_duration(self, line_id: int) -> None:
        """Raise for a line with nothing to stop; a line deleted meanwhile is not found."""
        await self._require_line(line_id)
        raise ValidationError("line", line_id, "has no active duration")

    async def _line_view(self, line) -> TrackerLineView:
        durations = await self.repos.duration.list_for_line(line.id)
        return build_line_view(line, durations, self.clock.now())

    # -- trackers ----------------------------------------------------------

    async def create_tracker(self, label: str) -> TrackerEntryView:
        label = self._check_label(label)
        entry = await self.repos.entry.create(label, self.clock.now())
        view = build_entry_view(entry)
        self._publish(TrackerUpdate.created(view))
        logger.info(f"Created tracker {view.id} '{view.label}'")
        return view

    async def rename_tracker(self, entry_id: int, label: str) -> TrackerEntryView:
        label = self._check_label(label, entry_id)
        entry = await self.repos.entry.update_label(entry_id, label, self.clock.now())
        if entry is None:
            raise NotFoundError("tracker", entry_id)
        view = build_entry_view(entry)
        self._publish(TrackerUpdate.updated(view))
        logger.info(f"Renamed tracker {entry_id} to '{label}'")
        return view

    async def get_trackers(self) -> List[TrackerEntryView]:
        entries = await self.repos.entry.list_all()
        return [build_entry_view(entry) for entry in entries]

    async def get_tracker_lines(self, entry_id: Optional[int] = None) -> List[TrackerLineView]:
        if entry_id is None:
            lines = await self.repos.line.list_all()
        else:
            await self._require_entry(entry_id)
            lines = await self.repos.line.list_for_entry(entry_id)

        durations = await self.repos.duration.list_for_lines([line.id for line in lines])
        now = self.clock.now()
        return [build_line_view(line, durations.get(line.id, []), now) for line in lines]

    async def delete_tracker(self, entry_id: int) -> None:
        async with self._entry_locks.hold(entry_id):
            await self._require_entry(entry_id)
            now = self.clock.now()

            # Lines go first so no reader sees a deleted tracker with live lines
            lines = await self.repos.line.soft_delete_for_entry(entry_id, now)
            entry = await self.repos.entry.soft_delete(entry_id, now)
            if entry is None:
                raise NotFoundError("tracker", entry_id)

        for line in lines:
            self._publish(TrackerUpdate.updated(build_line_view(line, [], now)))
        self._publish(TrackerUpdate.updated(build_entry_view(entry)))
        logger.info(f"Deleted tracker {entry_id} and {len(lines)} lines")

    # -- lines -------------------------------------------------------------

    async def start_tracking(self, entry_id: int, desc: str) -> TrackerLineView:
        async with self._entry_locks.hold(entry_id):
            await self._require_entry(entry_id)
            now = self.clock.now()

            line = await self.repos.line.create(entry_id, desc, now)
            # The segment needs the id the line insert produced
            duration = await self.repos.duration.create(line.id, now, now)

        view = build_line_view(line, [duration], now)
        self._publish(TrackerUpdate.created(view))
        logger.info(f"Started line {line.id} on tracker {entry_id}")
        return view

    async def stop_tracking(self, line_id: int) -> TrackerLineView:
        async with self._line_locks.hold(line_id):
            line = await self._require_line(line_id)
            active = find_active(await self.repos.duration.list_for_line(line_id))
            if active is None:
                await self._no_active_duration(line_id)

            now = self.clock.now()
            closed = await self.repos.duration.close(active.id, now, now)
            if closed is None:
                # Closed or deleted by another writer after we read it
                await self._no_active_duration(line_id)

            view = await self._line_view(line)

        self._publish(TrackerUpdate.updated(view))
        logger.info(f"Stopped line {line_id} (segment {active.id})")
        return view

    async def resume_tracking(self, line_id: int) -> TrackerLineView:
        async with self._line_locks.hold(line_id):
            line = await self._require_line(line_id)
            if find_active(await self.repos.duration.list_for_line(line_id)) is not None:
                raise ValidationError("line", line_id, "already has an active duration")

            now = self.clock.now()
            duration = await self.repos.duration.create(line_id, now, now)
            view = await self._line_view(line)

        self._publish(TrackerUpdate.updated(view))
        logger.info(f"Resumed line {line_id} (segment {duration.id})")
        return view

    async def update_tracked(self, line_id: int, desc: str) -> TrackerLineView:
        async with self._line_locks.hold(line_id):
            line = await self.repos.line.update_desc(line_id, desc, self.clock.now())
            if line is None:
                raise NotFoundError("line", line_id)
            view = await self._line_view(line)

        self._publish(TrackerUpdate.updated(view))
        logger.debug(f"Updated description of line {line_id}")
        return view

    async def remove_tracked(self, line_id: int) -> None:
        async with self._line_locks.hold(line_id):
            now = self.clock.now()
            line = await self.repos.line.soft_delete(line_id, now)
            if line is None:
                raise NotFoundError("line", line_id)

        self._publish(TrackerUpdate.updated(build_line_view(line, [], now)))
        logger.info(f"Removed line {line_id}")

    async def stop_all_active_tracking(self) -> List[TrackerLineView]:
        """Stop every running line, tolerating per-line failures.

        Each line is stopped independently. A failure is logged with the
        line id and the remaining lines are still stopped.

        Returns:
            Views of the lines that were stopped, newest line first
        """
        lines = await self.repos.line.list_all()
        durations = await self.repos.duration.list_for_lines([line.id for line in lines])
        running = [line for line in lines if find_active(durations.get(line.id, [])) is not None]
        if not running:
            logger.info("No active lines to stop")
            return []

        results = await asyncio.gather(
            *(self.stop_tracking(line.id) for line in running),
            return_exceptions=True,
        )

        stopped: List[TrackerLineView] = []
        for line, result in zip(running, results):
            if isinstance(result, Exception):
                log_exception('service', result, {"operation": "stop_all", "line_id": line.id})
            elif isinstance(result, BaseException):
                raise result
            else:
                stopped.append(result)

        logger.info(f"Stopped {len(stopped)} of {len(running)} active lines")
        return stopped
