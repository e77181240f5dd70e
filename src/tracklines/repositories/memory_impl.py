"""In-memory implementations of repository interfaces for testing."""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .interfaces import (
    TrackerEntryRepository,
    TrackerLineRepository,
    LineDurationRepository,
    RepositoryContainer,
)
from ..db.models import TrackerEntry, TrackerEntryLine, TrackerEntryLineDuration


def _clone(row):
    """Detached copy so callers cannot mutate stored state."""
    copy = type(row)()
    for column in row.__table__.columns:
        setattr(copy, column.key, getattr(row, column.key))
    return copy


class MemoryStore:
    """Rows shared by the three memory repositories, so cascades can reach across them."""

    def __init__(self):
        self.entries: Dict[int, TrackerEntry] = {}
        self.lines: Dict[int, TrackerEntryLine] = {}
        self.durations: Dict[int, TrackerEntryLineDuration] = {}
        self._sequences: Dict[str, int] = {"entry": 0, "line": 0, "duration": 0}

    def next_id(self, table: str) -> int:
        self._sequences[table] += 1
        return self._sequences[table]

    def clear(self) -> None:
        """Drop every row and restart ids (the truncate utility)."""
        self.entries.clear()
        self.lines.clear()
        self.durations.clear()
        self._sequences = {"entry": 0, "line": 0, "duration": 0}

    def cascade_line_delete(self, line_id: int, now: datetime) -> None:
        for duration in self.durations.values():
            if duration.entry_line_id == line_id and not duration.is_deleted:
                duration.is_deleted = True
                duration.updated_at = now


class BaseMemoryRepository:
    """Base in-memory repository implementation."""

    def __init__(self, store: MemoryStore):
        self._store = store

    async def _suspend(self) -> None:
        # Every real driver call is a suspension point; keep that true here
        await asyncio.sleep(0)


class MemoryTrackerEntryRepository(BaseMemoryRepository, TrackerEntryRepository):
    """In-memory implementation of TrackerEntryRepository."""

    async def create(self, label: str, now: datetime) -> TrackerEntry:
        await self._suspend()
        entry = TrackerEntry(
            id=self._store.next_id("entry"),
            label=label,
            created_at=now,
            updated_at=now,
            is_deleted=False,
        )
        self._store.entries[entry.id] = entry
        return _clone(entry)

    async def get_by_id(
        self, entry_id: int, include_deleted: bool = False
    ) -> Optional[TrackerEntry]:
        await self._suspend()
        entry = self._store.entries.get(entry_id)
        if entry is None or (entry.is_deleted and not include_deleted):
            return None
        return _clone(entry)

    async def list_all(self) -> List[TrackerEntry]:
        await self._suspend()
        entries = [e for e in self._store.entries.values() if not e.is_deleted]
        entries.sort(key=lambda e: (e.created_at, e.id), reverse=True)
        return [_clone(e) for e in entries]

    async def update_label(
        self, entry_id: int, label: str, now: datetime
    ) -> Optional[TrackerEntry]:
        await self._suspend()
        entry = self._store.entries.get(entry_id)
        if entry is None or entry.is_deleted:
            return None
        entry.label = label
        entry.updated_at = now
        return _clone(entry)

    async def soft_delete(self, entry_id: int, now: datetime) -> Optional[TrackerEntry]:
        await self._suspend()
        entry = self._store.entries.get(entry_id)
        if entry is None or entry.is_deleted:
            return None
        entry.is_deleted = True
        entry.updated_at = now
        return _clone(entry)


class MemoryTrackerLineRepository(BaseMemoryRepository, TrackerLineRepository):
    """In-memory implementation of TrackerLineRepository."""

    async def create(self, entry_id: int, desc: str, now: datetime) -> TrackerEntryLine:
        await self._suspend()
        line = TrackerEntryLine(
            id=self._store.next_id("line"),
            entry_id=entry_id,
            desc=desc,
            started_at=now,
            ended_at=None,
            created_at=now,
            updated_at=now,
            is_deleted=False,
        )
        self._store.lines[line.id] = line
        return _clone(line)

    async def get_by_id(
        self, line_id: int, include_deleted: bool = False
    ) -> Optional[TrackerEntryLine]:
        await self._suspend()
        line = self._store.lines.get(line_id)
        if line is None or (line.is_deleted and not include_deleted):
            return None
        return _clone(line)

    async def list_all(self) -> List[TrackerEntryLine]:
        await self._suspend()
        lines = [line for line in self._store.lines.values() if not line.is_deleted]
        lines.sort(key=lambda line: (line.created_at, line.id), reverse=True)
        return [_clone(line) for line in lines]

    async def list_for_entry(self, entry_id: int) -> List[TrackerEntryLine]:
        return [line for line in await self.list_all() if line.entry_id == entry_id]

    async def update_desc(
        self, line_id: int, desc: str, now: datetime
    ) -> Optional[TrackerEntryLine]:
        await self._suspend()
        line = self._store.lines.get(line_id)
        if line is None or line.is_deleted:
            return None
        line.desc = desc
        line.updated_at = now
        return _clone(line)

    async def soft_delete(self, line_id: int, now: datetime) -> Optional[TrackerEntryLine]:
        await self._suspend()
        line = self._store.lines.get(line_id)
        if line is None or line.is_deleted:
            return None
        self._store.cascade_line_delete(line_id, now)
        line.is_deleted = True
        line.updated_at = now
        return _clone(line)

    async def soft_delete_for_entry(
        self, entry_id: int, now: datetime
    ) -> List[TrackerEntryLine]:
        await self._suspend()
        deleted = []
        for line in self._store.lines.values():
            if line.entry_id == entry_id and not line.is_deleted:
                self._store.cascade_line_delete(line.id, now)
                line.is_deleted = True
                line.updated_at = now
                deleted.append(_clone(line))
        deleted.sort(key=lambda line: (line.created_at, line.id), reverse=True)
        return deleted


class MemoryLineDurationRepository(BaseMemoryRepository, LineDurationRepository):
    """In-memory implementation of LineDurationRepository."""

    async def create(
        self, line_id: int, started_at: datetime, now: datetime
    ) -> TrackerEntryLineDuration:
        await self._suspend()
        duration = TrackerEntryLineDuration(
            id=self._store.next_id("duration"),
            entry_line_id=line_id,
            started_at=started_at,
            ended_at=None,
            created_at=now,
            updated_at=now,
            is_deleted=False,
        )
        self._store.durations[duration.id] = duration
        return _clone(duration)

    def _live_for_line(self, line_id: int) -> List[TrackerEntryLineDuration]:
        durations = [
            d for d in self._store.durations.values()
            if d.entry_line_id == line_id and not d.is_deleted
        ]
        durations.sort(key=lambda d: (d.started_at, d.id), reverse=True)
        return [_clone(d) for d in durations]

    async def list_for_line(self, line_id: int) -> List[TrackerEntryLineDuration]:
        await self._suspend()
        return self._live_for_line(line_id)

    async def list_for_lines(
        self, line_ids: Sequence[int]
    ) -> Dict[int, List[TrackerEntryLineDuration]]:
        await self._suspend()
        return {line_id: self._live_for_line(line_id) for line_id in line_ids}

    async def close(
        self, duration_id: int, ended_at: datetime, now: datetime
    ) -> Optional[TrackerEntryLineDuration]:
        await self._suspend()
        duration = self._store.durations.get(duration_id)
        if duration is None or duration.is_deleted or duration.ended_at is not None:
            return None
        duration.ended_at = ended_at
        duration.updated_at = now
        return _clone(duration)


def create_memory_container(store: Optional[MemoryStore] = None) -> RepositoryContainer:
    """Repository container backed by one shared MemoryStore."""
    store = store or MemoryStore()
    return RepositoryContainer(
        entry_repo=MemoryTrackerEntryRepository(store),
        line_repo=MemoryTrackerLineRepository(store),
        duration_repo=MemoryLineDurationRepository(store),
    )
