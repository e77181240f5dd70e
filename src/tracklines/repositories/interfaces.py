"""Abstract repository interfaces for the persistence gateway.

Every method may suspend on storage I/O. Implementations raise
``StorageFailure`` for driver errors and return ``None`` or an empty list
when nothing matches; they never raise ``NotFoundError`` themselves.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ..db.models import TrackerEntry, TrackerEntryLine, TrackerEntryLineDuration


class TrackerEntryRepository(ABC):
    """Repository interface for TrackerEntry rows."""

    @abstractmethod
    async def create(self, label: str, now: datetime) -> TrackerEntry:
        """Insert a new entry; storage assigns the id."""
        pass

    @abstractmethod
    async def get_by_id(
        self, entry_id: int, include_deleted: bool = False
    ) -> Optional[TrackerEntry]:
        """Get an entry by ID. Soft-deleted rows only when asked for."""
        pass

    @abstractmethod
    async def list_all(self) -> List[TrackerEntry]:
        """All non-deleted entries, newest-created-first."""
        pass

    @abstractmethod
    async def update_label(
        self, entry_id: int, label: str, now: datetime
    ) -> Optional[TrackerEntry]:
        """Rename a live entry. None if it is absent or deleted."""
        pass

    @abstractmethod
    async def soft_delete(self, entry_id: int, now: datetime) -> Optional[TrackerEntry]:
        """Mark a live entry deleted and return it. None if already gone."""
        pass


class TrackerLineRepository(ABC):
    """Repository interface for TrackerEntryLine rows."""

    @abstractmethod
    async def create(self, entry_id: int, desc: str, now: datetime) -> TrackerEntryLine:
        """Insert a new line started at ``now``."""
        pass

    @abstractmethod
    async def get_by_id(
        self, line_id: int, include_deleted: bool = False
    ) -> Optional[TrackerEntryLine]:
        """Get a line by ID. Soft-deleted rows only when asked for."""
        pass

    @abstractmethod
    async def list_all(self) -> List[TrackerEntryLine]:
        """All non-deleted lines, newest-created-first."""
        pass

    @abstractmethod
    async def list_for_entry(self, entry_id: int) -> List[TrackerEntryLine]:
        """Non-deleted lines of one entry, newest-created-first."""
        pass

    @abstractmethod
    async def update_desc(
        self, line_id: int, desc: str, now: datetime
    ) -> Optional[TrackerEntryLine]:
        """Edit a live line's description. None if it is absent or deleted."""
        pass

    @abstractmethod
    async def soft_delete(self, line_id: int, now: datetime) -> Optional[TrackerEntryLine]:
        """Mark a live line and its segments deleted. None if already gone."""
        pass

    @abstractmethod
    async def soft_delete_for_entry(
        self, entry_id: int, now: datetime
    ) -> List[TrackerEntryLine]:
        """Mark every live line of an entry (and their segments) deleted."""
        pass


class LineDurationRepository(ABC):
    """Repository interface for TrackerEntryLineDuration rows."""

    @abstractmethod
    async def create(
        self, line_id: int, started_at: datetime, now: datetime
    ) -> TrackerEntryLineDuration:
        """Insert an open segment for a line."""
        pass

    @abstractmethod
    async def list_for_line(self, line_id: int) -> List[TrackerEntryLineDuration]:
        """Non-deleted segments of a line, newest-started-first."""
        pass

    @abstractmethod
    async def list_for_lines(
        self, line_ids: Sequence[int]
    ) -> Dict[int, List[TrackerEntryLineDuration]]:
        """Non-deleted segments for several lines, keyed by line id."""
        pass

    @abstractmethod
    async def close(
        self, duration_id: int, ended_at: datetime, now: datetime
    ) -> Optional[TrackerEntryLineDuration]:
        """Set ``ended_at`` if the segment is still open and live.

        Returns None when the segment was already closed or deleted by the
        time the write executed.
        """
        pass


class RepositoryContainer:
    """Container for all repository interfaces to support dependency injection."""

    def __init__(
        self,
        entry_repo: TrackerEntryRepository,
        line_repo: TrackerLineRepository,
        duration_repo: LineDurationRepository,
    ):
        self.entry = entry_repo
        self.line = line_repo
        self.duration = duration_repo
