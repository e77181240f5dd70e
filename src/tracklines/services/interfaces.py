"""Abstract interface of the tracking session service."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..domain.views import TrackerEntryView, TrackerLineView


class TrackingServiceInterface(ABC):
    """Operations offered to the boundary layer.

    All operations raise ``NotFoundError``, ``ValidationError`` or
    ``StorageFailure`` from ``tracklines.core.errors``.
    """

    @abstractmethod
    async def create_tracker(self, label: str) -> TrackerEntryView:
        """Create a tracker."""
        pass

    @abstractmethod
    async def rename_tracker(self, entry_id: int, label: str) -> TrackerEntryView:
        """Rename a live tracker."""
        pass

    @abstractmethod
    async def get_trackers(self) -> List[TrackerEntryView]:
        """Live trackers, newest-created-first."""
        pass

    @abstractmethod
    async def get_tracker_lines(self, entry_id: Optional[int] = None) -> List[TrackerLineView]:
        """Live lines newest-first, each with its live segments."""
        pass

    @abstractmethod
    async def start_tracking(self, entry_id: int, desc: str) -> TrackerLineView:
        """Create a line and its first open segment."""
        pass

    @abstractmethod
    async def stop_tracking(self, line_id: int) -> TrackerLineView:
        """Close the line's open segment."""
        pass

    @abstractmethod
    async def resume_tracking(self, line_id: int) -> TrackerLineView:
        """Open a new segment on a paused line."""
        pass

    @abstractmethod
    async def update_tracked(self, line_id: int, desc: str) -> TrackerLineView:
        """Edit a line's description."""
        pass

    @abstractmethod
    async def remove_tracked(self, line_id: int) -> None:
        """Soft-delete a line."""
        pass

    @abstractmethod
    async def delete_tracker(self, entry_id: int) -> None:
        """Soft-delete a tracker and every line under it."""
        pass

    @abstractmethod
    async def stop_all_active_tracking(self) -> List[TrackerLineView]:
        """Stop every running line; return the ones stopped."""
        pass
