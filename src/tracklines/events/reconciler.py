"""Single consumer task that keeps the view state in step with the service."""

import asyncio
from typing import Iterable, Optional

from .channel import UpdateChannel
from .view_state import TrackerViewState, ViewSnapshot
from ..domain.views import TrackerEntryView, TrackerLineView
from ..utils.logging_config import get_logger, log_exception

logger = get_logger('propagation')


class ViewReconciler:
    """Drains the update channel once per observation cycle.

    The reconciler never awaits I/O: a cycle is a non-blocking drain, a fold
    into ``TrackerViewState`` and the publication of a new snapshot.
    """

    consumer_name = "view-reconciler"

    def __init__(
        self,
        channel: UpdateChannel,
        state: Optional[TrackerViewState] = None,
        interval: float = 0.25,
    ):
        self.channel = channel
        self.state = state or TrackerViewState()
        self.interval = interval
        self._snapshot = self.state.snapshot()
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()
        self.cycles = 0

    @property
    def snapshot(self) -> ViewSnapshot:
        """Latest published snapshot. Safe to read from any task."""
        return self._snapshot

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def seed(self, trackers: Iterable[TrackerEntryView], lines: Iterable[TrackerLineView]) -> None:
        """Load state from a history read before the loop starts."""
        self.state.seed(trackers, lines)
        self._snapshot = self.state.snapshot()
        logger.info(
            f"View seeded with {len(self._snapshot.trackers)} trackers "
            f"and {len(self._snapshot.lines)} lines"
        )

    def observe(self) -> int:
        """Run one observation cycle. Returns the number of messages drained."""
        messages = self.channel.drain_nowait()
        changed = False
        for message in messages:
            try:
                changed = self.state.apply(message) or changed
            except Exception as e:
                log_exception('propagation', e, {"message": type(message).__name__})
        if changed:
            self._snapshot = self.state.snapshot()
        self.cycles += 1
        return len(messages)

    async def start(self) -> None:
        """Claim the channel and start the observation loop."""
        if self.running:
            return
        self.channel.claim(self.consumer_name)
        self._stopping.clear()
        self._task = asyncio.create_task(self._run(), name=self.consumer_name)
        logger.info(f"View reconciler started (interval {self.interval}s)")

    async def _run(self) -> None:
        while not self._stopping.is_set():
            self.observe()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    async def stop(self) -> None:
        """Stop the loop after a final drain."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        self.observe()
        self.channel.release(self.consumer_name)
        logger.info(f"View reconciler stopped after {self.cycles} cycles")
