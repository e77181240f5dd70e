"""Mailbox between the tracking service and the view reconciler.

Any number of producers publish; exactly one consumer drains. Publishing
never blocks and never raises into the producer: by the time a message is
published the change is already durable, so a lost notification only
delays the view until the next history read.
"""

import asyncio
from typing import List, Optional

from .schemas import ChannelMessage
from ..utils.logging_config import get_logger

logger = get_logger('propagation')


class UpdateChannel:
    """asyncio.Queue based mailbox with a single consumer."""

    def __init__(self, max_size: int = 0):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self._closed = False
        self._consumer: Optional[str] = None
        self.published = 0
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def publish(self, message: ChannelMessage) -> bool:
        """Enqueue without waiting. Returns False if the message was dropped."""
        if self._closed:
            self.dropped += 1
            logger.warning(f"Update channel closed; dropped {type(message).__name__}")
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"Update channel full ({self._queue.maxsize}); dropped {type(message).__name__}"
            )
            return False
        self.published += 1
        return True

    def claim(self, consumer: str) -> None:
        """Register the one consumer allowed to drain this channel."""
        if self._consumer is not None:
            raise RuntimeError(
                f"Update channel already consumed by {self._consumer!r}; "
                f"refusing second consumer {consumer!r}"
            )
        self._consumer = consumer
        logger.debug(f"Update channel claimed by {consumer}")

    def release(self, consumer: str) -> None:
        if self._consumer == consumer:
            self._consumer = None

    def drain_nowait(self) -> List[ChannelMessage]:
        """Take every message currently queued, in publish order."""
        messages: List[ChannelMessage] = []
        while True:
            try:
                messages.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                break
        return messages

    def close(self) -> None:
        """Refuse further publishes. Queued messages can still be drained."""
        self._closed = True
