"""Enums for the tracklines application."""

from enum import Enum


class LineState(str, Enum):
    """Tracking state of a line, derived from its duration segments."""

    RUNNING = "running"
    PAUSED = "paused"


class UpdateKind(str, Enum):
    """Kind of change carried by an update message."""

    CREATED = "created"
    UPDATED = "updated"


class EntityKind(str, Enum):
    """Entity an update message refers to."""

    ENTRY = "entry"
    LINE = "line"
