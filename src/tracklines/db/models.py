"""SQLAlchemy models for tracklines."""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    Boolean,
    Text,
    ForeignKey,
    Index,
)
from sqlalchemy.types import TypeDecorator

from .database import Base


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime that survives SQLite's naive storage."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrackerEntry(Base):
    """A named tracker grouping work sessions."""

    __tablename__ = "tracker_entry"

    id = Column(Integer, primary_key=True, autoincrement=True)
    label = Column(String(255), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    is_deleted = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_tracker_entry_live", "is_deleted", "created_at"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<TrackerEntry(id={self.id}, label='{self.label}', deleted={self.is_deleted})>"


class TrackerEntryLine(Base):
    """One work session under a tracker."""

    __tablename__ = "tracker_entry_line"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entry_id = Column(Integer, ForeignKey("tracker_entry.id"), nullable=False, index=True)
    desc = Column(Text, nullable=False, default="")
    started_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    ended_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    is_deleted = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_tracker_entry_line_live", "is_deleted", "created_at"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return (
            f"<TrackerEntryLine(id={self.id}, entry_id={self.entry_id}, "
            f"desc='{self.desc}', deleted={self.is_deleted})>"
        )


class TrackerEntryLineDuration(Base):
    """A contiguous interval of active work within a line."""

    __tablename__ = "tracker_entry_line_duration"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entry_line_id = Column(
        Integer, ForeignKey("tracker_entry_line.id"), nullable=False, index=True
    )
    started_at = Column(UTCDateTime(), nullable=False)
    ended_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=_utcnow)
    is_deleted = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_line_duration_open", "entry_line_id", "is_deleted", "ended_at"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return (
            f"<TrackerEntryLineDuration(id={self.id}, line_id={self.entry_line_id}, "
            f"started_at={self.started_at}, ended_at={self.ended_at})>"
        )
