"""SQLAlchemy concrete implementations of repository interfaces.

Each call runs in its own session and transaction taken from the shared
``async_sessionmaker``, so concurrent tasks never share a session. Writes
are single UPDATE ... RETURNING statements guarded on ``is_deleted`` (and
``ended_at`` when closing a segment): the row state at execution time
decides the outcome.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .interfaces import (
    TrackerEntryRepository,
    TrackerLineRepository,
    LineDurationRepository,
    RepositoryContainer,
)
from ..core.errors import StorageFailure
from ..db.models import TrackerEntry, TrackerEntryLine, TrackerEntryLineDuration
from ..utils.logging_config import get_logger

logger = get_logger('database')


class BaseSQLAlchemyRepository:
    """Base SQLAlchemy repository implementation."""

    entity_name = "row"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Session with a committed-or-rolled-back transaction around it."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as e:
            logger.error(f"{self.entity_name} {operation} failed: {e}")
            raise StorageFailure(
                f"Storage error during {self.entity_name} {operation}: {e}",
                entity=self.entity_name,
            ) from e

    async def _insert(self, row, operation: str = "create"):
        async with self._transaction(operation) as session:
            session.add(row)
            await session.flush()
        return row


class SQLAlchemyTrackerEntryRepository(BaseSQLAlchemyRepository, TrackerEntryRepository):
    """SQLAlchemy implementation of TrackerEntryRepository."""

    entity_name = "tracker"

    async def create(self, label: str, now: datetime) -> TrackerEntry:
        entry = TrackerEntry(label=label, created_at=now, updated_at=now, is_deleted=False)
        return await self._insert(entry)

    async def get_by_id(
        self, entry_id: int, include_deleted: bool = False
    ) -> Optional[TrackerEntry]:
        query = select(TrackerEntry).where(TrackerEntry.id == entry_id)
        if not include_deleted:
            query = query.where(TrackerEntry.is_deleted.is_(False))
        async with self._transaction("get") as session:
            return (await session.execute(query)).scalar_one_or_none()

    async def list_all(self) -> List[TrackerEntry]:
        query = (
            select(TrackerEntry)
            .where(TrackerEntry.is_deleted.is_(False))
            .order_by(TrackerEntry.created_at.desc(), TrackerEntry.id.desc())
        )
        async with self._transaction("list") as session:
            return list((await session.execute(query)).scalars().all())

    async def update_label(
        self, entry_id: int, label: str, now: datetime
    ) -> Optional[TrackerEntry]:
        statement = (
            update(TrackerEntry)
            .where(TrackerEntry.id == entry_id, TrackerEntry.is_deleted.is_(False))
            .values(label=label, updated_at=now)
            .returning(TrackerEntry)
        )
        async with self._transaction("update") as session:
            return (await session.execute(statement)).scalar_one_or_none()

    async def soft_delete(self, entry_id: int, now: datetime) -> Optional[TrackerEntry]:
        statement = (
            update(TrackerEntry)
            .where(TrackerEntry.id == entry_id, TrackerEntry.is_deleted.is_(False))
            .values(is_deleted=True, updated_at=now)
            .returning(TrackerEntry)
        )
        async with self._transaction("delete") as session:
            return (await session.execute(statement)).scalar_one_or_none()


class SQLAlchemyTrackerLineRepository(BaseSQLAlchemyRepository, TrackerLineRepository):
    """SQLAlchemy implementation of TrackerLineRepository."""

    entity_name = "line"

    async def create(self, entry_id: int, desc: str, now: datetime) -> TrackerEntryLine:
        line = TrackerEntryLine(
            entry_id=entry_id,
            desc=desc,
            started_at=now,
            ended_at=None,
            created_at=now,
            updated_at=now,
            is_deleted=False,
        )
        return await self._insert(line)

    async def get_by_id(
        self, line_id: int, include_deleted: bool = False
    ) -> Optional[TrackerEntryLine]:
        query = select(TrackerEntryLine).where(TrackerEntryLine.id == line_id)
        if not include_deleted:
            query = query.where(TrackerEntryLine.is_deleted.is_(False))
        async with self._transaction("get") as session:
            return (await session.execute(query)).scalar_one_or_none()

    def _live_lines(self):
        return (
            select(TrackerEntryLine)
            .where(TrackerEntryLine.is_deleted.is_(False))
            .order_by(TrackerEntryLine.created_at.desc(), TrackerEntryLine.id.desc())
        )

    async def list_all(self) -> List[TrackerEntryLine]:
        async with self._transaction("list") as session:
            return list((await session.execute(self._live_lines())).scalars().all())

    async def list_for_entry(self, entry_id: int) -> List[TrackerEntryLine]:
        query = self._live_lines().where(TrackerEntryLine.entry_id == entry_id)
        async with self._transaction("list") as session:
            return list((await session.execute(query)).scalars().all())

    async def update_desc(
        self, line_id: int, desc: str, now: datetime
    ) -> Optional[TrackerEntryLine]:
        statement = (
            update(TrackerEntryLine)
            .where(TrackerEntryLine.id == line_id, TrackerEntryLine.is_deleted.is_(False))
            .values(desc=desc, updated_at=now)
            .returning(TrackerEntryLine)
        )
        async with self._transaction("update") as session:
            return (await session.execute(statement)).scalar_one_or_none()

    async def _cascade_segments(self, session: AsyncSession, line_ids: Sequence[int], now: datetime) -> None:
        if not line_ids:
            return
        await session.execute(
            update(TrackerEntryLineDuration)
            .where(
                TrackerEntryLineDuration.entry_line_id.in_(line_ids),
                TrackerEntryLineDuration.is_deleted.is_(False),
            )
            .values(is_deleted=True, updated_at=now)
        )

    async def soft_delete(self, line_id: int, now: datetime) -> Optional[TrackerEntryLine]:
        statement = (
            update(TrackerEntryLine)
            .where(TrackerEntryLine.id == line_id, TrackerEntryLine.is_deleted.is_(False))
            .values(is_deleted=True, updated_at=now)
            .returning(TrackerEntryLine)
        )
        async with self._transaction("delete") as session:
            line = (await session.execute(statement)).scalar_one_or_none()
            if line is not None:
                await self._cascade_segments(session, [line.id], now)
            return line

    async def soft_delete_for_entry(
        self, entry_id: int, now: datetime
    ) -> List[TrackerEntryLine]:
        statement = (
            update(TrackerEntryLine)
            .where(
                TrackerEntryLine.entry_id == entry_id,
                TrackerEntryLine.is_deleted.is_(False),
            )
            .values(is_deleted=True, updated_at=now)
            .returning(TrackerEntryLine)
        )
        async with self._transaction("delete") as session:
            lines = list((await session.execute(statement)).scalars().all())
            await self._cascade_segments(session, [line.id for line in lines], now)
        lines.sort(key=lambda line: (line.created_at, line.id), reverse=True)
        return lines


class SQLAlchemyLineDurationRepository(BaseSQLAlchemyRepository, LineDurationRepository):
    """SQLAlchemy implementation of LineDurationRepository."""

    entity_name = "duration"

    async def create(
        self, line_id: int, started_at: datetime, now: datetime
    ) -> TrackerEntryLineDuration:
        duration = TrackerEntryLineDuration(
            entry_line_id=line_id,
            started_at=started_at,
            ended_at=None,
            created_at=now,
            updated_at=now,
            is_deleted=False,
        )
        return await self._insert(duration)

    def _live_durations(self):
        return (
            select(TrackerEntryLineDuration)
            .where(TrackerEntryLineDuration.is_deleted.is_(False))
            .order_by(
                TrackerEntryLineDuration.started_at.desc(),
                TrackerEntryLineDuration.id.desc(),
            )
        )

    async def list_for_line(self, line_id: int) -> List[TrackerEntryLineDuration]:
        query = self._live_durations().where(TrackerEntryLineDuration.entry_line_id == line_id)
        async with self._transaction("list") as session:
            return list((await session.execute(query)).scalars().all())

    async def list_for_lines(
        self, line_ids: Sequence[int]
    ) -> Dict[int, List[TrackerEntryLineDuration]]:
        result: Dict[int, List[TrackerEntryLineDuration]] = {line_id: [] for line_id in line_ids}
        if not line_ids:
            return result
        query = self._live_durations().where(
            TrackerEntryLineDuration.entry_line_id.in_(list(line_ids))
        )
        async with self._transaction("list") as session:
            for duration in (await session.execute(query)).scalars().all():
                result[duration.entry_line_id].append(duration)
        return result

    async def close(
        self, duration_id: int, ended_at: datetime, now: datetime
    ) -> Optional[TrackerEntryLineDuration]:
        statement = (
            update(TrackerEntryLineDuration)
            .where(
                TrackerEntryLineDuration.id == duration_id,
                TrackerEntryLineDuration.ended_at.is_(None),
                TrackerEntryLineDuration.is_deleted.is_(False),
            )
            .values(ended_at=ended_at, updated_at=now)
            .returning(TrackerEntryLineDuration)
        )
        async with self._transaction("close") as session:
            return (await session.execute(statement)).scalar_one_or_none()


def create_sqlalchemy_container(
    session_factory: async_sessionmaker[AsyncSession],
) -> RepositoryContainer:
    """Repository container over the shared session factory."""
    return RepositoryContainer(
        entry_repo=SQLAlchemyTrackerEntryRepository(session_factory),
        line_repo=SQLAlchemyTrackerLineRepository(session_factory),
        duration_repo=SQLAlchemyLineDurationRepository(session_factory),
    )
