"""Process-wide handle tying storage, service and view propagation together.

A ``TrackerContext`` is built once at startup and closed once at shutdown.
Nothing in the package keeps a module-level reference to it; the boundary
layer stores it on ``app.state``.
"""

import asyncio
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .config import TracklinesConfig, get_config
from .core.clock import Clock
from .db.database import create_database_engine, create_session_factory, init_database
from .domain.views import TrackerLineView
from .events.channel import UpdateChannel
from .events.reconciler import ViewReconciler
from .events.schemas import SelectionChange
from .events.view_state import ViewSnapshot
from .repositories.interfaces import RepositoryContainer
from .repositories.sqlalchemy_impl import create_sqlalchemy_container
from .services.tracking_service import TrackingService
from .utils.logging_config import get_logger, log_exception

logger = get_logger('main')


class TrackerContext:
    """Owns the engine, the service, the update channel and its reconciler."""

    def __init__(
        self,
        config: TracklinesConfig,
        repositories: RepositoryContainer,
        channel: UpdateChannel,
        service: TrackingService,
        reconciler: ViewReconciler,
        engine: Optional[AsyncEngine] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.config = config
        self.repositories = repositories
        self.channel = channel
        self.service = service
        self.reconciler = reconciler
        self.engine = engine
        self.session_factory = session_factory
        self._started = False
        self._closed = False
        self._close_lock = asyncio.Lock()
        self.stopped_on_shutdown: List[TrackerLineView] = []

    @property
    def started(self) -> bool:
        return self._started

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> ViewSnapshot:
        return self.reconciler.snapshot

    def select_tracker(self, tracker_id: Optional[int]) -> bool:
        """Route a selection change through the mailbox."""
        return self.channel.publish(SelectionChange(tracker_id=tracker_id))

    async def start(self) -> None:
        """Seed the view from a history read, then start the reconciler."""
        if self._started:
            return
        trackers = await self.service.get_trackers()
        lines = await self.service.get_tracker_lines()
        self.reconciler.seed(trackers, lines)
        await self.reconciler.start()
        self._started = True
        logger.info("Tracker context started")

    async def shutdown(self) -> None:
        """Stop running lines, stop the reconciler and release storage.

        Safe to call more than once; only the first call does any work.
        """
        async with self._close_lock:
            if self._closed:
                return
            self._closed = True

            if self.config.app.stop_active_on_shutdown:
                try:
                    self.stopped_on_shutdown = await self.service.stop_all_active_tracking()
                except Exception as e:
                    # Storage may already be gone; keep releasing resources
                    log_exception('main', e, {"operation": "shutdown"})

            await self.reconciler.stop()
            self.channel.close()

            if self.engine is not None:
                await self.engine.dispose()

            logger.info(
                f"Tracker context closed; stopped {len(self.stopped_on_shutdown)} running lines"
            )


async def create_context(
    config: Optional[TracklinesConfig] = None,
    repositories: Optional[RepositoryContainer] = None,
    clock: Optional[Clock] = None,
) -> TrackerContext:
    """Build a context.

    With no ``repositories`` the SQLAlchemy gateway is used against
    ``config.database.url`` and missing tables are created.
    """
    config = config or get_config()

    engine = None
    session_factory = None
    if repositories is None:
        engine = create_database_engine(
            config.database.url,
            echo=config.database.echo,
            enable_query_logging=config.database.log_queries,
        )
        await init_database(engine)
        session_factory = create_session_factory(engine)
        repositories = create_sqlalchemy_container(session_factory)

    channel = UpdateChannel(max_size=config.app.channel_max_size)
    service = TrackingService(repositories, channel=channel, clock=clock)
    reconciler = ViewReconciler(channel, interval=config.app.reconcile_interval_seconds)

    return TrackerContext(
        config=config,
        repositories=repositories,
        channel=channel,
        service=service,
        reconciler=reconciler,
        engine=engine,
        session_factory=session_factory,
    )
