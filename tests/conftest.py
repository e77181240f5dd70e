"""Pytest configuration and shared fixtures."""

import os
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Generator

# Logs and config must land in a scratch directory before tracklines is imported
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="tracklines-tests-"))
os.environ["TRACKLINES_LOG_DIR"] = str(_TEST_ROOT / "logs")
os.environ["TRACKLINES_DATA_DIR"] = str(_TEST_ROOT / "data")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tracklines.config import AppConfig, DatabaseConfig, ServerConfig, TracklinesConfig
from tracklines.context import create_context
from tracklines.db.database import (
    create_database_engine,
    create_session_factory,
    init_database,
)
from tracklines.events.channel import UpdateChannel
from tracklines.main import create_app
from tracklines.repositories.interfaces import RepositoryContainer
from tracklines.repositories.memory_impl import MemoryStore, create_memory_container
from tracklines.repositories.sqlalchemy_impl import create_sqlalchemy_container
from tracklines.services.tracking_service import TrackingService

from tests.helpers.clock import ManualClock


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests against in-memory repositories")
    config.addinivalue_line("markers", "integration: tests against SQLite or the HTTP app")
    config.addinivalue_line("markers", "concurrency: interleaving and race tests")


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def memory_repos(memory_store) -> RepositoryContainer:
    return create_memory_container(memory_store)


@pytest.fixture
def channel() -> UpdateChannel:
    return UpdateChannel()


@pytest.fixture
def service(memory_repos, channel, clock) -> TrackingService:
    """Tracking service over in-memory repositories and a manual clock."""
    return TrackingService(memory_repos, channel=channel, clock=clock)


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'tracklines.db'}"


@pytest.fixture
def test_config(tmp_path, db_url) -> TracklinesConfig:
    return TracklinesConfig(
        app=AppConfig(
            data_dir=str(tmp_path),
            reconcile_interval_seconds=0.01,
            log_dir=str(_TEST_ROOT / "logs"),
        ),
        server=ServerConfig(),
        database=DatabaseConfig(url=db_url),
    )


@pytest_asyncio.fixture
async def engine(db_url) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with the schema created."""
    engine = create_database_engine(db_url)
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def sql_repos(session_factory) -> RepositoryContainer:
    return create_sqlalchemy_container(session_factory)


@pytest.fixture
def sql_service(sql_repos, clock) -> TrackingService:
    """Tracking service over the SQLAlchemy gateway."""
    return TrackingService(sql_repos, channel=UpdateChannel(), clock=clock)


@pytest.fixture
def client(test_config, memory_repos, clock) -> Generator[TestClient, None, None]:
    """HTTP client whose app runs its lifespan over in-memory repositories."""

    async def factory():
        return await create_context(test_config, repositories=memory_repos, clock=clock)

    app = create_app(context_factory=factory)
    with TestClient(app) as test_client:
        yield test_client
