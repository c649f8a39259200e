from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from api.config.settings import Settings, get_settings
from api.infra.database import Base, get_session
from api.main import create_app
from api.v1.core.registries import JobProcessorRegistry, ProcessorRegistry
from api.v1.infra.queue import models  # noqa: F401
from api.v1.infra.queue.store import JobStore, QueueItemStore
from api.v1.infra.queue.types import ProcessResult


class FakeClock:
    """Controllable UTC clock for stores and claim timeouts."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 5, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1.0) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class ScriptedProcessor:
    """
    Processor whose outcome is chosen per payload "key".

    script maps key -> list of outcomes consumed one per call; the last
    outcome repeats. An outcome may be a ProcessResult, a dict or an
    exception instance to raise.
    """

    def __init__(self, script: dict[str, list[Any]], default: Any = None):
        self.script = {key: list(outcomes) for key, outcomes in script.items()}
        self.default = default or ProcessResult.success()
        self.calls: list[dict[str, Any]] = []

    async def process(self, payload: dict[str, Any]) -> Any:
        self.calls.append(payload)
        outcomes = self.script.get(payload.get("key"))
        if not outcomes:
            outcome = self.default
        elif len(outcomes) > 1:
            outcome = outcomes.pop(0)
        else:
            outcome = outcomes[0]

        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}"


@pytest.fixture
def test_settings(database_url) -> Settings:
    return Settings(
        _env_file=None,
        environment="development",
        debug=False,
        database_url=database_url,
        queue_claim_timeout_s=300,
        queue_processor_timeout_s=0.5,
    )


@pytest.fixture
async def test_engine(database_url):
    """SQLite test database with the queue tables."""
    engine = create_async_engine(database_url, connect_args={"timeout": 30})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def item_store(test_settings, clock) -> QueueItemStore:
    return QueueItemStore(test_settings, clock=clock)


@pytest.fixture
def job_store(test_settings, clock) -> JobStore:
    return JobStore(test_settings, clock=clock)


@pytest.fixture
def processors() -> ProcessorRegistry:
    return ProcessorRegistry()


@pytest.fixture
def job_processors() -> JobProcessorRegistry:
    return JobProcessorRegistry()


@pytest.fixture
def app(test_settings, session_factory):
    """Create a test FastAPI application backed by the SQLite test database."""
    app = create_app(test_settings)

    async def get_test_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = get_test_session
    app.dependency_overrides[get_settings] = lambda: test_settings

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def scripted():
    """Factory for ScriptedProcessor instances."""
    return ScriptedProcessor
