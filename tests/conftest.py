"""Shared fixtures: in-memory database, controllable clock, engine and HTTP client."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from gatekeeper.adapters.base import NotificationChannel, UpdateExecutor
from gatekeeper.database import init_db, make_engine, make_session_factory
from gatekeeper.engine import UpdatePolicyEngine
from gatekeeper.schemas.policy import EngineOptions
from gatekeeper.schemas.update_request import UpdateRequest
from gatekeeper.services.notifications import NotificationDispatcher
from gatekeeper.services.persistence import DocumentStore, PersistenceFacade

START = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


class Clock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingChannel(NotificationChannel):
    name = "log"

    def __init__(self):
        self.sent: list[tuple[str, dict]] = []

    async def send(self, kind, payload):
        self.sent.append((kind, payload))

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.sent]


class RecordingExecutor(UpdateExecutor):
    def __init__(self, fail_at: str | None = None):
        self.fail_at = fail_at
        self.calls: list[str] = []

    async def _stage(self, name: str) -> str:
        self.calls.append(name)
        if name == self.fail_at:
            raise RuntimeError(f"{name} broke")
        return f"{name} ok"

    async def backup(self, request):
        return await self._stage("backup")

    async def apply(self, request):
        return await self._stage("update")

    async def verify(self, request):
        return await self._stage("verify")

    async def rollback(self, request):
        return await self._stage("rollback")


def make_request(**overrides) -> UpdateRequest:
    """A patch update that passes every check; override fields by wire name."""
    data = {
        "id": "req-1",
        "requester": "ci",
        "updates": [
            {
                "package": "requests",
                "currentVersion": "2.31.0",
                "targetVersion": "2.31.1",
                "updateType": "patch",
            }
        ],
        "compatibilityTest": {
            "compatibility": 98,
            "totalTests": 50,
            "passedTests": 49,
            "failedTests": 1,
        },
        "performanceTest": {"responseTimeImpact": 2, "memoryImpact": 1, "cpuImpact": 0},
        "backup": True,
        "rollbackPlan": "pip install requests==2.31.0",
    }
    data.update(overrides)
    return UpdateRequest.model_validate(data)


@pytest.fixture
def request_factory():
    return make_request


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest_asyncio.fixture
async def db_engine():
    engine = make_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture
def build_engine(session_factory, clock, channel, executor):
    """Engine factory; engines built in one test share the same database."""

    async def _build(*, store=None, executor_override=None, **options):
        opts = {"approvers": ["alice", "bob", "carol"], **options}
        engine = UpdatePolicyEngine(
            PersistenceFacade(store or DocumentStore(session_factory)),
            options=EngineOptions(**opts),
            executor=executor_override or executor,
            dispatcher=NotificationDispatcher([channel], default_channels=["log"]),
            clock=clock,
        )
        await engine.initialize()
        return engine

    return _build


@pytest_asyncio.fixture
async def engine(build_engine):
    return await build_engine()


@pytest_asyncio.fixture
async def client(engine):
    from gatekeeper.main import app

    app.state.engine = engine
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def executor_factory():
    return RecordingExecutor
