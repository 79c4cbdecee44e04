import os

# Must be set before schoolcup.config is imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SCHEDULER_ENABLED"] = "false"

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from schoolcup.database import get_session  # noqa: E402
from schoolcup.dependencies import get_clock  # noqa: E402
from schoolcup.main import app  # noqa: E402
from schoolcup.services.tournament_scheduler import TournamentScheduler  # noqa: E402
from schoolcup.utils.clock import FixedClock  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables dropped and recreated per test
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Tuesday morning
DEFAULT_NOW = datetime(2026, 3, 10, 10, 30)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


def new_test_session() -> Session:
    return Session(test_engine)


class FakeTimer:
    def __init__(self, delay: float, callback):
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True


class FakeTimerFactory:
    """Records armed timers; tests fire them by hand."""

    def __init__(self):
        self.created = []

    def __call__(self, delay: float, callback) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.created.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.created if t.started and not t.cancelled]


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a freshly created schema"""
    # Import all models to ensure they're registered BEFORE create_all
    from schoolcup.models.game import Game  # noqa: F401
    from schoolcup.models.game_event import GameEvent  # noqa: F401
    from schoolcup.models.modality import Modality  # noqa: F401
    from schoolcup.models.pause_interval import PauseInterval  # noqa: F401
    from schoolcup.models.team import Team  # noqa: F401

    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="clock")
def clock_fixture() -> FixedClock:
    return FixedClock(DEFAULT_NOW)


@pytest.fixture(name="timers")
def timers_fixture() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture(name="scheduler")
def scheduler_fixture(session: Session, clock: FixedClock, timers: FakeTimerFactory):
    scheduler = TournamentScheduler(session_factory=new_test_session, clock=clock, timer_factory=timers)
    yield scheduler
    scheduler.stop()


@pytest.fixture(name="client")
def client_fixture(session: Session, clock: FixedClock, scheduler: TournamentScheduler):
    """Provide a test client with overridden database session, clock and scheduler

    Overrides MUST be set BEFORE TestClient() so the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.state.scheduler = scheduler

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    app.state.scheduler = None
