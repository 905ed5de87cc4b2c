"""
Shared test configuration and fixtures.

Provides an in-memory store, a controllable clock, sample user agents and
factory fixtures for sessions and step events so tests can build store
contents directly.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from funnel_analytics import (
    AnalyticsQueries,
    ExitReason,
    InMemoryAnalyticsStore,
    Session,
    StepAction,
    StepEvent,
)

logger = logging.getLogger(__name__)

_BASE_TIME = datetime(2025, 3, 10, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Deterministic clock; call it for the current time, advance it explicitly."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FailingStore(InMemoryAnalyticsStore):
    """In-memory store whose every operation raises."""

    def __init__(self, error: Exception | None = None):
        super().__init__()
        self.error = error or RuntimeError("store unavailable")

    async def create_session(self, session):
        raise self.error

    async def get_session(self, session_id):
        raise self.error

    async def update_session(self, session_id, update):
        raise self.error

    async def add_step_event(self, event):
        raise self.error

    async def query_sessions(self, query):
        raise self.error

    async def query_step_events(self, session_id=None):
        raise self.error


@pytest.fixture
def base_time() -> datetime:
    """Monday 2025-03-10 12:00 UTC; every test clock starts here."""
    return _BASE_TIME


@pytest.fixture
def user_agents() -> SimpleNamespace:
    """Real-world user-agent strings for each client class the tests need."""
    return SimpleNamespace(
        chrome_desktop=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        iphone=(
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
        ),
        ipad=(
            "Mozilla/5.0 (iPad; CPU OS 16_6 like Mac OS X) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1"
        ),
        firefox_linux="Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
    )


@pytest.fixture
def clock(base_time: datetime) -> FakeClock:
    return FakeClock(base_time)


@pytest.fixture
def make_session(base_time: datetime, user_agents: SimpleNamespace) -> Callable[..., Session]:
    """Factory building session records without going through the recorder."""

    def _make(
        created_at: datetime | None = None,
        *,
        session_id: str | None = None,
        user_agent: str | None = None,
        current_step: int = 0,
        time_spent: int = 0,
        exit_reason: ExitReason | None = None,
    ) -> Session:
        created_at = created_at or base_time
        return Session(
            session_id=session_id or f"sess-{uuid.uuid4().hex[:8]}",
            user_agent=user_agent or user_agents.chrome_desktop,
            timestamp=created_at,
            created_at=created_at,
            updated_at=created_at,
            current_step=current_step,
            time_spent=time_spent,
            exit_reason=exit_reason,
        )

    return _make


@pytest.fixture
def make_event(base_time: datetime) -> Callable[..., StepEvent]:
    """Factory building step events without going through the recorder."""

    def _make(
        step: int,
        action: StepAction,
        *,
        session_id: str = "sess-test",
        step_name: str | None = None,
        time_spent: int | None = None,
        created_at: datetime | None = None,
    ) -> StepEvent:
        created_at = created_at or base_time
        return StepEvent(
            event_id=uuid.uuid4().hex,
            session_id=session_id,
            step=step,
            step_name=step_name or f"Step {step}",
            action=action,
            timestamp=created_at,
            created_at=created_at,
            time_spent=time_spent,
        )

    return _make


@pytest.fixture
async def store():
    """Fresh in-memory store per test."""
    store = InMemoryAnalyticsStore()
    yield store
    await store.close()


@pytest.fixture
def queries(store: InMemoryAnalyticsStore) -> AnalyticsQueries:
    return AnalyticsQueries(store)


@pytest.fixture
def failing_store() -> FailingStore:
    """Store that raises RuntimeError("store unavailable") on every call."""
    return FailingStore()


@pytest.fixture
def failing_queries(failing_store: FailingStore) -> AnalyticsQueries:
    return AnalyticsQueries(failing_store)
