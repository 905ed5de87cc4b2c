"""
Abstract analytics store interface.

Defines the contract that all store backends must implement. The store is
thin: create and patch sessions, append step events, and read
both back with filter, order and paginate primitives. Aggregation lives in
the query layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..models import ExitReason, Session, SessionPage, SessionUpdate, StepEvent

SESSIONS_COLLECTION = "sessions"
STEP_EVENTS_COLLECTION = "stepAnalytics"


@dataclass
class SessionQuery:
    """Filter, order and pagination options for session reads.

    Attributes:
        exit_reason: Only sessions with this exact exit reason
        created_from: Inclusive lower bound on created_at
        created_to: Inclusive upper bound on created_at
        newest_first: Order by created_at descending (default) or ascending
        limit: Page size; None returns every match in one page
        cursor: Opaque cursor returned by a previous page
    """

    exit_reason: ExitReason | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    newest_first: bool = True
    limit: int | None = None
    cursor: str | None = None


class AnalyticsStore(ABC):
    """Abstract interface for the analytics document store.

    Implementations (Cosmos DB, in-memory) are constructed explicitly and
    injected into the recorder and the query layer.
    """

    @abstractmethod
    async def create_session(self, session: Session) -> Session:
        """Persist a new session record.

        Args:
            session: Session to write

        Returns:
            The stored session
        """
        ...

    @abstractmethod
    async def get_session(self, session_id: str) -> Session | None:
        """Read a session by id, or None if it does not exist."""
        ...

    @abstractmethod
    async def update_session(self, session_id: str, update: SessionUpdate) -> None:
        """Merge a partial update into a stored session.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        ...

    @abstractmethod
    async def add_step_event(self, event: StepEvent) -> StepEvent:
        """Append an immutable step event."""
        ...

    @abstractmethod
    async def query_sessions(self, query: SessionQuery) -> SessionPage:
        """Read sessions matching a query, ordered by created_at.

        Args:
            query: Filter, ordering and pagination options

        Returns:
            A page of sessions and the cursor for the next page
        """
        ...

    @abstractmethod
    async def query_step_events(self, session_id: str | None = None) -> list[StepEvent]:
        """Read step events ordered by created_at ascending.

        Args:
            session_id: Only events of this session; None reads all events
        """
        ...

    async def close(self) -> None:
        """Release any held resources."""
        return None

    async def __aenter__(self) -> AnalyticsStore:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
