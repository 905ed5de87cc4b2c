"""
Session query and aggregation.

``AnalyticsQueries`` reads sessions and step events from an injected store
and computes funnel summaries and per-step statistics. The aggregation
passes are plain functions over already-fetched rows so they can be reused
and tested without a store.

Store failures are logged and re-raised; callers decide how to recover.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from .metrics import get_conversion_rate, get_drop_off_rate
from .models import (
    AnalyticsSummary,
    ExitReason,
    Session,
    SessionPage,
    StepAction,
    StepEvent,
    StepStats,
)
from .store.base import AnalyticsStore, SessionQuery

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


def summarize_sessions(sessions: Iterable[Session]) -> AnalyticsSummary:
    """Compute an AnalyticsSummary in a single pass.

    Abandoned sessions are counted in ``drop_off_by_step`` under the step
    they were on when abandoned.
    """
    total = 0
    completed = 0
    abandoned = 0
    total_time = 0
    drop_off_by_step: dict[int, int] = {}

    for session in sessions:
        total += 1
        total_time += session.time_spent or 0
        if session.exit_reason is ExitReason.COMPLETED:
            completed += 1
        elif session.exit_reason is ExitReason.ABANDONED:
            abandoned += 1
            step = session.current_step
            drop_off_by_step[step] = drop_off_by_step.get(step, 0) + 1

    return AnalyticsSummary(
        total_sessions=total,
        completed_sessions=completed,
        abandoned_sessions=abandoned,
        average_time_spent=total_time / total if total else 0.0,
        conversion_rate=get_conversion_rate(completed, total),
        drop_off_by_step=drop_off_by_step,
    )


@dataclass
class _StepAccumulator:
    step_name: str
    entrances: int = 0
    exits: int = 0
    total_time: float = 0.0
    timed_events: int = 0


def compute_step_stats(events: Iterable[StepEvent]) -> list[StepStats]:
    """Group events by step index and compute StepStats, ordered by step.

    Every event with a ``time_spent`` value contributes to the step's
    average, whatever its action. The step name is the first one seen.
    """
    steps: dict[int, _StepAccumulator] = {}

    for event in events:
        acc = steps.get(event.step)
        if acc is None:
            acc = steps[event.step] = _StepAccumulator(step_name=event.step_name)

        if event.action is StepAction.ENTER:
            acc.entrances += 1
        elif event.action is StepAction.EXIT:
            acc.exits += 1

        if event.time_spent is not None:
            acc.total_time += event.time_spent
            acc.timed_events += 1

    return [
        StepStats(
            step_number=step,
            step_name=acc.step_name,
            entrances=acc.entrances,
            exits=acc.exits,
            average_time_spent=acc.total_time / acc.timed_events if acc.timed_events else 0.0,
            drop_off_rate=get_drop_off_rate(acc.exits, acc.entrances),
        )
        for step, acc in sorted(steps.items())
    ]


class AnalyticsQueries:
    """Read-side queries over an analytics store.

    Example:
        >>> queries = AnalyticsQueries(store)
        >>> page = await queries.list_sessions(page_size=100)
        >>> summary = await queries.summarize(start, end)
        >>> print(f"{summary.conversion_rate:.1f}% converted")
    """

    def __init__(self, store: AnalyticsStore) -> None:
        self.store = store

    async def _query(self, query: SessionQuery, operation: str) -> SessionPage:
        try:
            return await self.store.query_sessions(query)
        except Exception as e:
            logger.error(f"Error during {operation}: {e}")
            raise

    async def list_sessions(
        self, page_size: int = DEFAULT_PAGE_SIZE, cursor: str | None = None
    ) -> SessionPage:
        """List sessions newest first, one page at a time.

        Args:
            page_size: Maximum sessions in the page
            cursor: Cursor from the previous page, if any
        """
        return await self._query(SessionQuery(limit=page_size, cursor=cursor), "list_sessions")

    async def list_sessions_in_range(self, start: datetime, end: datetime) -> list[Session]:
        """List sessions created within ``[start, end]``, newest first."""
        page = await self._query(
            SessionQuery(created_from=start, created_to=end), "list_sessions_in_range"
        )
        return page.sessions

    async def list_sessions_by_exit_reason(
        self, reason: ExitReason, page_size: int = DEFAULT_PAGE_SIZE
    ) -> list[Session]:
        """List the newest sessions with exactly this exit reason."""
        page = await self._query(
            SessionQuery(exit_reason=reason, limit=page_size), "list_sessions_by_exit_reason"
        )
        return page.sessions

    async def list_abandoned_sessions(self, page_size: int = DEFAULT_PAGE_SIZE) -> list[Session]:
        return await self.list_sessions_by_exit_reason(ExitReason.ABANDONED, page_size)

    async def list_completed_sessions(self, page_size: int = DEFAULT_PAGE_SIZE) -> list[Session]:
        return await self.list_sessions_by_exit_reason(ExitReason.COMPLETED, page_size)

    async def list_step_events(self, session_id: str) -> list[StepEvent]:
        """List a session's step events, oldest first."""
        try:
            return await self.store.query_step_events(session_id)
        except Exception as e:
            logger.error(f"Error loading step events for {session_id}: {e}")
            raise

    async def summarize(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> AnalyticsSummary:
        """Summarize all sessions, optionally bounded by creation time.

        Each bound applies independently when given.
        """
        page = await self._query(SessionQuery(created_from=start, created_to=end), "summarize")
        return summarize_sessions(page.sessions)

    async def step_statistics(self) -> list[StepStats]:
        """Compute per-step statistics over every recorded step event."""
        try:
            events = await self.store.query_step_events()
        except Exception as e:
            logger.error(f"Error loading step events: {e}")
            raise
        return compute_step_stats(events)
