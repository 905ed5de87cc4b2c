"""
Analytics page: funnel summary, per-step statistics and a session list
narrowed by status or date range.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path

from ..export import export_to_csv
from ..models import AnalyticsSummary, ExitReason, Session, StepEvent, StepStats
from ..queries import AnalyticsQueries
from .charts import ChartDataPoint, StepChartData, status_chart_data, step_chart_data
from .state import STATUS_ALL, ViewState

logger = logging.getLogger(__name__)

SESSION_LIMIT = 100


class AnalyticsView:
    """State for the analytics page.

    Changing the status filter or date range reloads from the store; the
    search term filters the loaded sessions locally.
    """

    def __init__(self, queries: AnalyticsQueries) -> None:
        self.queries = queries
        self.state = ViewState.LOADING
        self.sessions: list[Session] = []
        self.summary: AnalyticsSummary | None = None
        self.step_stats: list[StepStats] = []
        self.status_filter = STATUS_ALL
        self.date_from: datetime | None = None
        self.date_to: datetime | None = None
        self.search_term = ""
        self.selected: Session | None = None
        self.selected_events: list[StepEvent] = []

    async def _fetch_sessions(self) -> list[Session]:
        if self.status_filter == ExitReason.COMPLETED.value:
            return await self.queries.list_completed_sessions(SESSION_LIMIT)
        if self.status_filter == ExitReason.ABANDONED.value:
            return await self.queries.list_abandoned_sessions(SESSION_LIMIT)
        if self.date_from and self.date_to:
            return await self.queries.list_sessions_in_range(self.date_from, self.date_to)
        page = await self.queries.list_sessions(SESSION_LIMIT)
        return page.sessions

    async def load(self) -> bool:
        """Load sessions, summary and step statistics together.

        Nothing is replaced unless all three succeed.
        """
        previous = self.state
        self.state = ViewState.LOADING
        try:
            sessions = await self._fetch_sessions()
            summary = await self.queries.summarize(self.date_from, self.date_to)
            step_stats = await self.queries.step_statistics()
        except Exception as e:
            logger.error(f"Error loading analytics data: {e}")
            self.state = ViewState.LOADED if previous is ViewState.LOADING else previous
            return False

        self.sessions = sessions
        self.summary = summary
        self.step_stats = step_stats
        self.state = ViewState.FILTERED if self._is_filtered else ViewState.LOADED
        return True

    @property
    def _is_filtered(self) -> bool:
        return (
            self.status_filter != STATUS_ALL
            or self.date_from is not None
            or self.date_to is not None
            or bool(self.search_term)
        )

    async def set_status_filter(self, status: str) -> bool:
        self.status_filter = status
        return await self.load()

    async def set_date_range(self, date_from: datetime | None, date_to: datetime | None) -> bool:
        self.date_from = date_from
        self.date_to = date_to
        return await self.load()

    def set_search_term(self, term: str) -> None:
        self.search_term = term
        if self.state is not ViewState.LOADING:
            self.state = ViewState.FILTERED if self._is_filtered else ViewState.LOADED

    @property
    def visible_sessions(self) -> list[Session]:
        term = self.search_term.lower()
        return [
            s
            for s in self.sessions
            if term in s.session_id.lower() or term in s.user_agent.lower()
        ]

    async def select_session(self, session: Session) -> None:
        try:
            events = await self.queries.list_step_events(session.session_id)
        except Exception as e:
            logger.error(f"Error loading session details: {e}")
            return
        self.selected = session
        self.selected_events = events

    @property
    def status_chart(self) -> list[ChartDataPoint]:
        return status_chart_data(self.summary)

    @property
    def step_chart(self) -> list[StepChartData]:
        return step_chart_data(self.step_stats)

    async def export(self, directory: str | Path, day: date | None = None) -> Path | None:
        """Write the step statistics table to ``step-stats-YYYY-MM-DD.csv``."""
        rows = [s.to_dict() for s in self.step_stats]
        return await export_to_csv(rows, "step-stats", directory, day)
