"""
Sessions page: browse, filter, sort and export individual sessions, and
drill into one session's step events.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any

from ..export import export_to_csv
from ..models import StepEvent
from ..queries import AnalyticsQueries
from ..useragent import DeviceType
from .state import (
    STATUS_IN_PROGRESS,
    SessionFilter,
    SessionRow,
    SortKey,
    SortOrder,
    ViewState,
    enrich_session,
    filter_sessions,
    sort_sessions,
)

logger = logging.getLogger(__name__)

LOAD_LIMIT = 200

EXPORT_HEADERS = (
    "Session ID",
    "Status",
    "Device Type",
    "Browser",
    "OS",
    "Current Step",
    "Time Spent",
    "Created",
)


class SessionsView:
    """State for the sessions page.

    ``rows`` holds everything loaded; ``visible`` is the filtered and
    sorted subset the table shows. Failed loads are logged and leave the
    current rows and selection untouched.
    """

    def __init__(self, queries: AnalyticsQueries) -> None:
        self.queries = queries
        self.state = ViewState.LOADING
        self.rows: list[SessionRow] = []
        self.visible: list[SessionRow] = []
        self.session_filter = SessionFilter()
        self.sort_key = SortKey.DATE
        self.sort_order = SortOrder.DESC
        self.selected: SessionRow | None = None
        self.selected_events: list[StepEvent] = []

    async def load(self) -> bool:
        """(Re)load the newest sessions.

        Returns:
            True on success, False if the load failed
        """
        self.state = ViewState.LOADING
        try:
            page = await self.queries.list_sessions(LOAD_LIMIT)
        except Exception as e:
            logger.error(f"Error loading sessions: {e}")
            self._refresh()
            return False

        self.rows = [enrich_session(s) for s in page.sessions]
        self._refresh()
        return True

    async def select_session(self, row: SessionRow) -> None:
        """Select a session and load its step events.

        On failure the previous selection and its events stay in place.
        """
        try:
            events = await self.queries.list_step_events(row.session_id)
        except Exception as e:
            logger.error(f"Error loading session details: {e}")
            return
        self.selected = row
        self.selected_events = events

    def set_filter(self, session_filter: SessionFilter) -> None:
        self.session_filter = session_filter
        self._refresh()

    def set_search_term(self, term: str) -> None:
        self.set_filter(replace(self.session_filter, search_term=term))

    def set_status_filter(self, status: str) -> None:
        self.set_filter(replace(self.session_filter, status=status))

    def set_device_filter(self, device: str) -> None:
        self.set_filter(replace(self.session_filter, device=device))

    def clear_filters(self) -> None:
        self.set_filter(SessionFilter())

    def set_sort(self, key: SortKey, order: SortOrder | None = None) -> None:
        self.sort_key = key
        if order is not None:
            self.sort_order = order
        self._refresh()

    def toggle_sort_order(self) -> SortOrder:
        self.sort_order = self.sort_order.toggled()
        self._refresh()
        return self.sort_order

    def _refresh(self) -> None:
        self.visible = sort_sessions(
            filter_sessions(self.rows, self.session_filter), self.sort_key, self.sort_order
        )
        customized = (
            self.session_filter.is_active
            or self.sort_key is not SortKey.DATE
            or self.sort_order is not SortOrder.DESC
        )
        self.state = ViewState.FILTERED if customized else ViewState.LOADED

    # =========================================================================
    # Header counters
    # =========================================================================

    @property
    def total_count(self) -> int:
        return len(self.rows)

    @property
    def filtered_count(self) -> int:
        return len(self.visible)

    @property
    def in_progress_count(self) -> int:
        return sum(1 for row in self.rows if row.status == STATUS_IN_PROGRESS)

    @property
    def mobile_count(self) -> int:
        return sum(1 for row in self.rows if row.device_type is DeviceType.MOBILE)

    @property
    def mobile_share(self) -> float:
        """Mobile sessions as a percentage of all loaded sessions."""
        if not self.rows:
            return 0.0
        return self.mobile_count / len(self.rows) * 100

    @property
    def average_duration(self) -> int:
        """Mean time spent in whole seconds."""
        if not self.rows:
            return 0
        return round(sum(row.session.time_spent or 0 for row in self.rows) / len(self.rows))

    # =========================================================================
    # Export
    # =========================================================================

    def export_rows(self) -> list[dict[str, Any]]:
        """The visible sessions as export table rows."""
        return [
            dict(
                zip(
                    EXPORT_HEADERS,
                    (
                        row.session_id,
                        row.status,
                        row.device_type.value,
                        row.client.browser,
                        row.client.os,
                        row.session.current_step,
                        row.session.time_spent or 0,
                        f"{row.session.timestamp:%Y-%m-%d %H:%M:%S}",
                    ),
                    strict=True,
                )
            )
            for row in self.visible
        ]

    async def export(self, directory: str | Path, day: date | None = None) -> Path | None:
        """Write the visible sessions to ``sessions-YYYY-MM-DD.csv``."""
        return await export_to_csv(self.export_rows(), "sessions", directory, day)
