"""
Overview page: headline numbers for a rolling period, device breakdown,
recent sessions and a per-day activity series.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from ..metrics import end_of_day, format_date_short, start_of_day
from ..models import ExitReason, Session, StepStats
from ..queries import AnalyticsQueries
from ..useragent import DeviceType, classify_device
from .charts import ChartDataPoint, TimeSeriesPoint, device_chart_data
from .state import ViewState

logger = logging.getLogger(__name__)

RECENT_LIMIT = 100
RECENT_SHOWN = 10


class Period(Enum):
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"

    @property
    def days(self) -> int:
        return int(self.value[:-1])


@dataclass
class DashboardStats:
    total_sessions: int
    today_sessions: int
    conversion_rate: float
    avg_time_spent: float
    abandonment_rate: float
    mobile_users: int
    desktop_users: int
    tablet_users: int
    top_exit_step: int | None
    completed_today: int
    abandoned_today: int


def top_exit_step(stats: list[StepStats]) -> int | None:
    """Step with the highest non-zero drop-off rate; earliest wins ties."""
    top: int | None = None
    best = 0.0
    for s in stats:
        if s.drop_off_rate > best:
            top, best = s.step_number, s.drop_off_rate
    return top


def count_devices(sessions: list[Session]) -> dict[DeviceType, int]:
    counts = {device: 0 for device in DeviceType}
    for session in sessions:
        counts[classify_device(session.user_agent)] += 1
    return counts


def build_time_series(sessions: list[Session], days: int, now: datetime) -> list[TimeSeriesPoint]:
    """One point per day, oldest first, ending today."""
    points = []
    for offset in range(days - 1, -1, -1):
        day = now - timedelta(days=offset)
        day_start, day_end = start_of_day(day), end_of_day(day)
        day_sessions = [s for s in sessions if day_start <= s.timestamp <= day_end]
        points.append(
            TimeSeriesPoint(
                date=format_date_short(day),
                sessions=len(day_sessions),
                completed=sum(1 for s in day_sessions if s.exit_reason is ExitReason.COMPLETED),
                abandoned=sum(1 for s in day_sessions if s.exit_reason is ExitReason.ABANDONED),
            )
        )
    return points


class OverviewView:
    """State for the overview (landing) page."""

    def __init__(
        self,
        queries: AnalyticsQueries,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.queries = queries
        self._clock = clock or (lambda: datetime.now(UTC))
        self.state = ViewState.LOADING
        self.period = Period.LAST_7_DAYS
        self.stats: DashboardStats | None = None
        self.recent_sessions: list[Session] = []
        self.time_series: list[TimeSeriesPoint] = []

    async def set_period(self, period: Period) -> bool:
        self.period = period
        return await self.load()

    async def load(self) -> bool:
        """Load every overview panel; on failure keep what was shown."""
        self.state = ViewState.LOADING
        now = self._clock()
        days = self.period.days
        try:
            summary = await self.queries.summarize(start_of_day(now - timedelta(days=days)), now)
            today = await self.queries.summarize(start_of_day(now), now)
            page = await self.queries.list_sessions(RECENT_LIMIT)
            step_stats = await self.queries.step_statistics()
        except Exception as e:
            logger.error(f"Error loading dashboard data: {e}")
            self.state = ViewState.LOADED
            return False

        sessions = page.sessions
        devices = count_devices(sessions)
        abandonment_rate = (
            summary.abandoned_sessions / summary.total_sessions * 100
            if summary.total_sessions
            else 0.0
        )

        self.stats = DashboardStats(
            total_sessions=summary.total_sessions,
            today_sessions=today.total_sessions,
            conversion_rate=summary.conversion_rate,
            avg_time_spent=summary.average_time_spent,
            abandonment_rate=abandonment_rate,
            mobile_users=devices[DeviceType.MOBILE],
            desktop_users=devices[DeviceType.DESKTOP],
            tablet_users=devices[DeviceType.TABLET],
            top_exit_step=top_exit_step(step_stats),
            completed_today=today.completed_sessions,
            abandoned_today=today.abandoned_sessions,
        )
        self.recent_sessions = sessions[:RECENT_SHOWN]
        self.time_series = build_time_series(sessions, days, now)
        self.state = ViewState.LOADED
        return True

    @property
    def device_chart(self) -> list[ChartDataPoint]:
        if self.stats is None:
            return []
        return device_chart_data(
            self.stats.desktop_users, self.stats.mobile_users, self.stats.tablet_users
        )
