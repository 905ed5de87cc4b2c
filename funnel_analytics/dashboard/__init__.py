"""
Dashboard view models.

Each page is a small state machine over the query layer:
- OverviewView: period headline numbers, devices, daily series
- AnalyticsView: summary, step statistics, status/date narrowed sessions
- SessionsView: filter, sort, export and drill into sessions
"""

from .analytics import AnalyticsView
from .charts import ChartDataPoint, StepChartData, TimeSeriesPoint
from .overview import DashboardStats, OverviewView, Period
from .sessions import SessionsView
from .state import (
    SessionFilter,
    SessionRow,
    SortKey,
    SortOrder,
    ViewState,
    enrich_session,
    filter_sessions,
    sort_sessions,
)

__all__ = [
    "AnalyticsView",
    "OverviewView",
    "SessionsView",
    "DashboardStats",
    "Period",
    "ChartDataPoint",
    "StepChartData",
    "TimeSeriesPoint",
    "SessionFilter",
    "SessionRow",
    "SortKey",
    "SortOrder",
    "ViewState",
    "enrich_session",
    "filter_sessions",
    "sort_sessions",
]
