"""
Funnel Analytics

Records multi-step form sessions to a document store and turns them into
funnel statistics for an admin dashboard.

Provides:
- Session recorder writing session and step lifecycle events (best effort)
- Query layer with summaries, per-step drop-off and paginated session lists
- Store backends (Azure Cosmos DB, in-memory)
- Dashboard view models, CSV export and an optional Google Sheets mirror

Usage:

    >>> from funnel_analytics import AnalyticsQueries, SessionRecorder, setup_logging
    >>> setup_logging(json_output=True)
    >>> from funnel_analytics.store import CosmosAnalyticsStore
    >>> store = await CosmosAnalyticsStore.create()
    >>> recorder = SessionRecorder(store, user_agent=ua)
    >>> await recorder.start_session()
    >>> await recorder.enter_step(0, recorder.step_name(0))
    ...
    >>> summary = await AnalyticsQueries(store).summarize()
    >>> print(f"{summary.conversion_rate:.1f}% converted")
"""

from .exceptions import (
    AnalyticsError,
    ConfigurationError,
    SessionNotFoundError,
    SheetsError,
    StoreConnectionError,
    StoreIOError,
    ValidationError,
)
from .export import export_to_csv, to_csv
from .logging_utils import setup_logging
from .metrics import format_time, get_conversion_rate, get_drop_off_rate
from .models import (
    AnalyticsSummary,
    ExitReason,
    JSONValue,
    Session,
    SessionPage,
    SessionUpdate,
    StepAction,
    StepEvent,
    StepStats,
)
from .queries import AnalyticsQueries, compute_step_stats, summarize_sessions
from .recorder import SessionRecorder
from .store import AnalyticsStore, InMemoryAnalyticsStore, SessionQuery
from .useragent import ClientInfo, DeviceType, classify_user_agent

__all__ = [
    # Models
    "Session",
    "StepEvent",
    "SessionUpdate",
    "SessionPage",
    "AnalyticsSummary",
    "StepStats",
    "ExitReason",
    "StepAction",
    "JSONValue",
    # Store
    "AnalyticsStore",
    "InMemoryAnalyticsStore",
    "SessionQuery",
    # Recording and queries
    "SessionRecorder",
    "AnalyticsQueries",
    "summarize_sessions",
    "compute_step_stats",
    # Helpers
    "get_conversion_rate",
    "get_drop_off_rate",
    "format_time",
    "to_csv",
    "export_to_csv",
    "classify_user_agent",
    "setup_logging",
    "ClientInfo",
    "DeviceType",
    # Exceptions
    "AnalyticsError",
    "ConfigurationError",
    "SessionNotFoundError",
    "SheetsError",
    "StoreConnectionError",
    "StoreIOError",
    "ValidationError",
]

__version__ = "0.1.0"
