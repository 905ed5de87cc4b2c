"""
Shared view state for dashboard pages: session rows enriched with client
info, the client-side filter predicate and the three-key sort.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..models import Session
from ..useragent import ClientInfo, DeviceType, classify_user_agent

STATUS_ALL = "all"
STATUS_IN_PROGRESS = "in-progress"
DEVICE_ALL = "all"


class ViewState(Enum):
    """Page lifecycle: LOADING -> LOADED <-> FILTERED."""

    LOADING = "loading"
    LOADED = "loaded"
    FILTERED = "filtered"


class SortKey(Enum):
    DATE = "date"
    DURATION = "duration"
    STEP = "step"


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"

    def toggled(self) -> SortOrder:
        return SortOrder.DESC if self is SortOrder.ASC else SortOrder.ASC


@dataclass(frozen=True)
class SessionRow:
    """A session with its classified client info, as shown in tables."""

    session: Session
    client: ClientInfo

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def status(self) -> str:
        reason = self.session.exit_reason
        return reason.value if reason else STATUS_IN_PROGRESS

    @property
    def device_type(self) -> DeviceType:
        return self.client.device_type


def enrich_session(session: Session) -> SessionRow:
    return SessionRow(session=session, client=classify_user_agent(session.user_agent))


@dataclass(frozen=True)
class SessionFilter:
    """Client-side session filter.

    Attributes:
        search_term: Case-insensitive substring of id, user agent, browser or OS
        status: Exit reason value, "in-progress", or "all"
        device: Device type value or "all"
    """

    search_term: str = ""
    status: str = STATUS_ALL
    device: str = DEVICE_ALL

    @property
    def is_active(self) -> bool:
        return bool(self.search_term) or self.status != STATUS_ALL or self.device != DEVICE_ALL

    def matches(self, row: SessionRow) -> bool:
        term = self.search_term.lower()
        matches_search = (
            term in row.session_id.lower()
            or term in row.session.user_agent.lower()
            or term in row.client.browser.lower()
            or term in row.client.os.lower()
        )
        matches_status = self.status == STATUS_ALL or row.status == self.status
        matches_device = self.device == DEVICE_ALL or row.device_type.value == self.device
        return matches_search and matches_status and matches_device


def filter_sessions(rows: list[SessionRow], session_filter: SessionFilter) -> list[SessionRow]:
    return [row for row in rows if session_filter.matches(row)]


_SORT_KEYS = {
    SortKey.DATE: lambda row: row.session.timestamp,
    SortKey.DURATION: lambda row: row.session.time_spent or 0,
    SortKey.STEP: lambda row: row.session.current_step,
}


def sort_sessions(rows: list[SessionRow], key: SortKey, order: SortOrder) -> list[SessionRow]:
    """Stable sort by date, duration or current step."""
    return sorted(rows, key=_SORT_KEYS[key], reverse=order is SortOrder.DESC)
