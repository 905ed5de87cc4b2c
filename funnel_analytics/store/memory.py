"""
In-memory analytics store.

Keeps documents as plain dicts, exactly as they would be written to the
remote store, so serialization is exercised end to end. Used by the test
suite and for local development without a database.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from ..exceptions import SessionNotFoundError, ValidationError
from ..models import Session, SessionPage, SessionUpdate, StepEvent, format_timestamp
from .base import AnalyticsStore, SessionQuery

logger = logging.getLogger(__name__)


class InMemoryAnalyticsStore(AnalyticsStore):
    """Dict-backed store implementing the full AnalyticsStore contract.

    Cursors are stringified offsets into the ordered result set.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, dict[str, Any]] = {}
        self._events: list[dict[str, Any]] = []

    async def create_session(self, session: Session) -> Session:
        self._sessions[session.session_id] = copy.deepcopy(session.to_dict())
        logger.debug(f"Stored session {session.session_id}")
        return session

    async def get_session(self, session_id: str) -> Session | None:
        doc = self._sessions.get(session_id)
        if doc is None:
            return None
        return Session.from_dict(copy.deepcopy(doc))

    async def update_session(self, session_id: str, update: SessionUpdate) -> None:
        doc = self._sessions.get(session_id)
        if doc is None:
            raise SessionNotFoundError(session_id)
        doc.update(copy.deepcopy(update.to_dict()))

    async def add_step_event(self, event: StepEvent) -> StepEvent:
        self._events.append(copy.deepcopy(event.to_dict()))
        return event

    async def query_sessions(self, query: SessionQuery) -> SessionPage:
        docs = list(self._sessions.values())

        if query.exit_reason is not None:
            docs = [d for d in docs if d.get("exitReason") == query.exit_reason.value]
        if query.created_from is not None:
            lower = format_timestamp(query.created_from)
            docs = [d for d in docs if d["createdAt"] >= lower]
        if query.created_to is not None:
            upper = format_timestamp(query.created_to)
            docs = [d for d in docs if d["createdAt"] <= upper]

        docs.sort(key=lambda d: d["createdAt"], reverse=query.newest_first)

        offset = _decode_cursor(query.cursor)
        if query.limit is None:
            window = docs[offset:]
            next_cursor = None
        else:
            window = docs[offset : offset + query.limit]
            end = offset + len(window)
            next_cursor = str(end) if end < len(docs) else None

        return SessionPage(
            sessions=[Session.from_dict(copy.deepcopy(d)) for d in window],
            cursor=next_cursor,
        )

    async def query_step_events(self, session_id: str | None = None) -> list[StepEvent]:
        docs = self._events
        if session_id is not None:
            docs = [d for d in docs if d["sessionId"] == session_id]
        ordered = sorted(docs, key=lambda d: d["createdAt"])
        return [StepEvent.from_dict(copy.deepcopy(d)) for d in ordered]


def _decode_cursor(cursor: str | None) -> int:
    if cursor is None:
        return 0
    try:
        offset = int(cursor)
    except ValueError:
        raise ValidationError("cursor", "not a cursor issued by this store", cursor) from None
    if offset < 0:
        raise ValidationError("cursor", "not a cursor issued by this store", cursor)
    return offset
