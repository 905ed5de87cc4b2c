"""
Cosmos DB analytics store.

Implements the AnalyticsStore ABC on Azure Cosmos DB. Session documents use
the session id as document id; step events use their event id. Both
containers are partitioned by ``sessionId``.
"""

from __future__ import annotations

import logging
from typing import Any

from azure.cosmos.exceptions import CosmosResourceNotFoundError

from ..exceptions import SessionNotFoundError
from ..models import Session, SessionPage, SessionUpdate, StepEvent, format_timestamp
from .base import SESSIONS_COLLECTION, STEP_EVENTS_COLLECTION, AnalyticsStore, SessionQuery
from .cosmos_client import CosmosClientWrapper, CosmosConfig

logger = logging.getLogger(__name__)


def build_session_query(query: SessionQuery) -> tuple[str, list[dict[str, Any]]]:
    """Translate a SessionQuery into Cosmos SQL and parameters."""
    conditions: list[str] = []
    params: list[dict[str, Any]] = []

    if query.exit_reason is not None:
        conditions.append("c.exitReason = @exit_reason")
        params.append({"name": "@exit_reason", "value": query.exit_reason.value})
    if query.created_from is not None:
        conditions.append("c.createdAt >= @created_from")
        params.append({"name": "@created_from", "value": format_timestamp(query.created_from)})
    if query.created_to is not None:
        conditions.append("c.createdAt <= @created_to")
        params.append({"name": "@created_to", "value": format_timestamp(query.created_to)})

    sql = "SELECT * FROM c"
    if conditions:
        sql += " WHERE " + " AND ".join(conditions)
    sql += " ORDER BY c.createdAt " + ("DESC" if query.newest_first else "ASC")
    return sql, params


class CosmosAnalyticsStore(AnalyticsStore):
    """Cosmos DB-backed analytics store.

    Cursors are Cosmos continuation tokens passed through unchanged.
    """

    def __init__(self, client: CosmosClientWrapper):
        """Initialize the store.

        Args:
            client: Initialized CosmosClientWrapper instance
        """
        self.client = client

    @classmethod
    async def create(cls, config: CosmosConfig | None = None) -> CosmosAnalyticsStore:
        """Create and initialize a store.

        Args:
            config: Cosmos DB configuration (defaults to env vars)
        """
        if config is None:
            config = CosmosConfig.from_env()

        client = CosmosClientWrapper(config)
        await client.initialize()
        return cls(client)

    async def close(self) -> None:
        await self.client.close()

    # =========================================================================
    # Sessions
    # =========================================================================

    async def create_session(self, session: Session) -> Session:
        doc = session.to_dict()
        doc["id"] = session.session_id
        await self.client.create_item(SESSIONS_COLLECTION, doc)
        return session

    async def get_session(self, session_id: str) -> Session | None:
        try:
            doc = await self.client.read_item(SESSIONS_COLLECTION, session_id, session_id)
        except CosmosResourceNotFoundError:
            return None
        return Session.from_dict(doc)

    async def update_session(self, session_id: str, update: SessionUpdate) -> None:
        try:
            await self.client.patch_item(
                SESSIONS_COLLECTION, session_id, session_id, update.to_dict()
            )
        except CosmosResourceNotFoundError as e:
            raise SessionNotFoundError(session_id) from e

    async def query_sessions(self, query: SessionQuery) -> SessionPage:
        sql, params = build_session_query(query)
        docs, token = await self.client.query_page(
            SESSIONS_COLLECTION,
            sql,
            params,
            page_size=query.limit,
            continuation_token=query.cursor,
        )
        return SessionPage(sessions=[Session.from_dict(d) for d in docs], cursor=token)

    # =========================================================================
    # Step events
    # =========================================================================

    async def add_step_event(self, event: StepEvent) -> StepEvent:
        doc = event.to_dict()
        doc["id"] = event.event_id
        await self.client.create_item(STEP_EVENTS_COLLECTION, doc)
        return event

    async def query_step_events(self, session_id: str | None = None) -> list[StepEvent]:
        if session_id is None:
            sql = "SELECT * FROM c ORDER BY c.createdAt ASC"
            params: list[dict[str, Any]] = []
        else:
            sql = "SELECT * FROM c WHERE c.sessionId = @session_id ORDER BY c.createdAt ASC"
            params = [{"name": "@session_id", "value": session_id}]

        docs, _ = await self.client.query_page(STEP_EVENTS_COLLECTION, sql, params)
        return [StepEvent.from_dict(d) for d in docs]
