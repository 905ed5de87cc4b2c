"""
Integration tests for the Cosmos DB analytics store.

These tests require a real Cosmos DB connection and are marked as integration tests.
Run with: pytest -m integration tests/test_cosmos_integration.py

Environment variables required:
- FUNNEL_COSMOS_ENDPOINT: Cosmos DB endpoint URL
- FUNNEL_COSMOS_KEY: Cosmos DB account key

Optional:
- FUNNEL_COSMOS_DATABASE: Database name (default: funnel_analytics)
"""

import os
import uuid

import pytest

from funnel_analytics import AnalyticsQueries, ExitReason, SessionRecorder, StepAction
from funnel_analytics.store import CosmosAnalyticsStore

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not (os.environ.get("FUNNEL_COSMOS_ENDPOINT") and os.environ.get("FUNNEL_COSMOS_KEY")),
        reason="FUNNEL_COSMOS_ENDPOINT or FUNNEL_COSMOS_KEY not set",
    ),
]


@pytest.fixture
async def cosmos_store():
    store = await CosmosAnalyticsStore.create()
    yield store
    await store.close()


async def test_recorded_session_is_queryable(cosmos_store: CosmosAnalyticsStore) -> None:
    """A recorder session lands in both containers and reads back."""
    recorder = SessionRecorder(cosmos_store, f"integration-test/{uuid.uuid4().hex}")

    assert await recorder.start_session()
    await recorder.enter_step(0, recorder.step_name(0))
    await recorder.record_answer(0, recorder.step_name(0), "yes")
    await recorder.exit_step(0, recorder.step_name(0), ExitReason.INELIGIBLE)

    session = await cosmos_store.get_session(recorder.session_id)
    assert session is not None
    assert session.exit_reason is ExitReason.INELIGIBLE

    events = await AnalyticsQueries(cosmos_store).list_step_events(recorder.session_id)
    assert [e.action for e in events] == [StepAction.ENTER, StepAction.ANSWER, StepAction.EXIT]


async def test_session_pages_do_not_overlap(cosmos_store: CosmosAnalyticsStore) -> None:
    queries = AnalyticsQueries(cosmos_store)

    first = await queries.list_sessions(page_size=2)
    if not first.has_more:
        pytest.skip("not enough sessions to page")
    second = await queries.list_sessions(page_size=2, cursor=first.cursor)

    first_ids = {s.session_id for s in first.sessions}
    assert first_ids.isdisjoint(s.session_id for s in second.sessions)
