"""Tests for the Google Sheets mirror.

HTTP traffic goes through a fake session that records requests and
replays canned responses, so no network access is needed.
"""

from __future__ import annotations

from typing import Any

import logging

import aiohttp
import pytest

from funnel_analytics import ExitReason, SessionUpdate, SheetsError, StepAction
from funnel_analytics.exceptions import ConfigurationError
from funnel_analytics.sheets import (
    REQUIRED_TABS,
    SESSION_UPDATES_TAB,
    SESSIONS_TAB,
    STEP_ANALYTICS_TAB,
    SheetsClient,
    SheetsConfig,
    SheetsMirror,
)

SHEETS_ENV = {
    "GOOGLE_SHEETS_ID": "sheet-123",
    "GOOGLE_CLIENT_ID": "client",
    "GOOGLE_CLIENT_SECRET": "secret",
    "GOOGLE_REFRESH_TOKEN": "refresh",
}


class FakeResponse:
    def __init__(self, status: int = 200, payload: Any = None):
        self.status = status
        self.payload = payload if payload is not None else {}

    async def json(self) -> Any:
        return self.payload

    async def text(self) -> str:
        return str(self.payload)

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class FakeHttpSession:
    """Stands in for aiohttp.ClientSession."""

    def __init__(self, existing_tabs: list[str] | None = None):
        self.existing_tabs = existing_tabs or []
        self.token_requests = 0
        self.requests: list[dict[str, Any]] = []
        self.fail_status: int | None = None
        self.token_status = 200
        self.raise_error: Exception | None = None

    def post(self, url: str, data: dict[str, str]) -> FakeResponse:
        self.token_requests += 1
        assert data["grant_type"] == "refresh_token"
        if self.token_status >= 400:
            return FakeResponse(self.token_status, {"error": "invalid_grant"})
        return FakeResponse(payload={"access_token": f"token-{self.token_requests}", "expires_in": 3600})

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        if self.raise_error is not None:
            raise self.raise_error
        self.requests.append({"method": method, "url": url, **kwargs})
        if self.fail_status is not None:
            return FakeResponse(self.fail_status, {"error": "nope"})
        if method == "GET" and (kwargs.get("params") or {}).get("fields"):
            sheets = [{"properties": {"title": t}} for t in self.existing_tabs]
            return FakeResponse(payload={"sheets": sheets})
        if method == "GET":
            return FakeResponse(payload={"values": [["a", "b"], ["1", "2"]]})
        return FakeResponse(payload={})

    async def close(self) -> None:
        return None


@pytest.fixture
def config() -> SheetsConfig:
    return SheetsConfig("sheet-123", "client", "secret", "refresh")


@pytest.fixture
def http() -> FakeHttpSession:
    return FakeHttpSession(existing_tabs=[tab.name for tab in REQUIRED_TABS])


@pytest.fixture
def client(config: SheetsConfig, http: FakeHttpSession) -> SheetsClient:
    return SheetsClient(config, session=http)


class TestSheetsConfig:
    """Tests for environment configuration."""

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for key, value in SHEETS_ENV.items():
            monkeypatch.setenv(key, value)

        config = SheetsConfig.from_env()

        assert config.spreadsheet_id == "sheet-123"
        assert config.refresh_token == "refresh"

    def test_missing_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for key, value in SHEETS_ENV.items():
            monkeypatch.setenv(key, value)
        monkeypatch.delenv("GOOGLE_CLIENT_SECRET")

        with pytest.raises(ConfigurationError) as exc_info:
            SheetsConfig.from_env()
        assert exc_info.value.setting == "GOOGLE_CLIENT_SECRET"


class TestSheetsClient:
    """Tests for the REST client."""

    async def test_append_row(self, client: SheetsClient, http: FakeHttpSession) -> None:
        await client.append_row("Step Analytics", ["s1", 0])

        [request] = http.requests
        assert request["method"] == "POST"
        assert request["url"].endswith("/sheet-123/values/Step%20Analytics!A:Z:append")
        assert request["json"] == {"values": [["s1", 0]]}
        assert request["params"] == {"valueInputOption": "RAW"}
        assert request["headers"] == {"Authorization": "Bearer token-1"}

    async def test_access_token_is_reused(
        self, client: SheetsClient, http: FakeHttpSession
    ) -> None:
        await client.append_row("Sessions", ["a"])
        await client.append_row("Sessions", ["b"])

        assert http.token_requests == 1

    async def test_read_sheet(self, client: SheetsClient) -> None:
        assert await client.read_sheet("Sessions", "A1:B2") == [["a", "b"], ["1", "2"]]

    async def test_update_range(self, client: SheetsClient, http: FakeHttpSession) -> None:
        await client.update_range("Sessions", "A2:B2", [["x", "y"]])

        [request] = http.requests
        assert request["method"] == "PUT"
        assert request["url"].endswith("/sheet-123/values/Sessions!A2:B2")
        assert request["json"] == {"values": [["x", "y"]]}
        assert request["params"] == {"valueInputOption": "RAW"}

    async def test_clear_sheet(self, client: SheetsClient, http: FakeHttpSession) -> None:
        await client.clear_sheet("Sessions")

        assert http.requests[0]["url"].endswith("/values/Sessions!A:Z:clear")

    async def test_ensure_tabs_creates_missing_with_headers(
        self, config: SheetsConfig
    ) -> None:
        http = FakeHttpSession(existing_tabs=["Sessions"])
        client = SheetsClient(config, session=http)

        created = await client.ensure_tabs()

        assert created == ["Step Analytics", "Session Updates"]
        batch = [r for r in http.requests if r["url"].endswith(":batchUpdate")]
        assert [r["json"]["requests"][0]["addSheet"]["properties"]["title"] for r in batch] == created
        appends = [r for r in http.requests if r["url"].endswith(":append")]
        assert appends[0]["json"] == {"values": [list(STEP_ANALYTICS_TAB.headers)]}

    async def test_ensure_tabs_noop_when_present(
        self, client: SheetsClient, http: FakeHttpSession
    ) -> None:
        assert await client.ensure_tabs() == []
        assert len(http.requests) == 1

    async def test_error_status_raises(self, client: SheetsClient, http: FakeHttpSession) -> None:
        http.fail_status = 403

        with pytest.raises(SheetsError) as exc_info:
            await client.append_row("Sessions", ["a"])
        assert exc_info.value.status == 403

    async def test_rejected_refresh_token_is_logged(
        self, client: SheetsClient, http: FakeHttpSession, caplog: pytest.LogCaptureFixture
    ) -> None:
        http.token_status = 401

        with caplog.at_level(logging.ERROR, logger="funnel_analytics.sheets"):
            with pytest.raises(SheetsError) as exc_info:
                await client.append_row("Sessions", ["a"])

        assert exc_info.value.status == 401
        assert "token refresh failed (401)" in caplog.text
        assert "invalid_grant" in caplog.text
        assert http.requests == []

    async def test_transport_error_raises(
        self, client: SheetsClient, http: FakeHttpSession
    ) -> None:
        http.raise_error = aiohttp.ClientConnectionError("reset")

        with pytest.raises(SheetsError) as exc_info:
            await client.read_sheet("Sessions")
        assert isinstance(exc_info.value.cause, aiohttp.ClientError)

    async def test_borrowed_session_is_not_closed(
        self, config: SheetsConfig, http: FakeHttpSession
    ) -> None:
        async with SheetsClient(config, session=http) as client:
            await client.append_row("Sessions", ["a"])

        assert client._session is http


class TestSheetsMirror:
    """Tests for record-to-row mapping."""

    async def test_session_row(
        self, client: SheetsClient, http: FakeHttpSession, make_session
    ) -> None:
        mirror = SheetsMirror(client)
        session = make_session(session_id="s1", user_agent="ua")
        session.form_data = {"resident": True}

        await mirror.record_session(session)

        append = http.requests[-1]
        assert SESSIONS_TAB.name.replace(" ", "%20") in append["url"]
        assert append["json"]["values"][0] == [
            "s1",
            "2025-03-10T12:00:00.000000+00:00",
            "ua",
            0,
            "",
            0,
            '{"resident": true}',
        ]

    async def test_step_event_row(
        self, client: SheetsClient, http: FakeHttpSession, make_event
    ) -> None:
        mirror = SheetsMirror(client)
        event = make_event(1, StepAction.ANSWER, session_id="s1", step_name="Credit Score Check")
        event.answer = 720
        event.time_spent = 6

        await mirror.record_step_event(event)

        assert http.requests[-1]["json"]["values"][0] == [
            "s1",
            1,
            "Credit Score Check",
            "answer",
            "2025-03-10T12:00:00.000000+00:00",
            "720",
            6,
        ]

    async def test_session_update_row(
        self, client: SheetsClient, http: FakeHttpSession, base_time
    ) -> None:
        mirror = SheetsMirror(client)
        update = SessionUpdate(
            updated_at=base_time, current_step=2, exit_reason=ExitReason.ABANDONED, time_spent=40
        )

        await mirror.record_session_update("s1", update)

        append = http.requests[-1]
        assert SESSION_UPDATES_TAB.name.replace(" ", "%20") in append["url"]
        assert append["json"]["values"][0] == [
            "s1",
            "2025-03-10T12:00:00.000000+00:00",
            2,
            "",
            "abandoned",
            40,
        ]

    async def test_tabs_are_checked_once(
        self, client: SheetsClient, http: FakeHttpSession, make_session
    ) -> None:
        mirror = SheetsMirror(client)

        await mirror.record_session(make_session())
        await mirror.record_session(make_session())

        lookups = [r for r in http.requests if r["method"] == "GET"]
        assert len(lookups) == 1
