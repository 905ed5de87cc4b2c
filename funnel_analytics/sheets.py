"""
Google Sheets mirror.

An append-only side channel: the recorder can mirror every session,
step event and session update to tabs of a spreadsheet for people who
prefer working there. The dashboard never reads these rows back.

Talks to the Sheets REST API v4 over aiohttp using an OAuth2 refresh
token. Request failures are logged and raised as SheetsError.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import aiohttp

from .exceptions import ConfigurationError, SheetsError
from .models import Session, SessionUpdate, StepEvent, format_timestamp

logger = logging.getLogger(__name__)

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
TOKEN_URL = "https://oauth2.googleapis.com/token"

# Refresh this many seconds before the access token actually expires
TOKEN_EXPIRY_MARGIN = 60.0


@dataclass(frozen=True)
class SheetTab:
    """A spreadsheet tab and its fixed header row."""

    name: str
    headers: tuple[str, ...]


SESSIONS_TAB = SheetTab(
    "Sessions",
    (
        "Session ID",
        "Timestamp",
        "User Agent",
        "Current Step",
        "Exit Reason",
        "Time Spent (s)",
        "Form Data",
    ),
)
STEP_ANALYTICS_TAB = SheetTab(
    "Step Analytics",
    ("Session ID", "Step", "Step Name", "Action", "Timestamp", "Answer", "Time Spent (s)"),
)
SESSION_UPDATES_TAB = SheetTab(
    "Session Updates",
    ("Session ID", "Timestamp", "Current Step", "Form Data", "Exit Reason", "Time Spent (s)"),
)

REQUIRED_TABS = (SESSIONS_TAB, STEP_ANALYTICS_TAB, SESSION_UPDATES_TAB)


@dataclass
class SheetsConfig:
    """Credentials and target spreadsheet for the mirror.

    Attributes:
        spreadsheet_id: Target spreadsheet ID
        client_id: OAuth2 client ID
        client_secret: OAuth2 client secret
        refresh_token: Long-lived OAuth2 refresh token
    """

    spreadsheet_id: str
    client_id: str
    client_secret: str
    refresh_token: str

    @classmethod
    def from_env(cls) -> SheetsConfig:
        """Create config from environment variables.

        Expected environment variables:
        - GOOGLE_SHEETS_ID
        - GOOGLE_CLIENT_ID
        - GOOGLE_CLIENT_SECRET
        - GOOGLE_REFRESH_TOKEN

        Raises:
            ConfigurationError: If any of them is missing
        """
        values = {}
        for var in (
            "GOOGLE_SHEETS_ID",
            "GOOGLE_CLIENT_ID",
            "GOOGLE_CLIENT_SECRET",
            "GOOGLE_REFRESH_TOKEN",
        ):
            value = os.environ.get(var)
            if not value:
                raise ConfigurationError(var, "environment variable not set")
            values[var] = value

        return cls(
            spreadsheet_id=values["GOOGLE_SHEETS_ID"],
            client_id=values["GOOGLE_CLIENT_ID"],
            client_secret=values["GOOGLE_CLIENT_SECRET"],
            refresh_token=values["GOOGLE_REFRESH_TOKEN"],
        )


def _a1_range(tab: str, cell_range: str | None = None) -> str:
    return quote(f"{tab}!{cell_range or 'A:Z'}", safe="!:")


class SheetsClient:
    """Minimal async client for the Sheets values API.

    Example:
        >>> async with SheetsClient(SheetsConfig.from_env()) as sheets:
        ...     await sheets.ensure_tabs()
        ...     await sheets.append_row("Sessions", ["abc", "2025-01-01T00:00:00Z"])
    """

    def __init__(
        self,
        config: SheetsConfig,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Credentials and spreadsheet ID
            session: Shared HTTP session; one is created (and owned) if omitted
        """
        self.config = config
        self._session = session
        self._owns_session = session is None
        self._access_token: str | None = None
        self._token_expires_at = 0.0

    @property
    def spreadsheet_url(self) -> str:
        return f"{SHEETS_API_URL}/{self.config.spreadsheet_id}"

    def _http(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> SheetsClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _get_access_token(self) -> str:
        """Return a valid access token, refreshing it when close to expiry."""
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        form = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "refresh_token": self.config.refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            async with self._http().post(TOKEN_URL, data=form) as response:
                if response.status >= 400:
                    detail = await response.text()
                    logger.error(f"Google token refresh failed ({response.status}): {detail}")
                    raise SheetsError("refresh_token", response.status)
                payload = await response.json()
        except aiohttp.ClientError as e:
            logger.error(f"Error refreshing Google access token: {e}")
            raise SheetsError("refresh_token", cause=e) from e

        self._access_token = payload["access_token"]
        expires_in = float(payload.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + expires_in - TOKEN_EXPIRY_MARGIN
        return self._access_token

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        body: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        token = await self._get_access_token()
        headers = {"Authorization": f"Bearer {token}"}
        try:
            async with self._http().request(
                method, url, json=body, params=params, headers=headers
            ) as response:
                if response.status >= 400:
                    detail = await response.text()
                    logger.error(f"Sheets {operation} failed ({response.status}): {detail}")
                    raise SheetsError(operation, response.status)
                return await response.json()
        except aiohttp.ClientError as e:
            logger.error(f"Sheets {operation} failed: {e}")
            raise SheetsError(operation, cause=e) from e

    async def append_row(self, tab: str, values: list[Any]) -> None:
        """Append a single row to the end of a tab."""
        await self._request(
            "POST",
            f"{self.spreadsheet_url}/values/{_a1_range(tab)}:append",
            f"append to {tab}",
            body={"values": [values]},
            params={"valueInputOption": "RAW"},
        )

    async def read_sheet(self, tab: str, cell_range: str | None = None) -> list[list[str]]:
        """Read raw cell values from a tab (default range A:Z)."""
        data = await self._request(
            "GET",
            f"{self.spreadsheet_url}/values/{_a1_range(tab, cell_range)}",
            f"read {tab}",
        )
        return data.get("values", [])

    async def update_range(self, tab: str, cell_range: str, values: list[list[Any]]) -> None:
        """Overwrite a block of cells starting at the given range."""
        await self._request(
            "PUT",
            f"{self.spreadsheet_url}/values/{_a1_range(tab, cell_range)}",
            f"update {tab}",
            body={"values": values},
            params={"valueInputOption": "RAW"},
        )

    async def clear_sheet(self, tab: str, cell_range: str | None = None) -> None:
        """Clear cell values from a tab (default range A:Z)."""
        await self._request(
            "POST",
            f"{self.spreadsheet_url}/values/{_a1_range(tab, cell_range)}:clear",
            f"clear {tab}",
            body={},
        )

    async def ensure_tabs(self, tabs: tuple[SheetTab, ...] = REQUIRED_TABS) -> list[str]:
        """Create missing tabs and write their header rows.

        Returns:
            Names of the tabs that were created
        """
        data = await self._request(
            "GET",
            self.spreadsheet_url,
            "get spreadsheet",
            params={"fields": "sheets.properties.title"},
        )
        existing = {
            sheet.get("properties", {}).get("title") for sheet in data.get("sheets", [])
        }

        created: list[str] = []
        for tab in tabs:
            if tab.name in existing:
                continue
            await self._request(
                "POST",
                f"{self.spreadsheet_url}:batchUpdate",
                f"add tab {tab.name}",
                body={"requests": [{"addSheet": {"properties": {"title": tab.name}}}]},
            )
            await self.append_row(tab.name, list(tab.headers))
            created.append(tab.name)
            logger.info(f"Created spreadsheet tab {tab.name}")

        return created


def _json_cell(value: Any) -> str:
    return "" if value is None else json.dumps(value)


class SheetsMirror:
    """Maps analytics records to spreadsheet rows.

    Tabs are created on the first write.
    """

    def __init__(self, client: SheetsClient) -> None:
        self.client = client
        self._ready = False

    async def _ensure_ready(self) -> None:
        if not self._ready:
            await self.client.ensure_tabs()
            self._ready = True

    async def record_session(self, session: Session) -> None:
        await self._ensure_ready()
        await self.client.append_row(
            SESSIONS_TAB.name,
            [
                session.session_id,
                format_timestamp(session.timestamp),
                session.user_agent,
                session.current_step,
                session.exit_reason.value if session.exit_reason else "",
                session.time_spent,
                _json_cell(session.form_data),
            ],
        )

    async def record_step_event(self, event: StepEvent) -> None:
        await self._ensure_ready()
        await self.client.append_row(
            STEP_ANALYTICS_TAB.name,
            [
                event.session_id,
                event.step,
                event.step_name,
                event.action.value,
                format_timestamp(event.timestamp),
                _json_cell(event.answer),
                "" if event.time_spent is None else event.time_spent,
            ],
        )

    async def record_session_update(self, session_id: str, update: SessionUpdate) -> None:
        await self._ensure_ready()
        await self.client.append_row(
            SESSION_UPDATES_TAB.name,
            [
                session_id,
                format_timestamp(update.updated_at),
                "" if update.current_step is None else update.current_step,
                _json_cell(update.form_data),
                update.exit_reason.value if update.exit_reason else "",
                "" if update.time_spent is None else update.time_spent,
            ],
        )
