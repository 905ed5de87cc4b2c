"""
Core data types for funnel analytics.

Sessions and step events are persisted by the recorder; summaries and step
statistics are derived by the query layer and never stored. Persisted types
round-trip through ``to_dict``/``from_dict`` using the camelCase document
field names shared with the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeAlias

from .exceptions import ValidationError

# Closed union for free-form form payloads and answers.
JSONValue: TypeAlias = None | bool | int | float | str | list["JSONValue"] | dict[str, "JSONValue"]


class ExitReason(Enum):
    """Terminal classification of a session."""

    COMPLETED = "completed"
    ABANDONED = "abandoned"
    INELIGIBLE = "ineligible"


class StepAction(Enum):
    """Kinds of step lifecycle events."""

    ENTER = "enter"
    ANSWER = "answer"
    EXIT = "exit"


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as a fixed-width ISO-8601 UTC string.

    Fixed width keeps lexicographic order equal to chronological order,
    which the store relies on for range filters and ORDER BY.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 string (or pass through a datetime) as aware UTC."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _parse_enum(enum_cls: type[Enum], field_name: str, raw: Any) -> Any:
    if raw is None or isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(raw)
    except ValueError:
        raise ValidationError(field_name, f"unknown {enum_cls.__name__} value", str(raw)) from None


@dataclass
class Session:
    """One visitor's traversal of the funnel.

    ``timestamp`` is the client-side start time; ``created_at`` and
    ``updated_at`` track document writes. ``exit_reason`` stays ``None``
    while the session is in progress.
    """

    session_id: str
    user_agent: str
    timestamp: datetime
    created_at: datetime
    updated_at: datetime
    current_step: int = 0
    form_data: dict[str, JSONValue] = field(default_factory=dict)
    time_spent: int = 0
    exit_reason: ExitReason | None = None

    @property
    def in_progress(self) -> bool:
        return self.exit_reason is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a store document."""
        return {
            "sessionId": self.session_id,
            "timestamp": format_timestamp(self.timestamp),
            "userAgent": self.user_agent,
            "currentStep": self.current_step,
            "formData": self.form_data,
            "timeSpent": self.time_spent,
            "exitReason": self.exit_reason.value if self.exit_reason else None,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        """Create from a store document."""
        created_at = parse_timestamp(data["createdAt"])
        return cls(
            session_id=data["sessionId"],
            user_agent=data.get("userAgent", ""),
            timestamp=parse_timestamp(data.get("timestamp") or created_at),
            created_at=created_at,
            updated_at=parse_timestamp(data.get("updatedAt") or created_at),
            current_step=data.get("currentStep", 0),
            form_data=data.get("formData") or {},
            time_spent=data.get("timeSpent") or 0,
            exit_reason=_parse_enum(ExitReason, "exitReason", data.get("exitReason")),
        )


@dataclass
class StepEvent:
    """A single step lifecycle event. Immutable once written."""

    event_id: str
    session_id: str
    step: int
    step_name: str
    action: StepAction
    timestamp: datetime
    created_at: datetime
    answer: JSONValue = None
    time_spent: int | None = None
    exit_reason: ExitReason | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a store document."""
        doc: dict[str, Any] = {
            "eventId": self.event_id,
            "sessionId": self.session_id,
            "step": self.step,
            "stepName": self.step_name,
            "action": self.action.value,
            "timestamp": format_timestamp(self.timestamp),
            "createdAt": format_timestamp(self.created_at),
        }
        # Optional fields are omitted rather than written as null
        if self.answer is not None:
            doc["answer"] = self.answer
        if self.time_spent is not None:
            doc["timeSpent"] = self.time_spent
        if self.exit_reason is not None:
            doc["exitReason"] = self.exit_reason.value
        return doc

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepEvent:
        """Create from a store document."""
        created_at = parse_timestamp(data["createdAt"])
        return cls(
            event_id=data.get("eventId") or data.get("id", ""),
            session_id=data["sessionId"],
            step=data["step"],
            step_name=data.get("stepName", ""),
            action=_parse_enum(StepAction, "action", data["action"]),
            timestamp=parse_timestamp(data.get("timestamp") or created_at),
            created_at=created_at,
            answer=data.get("answer"),
            time_spent=data.get("timeSpent"),
            exit_reason=_parse_enum(ExitReason, "exitReason", data.get("exitReason")),
        )


@dataclass
class SessionUpdate:
    """Partial update applied to a stored session.

    Only fields that are not ``None`` are written.
    """

    updated_at: datetime
    current_step: int | None = None
    exit_reason: ExitReason | None = None
    time_spent: int | None = None
    form_data: dict[str, JSONValue] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the document fields to merge."""
        doc: dict[str, Any] = {"updatedAt": format_timestamp(self.updated_at)}
        if self.current_step is not None:
            doc["currentStep"] = self.current_step
        if self.exit_reason is not None:
            doc["exitReason"] = self.exit_reason.value
        if self.time_spent is not None:
            doc["timeSpent"] = self.time_spent
        if self.form_data is not None:
            doc["formData"] = self.form_data
        return doc


@dataclass
class AnalyticsSummary:
    """Aggregate funnel statistics over a set of sessions."""

    total_sessions: int = 0
    completed_sessions: int = 0
    abandoned_sessions: int = 0
    average_time_spent: float = 0.0
    conversion_rate: float = 0.0
    drop_off_by_step: dict[int, int] = field(default_factory=dict)

    @property
    def in_progress_sessions(self) -> int:
        """Sessions neither completed nor abandoned (ineligible counts here too)."""
        return self.total_sessions - self.completed_sessions - self.abandoned_sessions

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_sessions": self.total_sessions,
            "completed_sessions": self.completed_sessions,
            "abandoned_sessions": self.abandoned_sessions,
            "average_time_spent": self.average_time_spent,
            "conversion_rate": self.conversion_rate,
            "drop_off_by_step": dict(self.drop_off_by_step),
        }


@dataclass
class StepStats:
    """Per-step entrance, exit and timing statistics."""

    step_number: int
    step_name: str
    entrances: int = 0
    exits: int = 0
    average_time_spent: float = 0.0
    drop_off_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_number": self.step_number,
            "step_name": self.step_name,
            "entrances": self.entrances,
            "exits": self.exits,
            "average_time_spent": self.average_time_spent,
            "drop_off_rate": self.drop_off_rate,
        }


@dataclass
class SessionPage:
    """One page of sessions plus the cursor for the next page.

    ``cursor`` is opaque to callers and ``None`` once results are exhausted.
    """

    sessions: list[Session] = field(default_factory=list)
    cursor: str | None = None

    @property
    def has_more(self) -> bool:
        return self.cursor is not None
