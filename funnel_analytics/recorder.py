"""
Session recorder.

One recorder is created per visiting user. It writes the session record and
step lifecycle events to the store as the user moves through the form.

Writes are best effort: any store or mirror failure is logged and
swallowed, so analytics can never break the form itself.
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from .logging_utils import SessionLoggerAdapter
from .models import (
    ExitReason,
    JSONValue,
    Session,
    SessionUpdate,
    StepAction,
    StepEvent,
)
from .sheets import SheetsMirror
from .store.base import AnalyticsStore

logger = logging.getLogger(__name__)

DEFAULT_STEP_NAMES: tuple[str, ...] = (
    "US Resident Check",
    "Credit Score Check",
    "Late Payments Check",
    "Derogatory Marks Check",
    "Contact Information",
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds between two instants, rounded half up."""
    return math.floor((end - start).total_seconds() + 0.5)


class SessionRecorder:
    """Records one visitor's funnel session.

    Lifecycle:
        start_session -> (enter_step -> record_answer* -> ...)* -> exit_step

    The page-hidden and before-unload hooks both abandon the session. Only
    the first terminal exit is written per recorder; any later passive
    abandonment is ignored so aggregates never double-count.

    Example:
        >>> recorder = SessionRecorder(store, user_agent=request_user_agent)
        >>> await recorder.start_session()
        >>> await recorder.enter_step(0, recorder.step_name(0))
        >>> await recorder.record_answer(0, recorder.step_name(0), "yes")
    """

    def __init__(
        self,
        store: AnalyticsStore,
        user_agent: str,
        *,
        mirror: SheetsMirror | None = None,
        clock: Callable[[], datetime] | None = None,
        step_names: Sequence[str] | None = None,
    ) -> None:
        """Initialize the recorder.

        Args:
            store: Store receiving sessions and events
            user_agent: Client descriptor of the visitor
            mirror: Optional spreadsheet mirror
            clock: Returns the current aware datetime (default: UTC now)
            step_names: Names for step indexes (default: the funnel's steps)
        """
        self.store = store
        self.user_agent = user_agent
        self.mirror = mirror
        self._clock = clock or _utcnow
        self._step_names = tuple(step_names) if step_names is not None else DEFAULT_STEP_NAMES

        self.session_id = str(uuid.uuid4())
        self._start_time = self._clock()
        self._step_start_time = self._start_time
        self._current_step = 0
        self._session_stored = False
        self._exited = False
        self._log = SessionLoggerAdapter(logger, {"session_id": self.session_id})

    @property
    def current_step(self) -> int:
        return self._current_step

    @property
    def exited(self) -> bool:
        """True once a terminal exit has been recorded."""
        return self._exited

    def step_name(self, step: int) -> str:
        if 0 <= step < len(self._step_names):
            return self._step_names[step]
        return f"Step {step}"

    async def start_session(self) -> bool:
        """Write the initial session record.

        Returns:
            True if the record was stored
        """
        now = self._clock()
        session = Session(
            session_id=self.session_id,
            user_agent=self.user_agent,
            timestamp=now,
            created_at=now,
            updated_at=now,
        )
        try:
            await self.store.create_session(session)
        except Exception as e:
            self._log.error(f"Error initializing session: {e}")
            return False

        self._session_stored = True
        self._log.info("Session initialized")
        await self._mirror("record_session", session)
        return True

    async def enter_step(self, step: int, step_name: str) -> None:
        """Record entry into a step and restart the step timer."""
        self._current_step = step
        self._step_start_time = self._clock()
        await self._write_event(step, step_name, StepAction.ENTER)

    async def record_answer(self, step: int, step_name: str, answer: JSONValue) -> None:
        """Record an answer with the time spent on the step so far."""
        time_spent = elapsed_seconds(self._step_start_time, self._clock())
        await self._write_event(
            step, step_name, StepAction.ANSWER, answer=answer, time_spent=time_spent
        )

    async def exit_step(self, step: int, step_name: str, reason: ExitReason) -> None:
        """Record a step exit and close the session with the given reason."""
        now = self._clock()
        self._exited = True

        await self._write_event(
            step,
            step_name,
            StepAction.EXIT,
            time_spent=elapsed_seconds(self._step_start_time, now),
            exit_reason=reason,
        )
        await self._update_session(
            SessionUpdate(
                updated_at=now,
                current_step=step,
                exit_reason=reason,
                time_spent=elapsed_seconds(self._start_time, now),
            )
        )

    async def update_form_data(self, form_data: dict[str, JSONValue]) -> None:
        """Store the latest form contents on the session record."""
        await self._update_session(
            SessionUpdate(
                updated_at=self._clock(),
                current_step=self._current_step,
                form_data=form_data,
            )
        )

    async def abandon(self) -> bool:
        """Exit the current step as abandoned, at most once.

        Returns:
            True if the abandonment was recorded, False if already exited
        """
        if self._exited:
            self._log.debug("Ignoring abandonment of an already exited session")
            return False
        step = self._current_step
        await self.exit_step(step, self.step_name(step), ExitReason.ABANDONED)
        return True

    async def on_visibility_change(self, hidden: bool) -> bool:
        """Page visibility hook: hiding the page abandons the session."""
        if not hidden:
            return False
        return await self.abandon()

    async def on_before_unload(self) -> bool:
        """Page unload hook."""
        return await self.abandon()

    async def _write_event(
        self,
        step: int,
        step_name: str,
        action: StepAction,
        answer: JSONValue = None,
        time_spent: int | None = None,
        exit_reason: ExitReason | None = None,
    ) -> None:
        now = self._clock()
        event = StepEvent(
            event_id=str(uuid.uuid4()),
            session_id=self.session_id,
            step=step,
            step_name=step_name,
            action=action,
            timestamp=now,
            created_at=now,
            answer=answer,
            time_spent=time_spent,
            exit_reason=exit_reason,
        )
        try:
            await self.store.add_step_event(event)
        except Exception as e:
            self._log.error(f"Error tracking step {action.value}: {e}", extra={"step": step})
            return
        await self._mirror("record_step_event", event)

    async def _update_session(self, update: SessionUpdate) -> None:
        if not self._session_stored:
            self._log.error("Session document not available, dropping update")
            return
        try:
            await self.store.update_session(self.session_id, update)
        except Exception as e:
            self._log.error(f"Error updating session: {e}")
            return
        await self._mirror("record_session_update", self.session_id, update)

    async def _mirror(self, method: str, *args: object) -> None:
        if self.mirror is None:
            return
        try:
            await getattr(self.mirror, method)(*args)
        except Exception as e:
            self._log.warning(
                f"Spreadsheet mirror failed ({method}): {e}", extra={"operation": method}
            )
