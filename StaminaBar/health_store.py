"""Contract with the health-data service.

The application never talks to sensors directly.  Everything it displays is
requested from a :class:`HealthStore`: authorization, point queries for the
most recent sample or a cumulative sum, and live workout sessions.  A
:class:`WorkoutSession` forwards its state changes to ``on_state_change`` and
owns the :class:`~StaminaBar.builder.LiveWorkoutBuilder` collecting samples
while it runs.

Callbacks are always delivered through ``loop.call_soon`` so they resume on
the event loop that issued the request, never inside the caller's stack.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from StaminaBar.builder import LiveWorkoutBuilder
from StaminaBar.common.kinds import UNITS, DataKind, Sample
from StaminaBar.common.states import ActivityKind, PlatformState

logger = logging.getLogger(__name__)


class SessionError(RuntimeError):
    """Raised when a workout session cannot be created or started."""


class AuthorizationError(PermissionError):
    """Raised when a query touches a data kind the user has not shared."""


SHARE_KINDS: frozenset[DataKind] = frozenset({DataKind.WORKOUT})

READ_KINDS: frozenset[DataKind] = frozenset(
    {
        DataKind.DISTANCE_WALKING_RUNNING,
        DataKind.HEART_RATE_VARIABILITY_SDNN,
        DataKind.ACTIVE_ENERGY_BURNED,
        DataKind.BASAL_ENERGY_BURNED,
        DataKind.DATE_OF_BIRTH,
        DataKind.DISTANCE_CYCLING,
        DataKind.HEART_RATE,
        DataKind.STEP_COUNT,
        DataKind.VO2_MAX,
        DataKind.ACTIVITY_SUMMARY,
    }
)


StateCallback = Callable[["WorkoutSession", PlatformState, PlatformState, datetime], None]


class WorkoutSession:
    """Live workout session handle.

    Mirrors the platform's own session state machine: ``start_activity``
    moves from ``notStarted`` to ``running``, ``pause``/``resume`` toggle
    between ``running`` and ``paused`` and ``end`` stops the session for
    good.  Calls that do not apply to the current state are ignored, the
    same way the platform ignores them.
    """

    def __init__(
        self,
        activity: ActivityKind,
        builder: LiveWorkoutBuilder,
        location: str = "outdoor",
    ) -> None:
        self.activity = activity
        self.location = location
        self.builder = builder
        self.state = PlatformState.NOT_STARTED
        self.start_date: Optional[datetime] = None
        self.end_date: Optional[datetime] = None
        self.on_state_change: Optional[StateCallback] = None

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<WorkoutSession {self.activity.value} {self.state.value}>"

    def _change_state(self, new_state: PlatformState, date: datetime) -> None:
        old_state = self.state
        self.state = new_state
        logger.debug("Session %s: %s -> %s", self.activity.value, old_state.value, new_state.value)
        if new_state is PlatformState.PAUSED:
            self.builder.mark_paused(date)
        elif new_state is PlatformState.RUNNING and old_state is PlatformState.PAUSED:
            self.builder.mark_resumed(date)
        callback = self.on_state_change
        if callback is not None:
            asyncio.get_running_loop().call_soon(callback, self, new_state, old_state, date)

    async def start_activity(self, date: Optional[datetime] = None) -> None:
        if self.state is not PlatformState.NOT_STARTED:
            return
        date = date or datetime.now()
        self.start_date = date
        self._change_state(PlatformState.RUNNING, date)

    async def pause(self, date: Optional[datetime] = None) -> None:
        if self.state is PlatformState.RUNNING:
            self._change_state(PlatformState.PAUSED, date or datetime.now())

    async def resume(self, date: Optional[datetime] = None) -> None:
        if self.state is PlatformState.PAUSED:
            self._change_state(PlatformState.RUNNING, date or datetime.now())

    async def end(self, date: Optional[datetime] = None) -> None:
        if self.state in {PlatformState.ENDED, PlatformState.STOPPED}:
            return
        date = date or datetime.now()
        self.end_date = date
        self._change_state(PlatformState.ENDED, date)


class HealthStore(abc.ABC):
    """Opaque collaborator supplying health data and workout sessions."""

    @abc.abstractmethod
    async def request_authorization(
        self, read_kinds: Iterable[DataKind], write_kinds: Iterable[DataKind]
    ) -> bool:
        """Ask the user to share ``read_kinds`` and allow writing ``write_kinds``."""

    @abc.abstractmethod
    async def start_session(self, activity: ActivityKind, location: str = "outdoor") -> WorkoutSession:
        """Create a session for ``activity``.

        Raises :class:`SessionError` when the session cannot be created, for
        example because another app holds the only workout slot.
        """

    @abc.abstractmethod
    async def most_recent_sample(self, kind: DataKind) -> Optional[Sample]:
        """Return the newest sample of ``kind`` or ``None`` when there is none."""

    @abc.abstractmethod
    async def cumulative_sum(self, kind: DataKind, start: datetime, end: datetime) -> Optional[float]:
        """Return the sum of ``kind`` samples inside ``[start, end]``.

        ``None`` means no samples fall inside the window.
        """


__all__ = [
    "SessionError",
    "AuthorizationError",
    "DataKind",
    "UNITS",
    "SHARE_KINDS",
    "READ_KINDS",
    "Sample",
    "WorkoutSession",
    "HealthStore",
]
