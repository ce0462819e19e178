"""Workout session state machine and controller.

:func:`transition` is the whole lifecycle as a pure function: given the
current :class:`~StaminaBar.common.states.SessionState` and a
:class:`SessionEvent` it returns the next state plus the side effects the
controller must carry out.  Events that do not apply to the current state
leave it unchanged and produce no effects, so ending a workout that never
started is a no-op.

:class:`WorkoutController` owns the health store's session and builder
handles, executes the effects and turns the session's callbacks back into
events.  Everything runs on one event loop; callbacks never mutate state
outside of :meth:`WorkoutController._dispatch`.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, Optional, Set, Tuple

from config.settings import get_settings
from StaminaBar.builder import LiveWorkoutBuilder, Statistics, WorkoutRecord
from StaminaBar.common.kinds import DISTANCE_KINDS, DataKind
from StaminaBar.common.states import ACTIVE_STATES, ActivityKind, PlatformState, SessionState
from StaminaBar.health_store import READ_KINDS, SHARE_KINDS, HealthStore, SessionError, WorkoutSession
from StaminaBar.history import HeartRateHistory
from StaminaBar.metrics import MetricStore
from StaminaBar.poller import MetricPoller
from zone_mapper import describe_zone

logger = logging.getLogger(__name__)


class SessionEvent(str, Enum):
    SELECT_ACTIVITY = "select_activity"
    SESSION_STARTED = "session_started"
    PLATFORM_PAUSED = "platform_paused"
    PLATFORM_RESUMED = "platform_resumed"
    START_FAILED = "start_failed"
    TOGGLE_PAUSE = "toggle_pause"
    PAUSE = "pause"
    RESUME = "resume"
    END = "end"
    COLLECTION_STOPPED = "collection_stopped"
    DISMISS_SUMMARY = "dismiss_summary"


class Effect(str, Enum):
    REPLACE_SESSION = "replace_session"
    CREATE_SESSION = "create_session"
    START_POLLER = "start_poller"
    STOP_POLLER = "stop_poller"
    PAUSE_SESSION = "pause_session"
    RESUME_SESSION = "resume_session"
    END_SESSION = "end_session"
    SUMMARY_AVAILABLE = "summary_available"
    RESET_METRICS = "reset_metrics"
    RELEASE_SESSION = "release_session"


@dataclass(frozen=True)
class Transition:
    previous: SessionState
    event: SessionEvent
    state: SessionState
    effects: Tuple[Effect, ...] = ()

    @property
    def changed(self) -> bool:
        return self.previous is not self.state or bool(self.effects)


_S = SessionState
_E = SessionEvent

_REPLACE = (Effect.STOP_POLLER, Effect.REPLACE_SESSION, Effect.RESET_METRICS, Effect.CREATE_SESSION)

TRANSITIONS: Dict[Tuple[SessionState, SessionEvent], Tuple[SessionState, Tuple[Effect, ...]]] = {
    (_S.IDLE, _E.SELECT_ACTIVITY): (_S.STARTING, (Effect.CREATE_SESSION,)),
    (_S.STARTING, _E.SELECT_ACTIVITY): (_S.STARTING, _REPLACE),
    (_S.RUNNING, _E.SELECT_ACTIVITY): (_S.STARTING, _REPLACE),
    (_S.PAUSED, _E.SELECT_ACTIVITY): (_S.STARTING, _REPLACE),
    (_S.ENDING, _E.SELECT_ACTIVITY): (_S.STARTING, _REPLACE),
    (_S.ENDED, _E.SELECT_ACTIVITY): (_S.STARTING, _REPLACE),
    (_S.STARTING, _E.SESSION_STARTED): (_S.RUNNING, (Effect.START_POLLER,)),
    (_S.STARTING, _E.START_FAILED): (_S.IDLE, (Effect.RELEASE_SESSION,)),
    (_S.RUNNING, _E.TOGGLE_PAUSE): (_S.PAUSED, (Effect.PAUSE_SESSION,)),
    (_S.PAUSED, _E.TOGGLE_PAUSE): (_S.RUNNING, (Effect.RESUME_SESSION,)),
    (_S.RUNNING, _E.PAUSE): (_S.PAUSED, (Effect.PAUSE_SESSION,)),
    (_S.PAUSED, _E.RESUME): (_S.RUNNING, (Effect.RESUME_SESSION,)),
    # The session changed on its own; only the controller state follows.
    (_S.RUNNING, _E.PLATFORM_PAUSED): (_S.PAUSED, ()),
    (_S.PAUSED, _E.PLATFORM_RESUMED): (_S.RUNNING, ()),
    (_S.RUNNING, _E.END): (_S.ENDING, (Effect.STOP_POLLER, Effect.END_SESSION)),
    (_S.PAUSED, _E.END): (_S.ENDING, (Effect.STOP_POLLER, Effect.END_SESSION)),
    (_S.ENDING, _E.COLLECTION_STOPPED): (_S.ENDED, (Effect.SUMMARY_AVAILABLE,)),
    (_S.ENDED, _E.DISMISS_SUMMARY): (_S.IDLE, (Effect.RESET_METRICS, Effect.RELEASE_SESSION)),
}


def transition(state: SessionState, event: SessionEvent) -> Transition:
    """Return the transition for ``event`` in ``state``; unknown pairs are no-ops."""

    target = TRANSITIONS.get((state, event))
    if target is None:
        return Transition(state, event, state)
    new_state, effects = target
    return Transition(state, event, new_state, effects)


class WorkoutController:
    """Drive one workout at a time against a :class:`HealthStore`."""

    def __init__(
        self,
        store: HealthStore,
        metrics: Optional[MetricStore] = None,
        *,
        poller_factory: Optional[Callable[[HealthStore, MetricStore], MetricPoller]] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.metrics = metrics or MetricStore()
        self.poller_factory = poller_factory or (lambda s, m: MetricPoller(s, m))
        self.clock = clock
        self.state = SessionState.IDLE
        self.activity: Optional[ActivityKind] = None
        self.session: Optional[WorkoutSession] = None
        self.builder: Optional[LiveWorkoutBuilder] = None
        self.workout: Optional[WorkoutRecord] = None
        self.poller: Optional[MetricPoller] = None
        self.history = HeartRateHistory()
        self.transitions: Deque[Transition] = deque(maxlen=50)
        self._generation = 0
        self._pending: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self.state is SessionState.RUNNING

    @property
    def active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def summary_available(self) -> bool:
        return self.state is SessionState.ENDED and self.workout is not None

    def elapsed_time(self, at: Optional[datetime] = None) -> float:
        if self.builder is None:
            return 0.0
        return self.builder.elapsed_time(at or self.clock())

    def status(self) -> Dict[str, Any]:
        snapshot = self.metrics.snapshot
        return {
            "state": self.state.value,
            "running": self.running,
            "activity": self.activity.value if self.activity else None,
            "label": self.activity.label if self.activity else None,
            "elapsed": round(self.elapsed_time(), 2),
            "metrics": snapshot.to_dict(),
            "zone": describe_zone(snapshot.heart_rate),
            "summary": self.workout.to_dict() if self.summary_available else None,
            "history": self.history.to_dict(),
        }

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def request_authorization(self) -> bool:
        """Ask for the data kinds the app reads; refresh HRV once when granted."""

        try:
            granted = await self.store.request_authorization(READ_KINDS, SHARE_KINDS)
        except Exception:
            logger.exception("Authorization request failed")
            return False
        if not granted:
            logger.warning("Health data authorization was not granted")
            return False
        logger.info("Health data authorization granted")
        poller = self.poller or self.poller_factory(self.store, self.metrics)
        task = poller.refresh("hrv")
        if task is not None:
            self._track(task)
        return True

    async def select_activity(self, activity: ActivityKind) -> SessionState:
        activity = ActivityKind.parse(activity)
        self._generation += 1
        await self._dispatch(SessionEvent.SELECT_ACTIVITY, activity=activity, generation=self._generation)
        return self.state

    async def toggle_pause(self) -> SessionState:
        await self._dispatch(SessionEvent.TOGGLE_PAUSE)
        return self.state

    async def pause(self) -> SessionState:
        await self._dispatch(SessionEvent.PAUSE)
        return self.state

    async def resume(self) -> SessionState:
        await self._dispatch(SessionEvent.RESUME)
        return self.state

    async def end_workout(self) -> SessionState:
        await self._dispatch(SessionEvent.END)
        return self.state

    async def dismiss_summary(self) -> SessionState:
        await self._dispatch(SessionEvent.DISMISS_SUMMARY)
        return self.state

    async def settle(self) -> None:
        """Wait for scheduled callbacks, follow-up tasks and metric updates."""

        while True:
            await asyncio.sleep(0)
            pending = [t for t in self._pending if not t.done()]
            if not pending:
                break
            await asyncio.gather(*pending, return_exceptions=True)
        await self.metrics.flush()

    async def shutdown(self) -> None:
        if self.poller is not None:
            await self.poller.stop()
            self.poller = None
        if self.session is not None:
            self.session.on_state_change = None
            self.session.builder.on_collect = None
            await self.session.end(self.clock())
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pending.clear()

    # ------------------------------------------------------------------
    # State machine plumbing
    # ------------------------------------------------------------------

    async def _dispatch(self, event: SessionEvent, **context: Any) -> Transition:
        step = transition(self.state, event)
        if not step.changed:
            logger.debug("Ignoring %s while %s", event.value, self.state.value)
            return step
        self.state = step.state
        self.transitions.append(step)
        logger.info("Workout %s -> %s (%s)", step.previous.value, step.state.value, event.value)
        for effect in step.effects:
            await self._apply_effect(effect, **context)
        return step

    async def _apply_effect(self, effect: Effect, **context: Any) -> None:
        if effect is Effect.CREATE_SESSION:
            await self._create_session(context["activity"], context["generation"])
        elif effect is Effect.REPLACE_SESSION:
            old, self.session = self.session, None
            self.builder = None
            self.workout = None
            if old is not None:
                old.on_state_change = None
                old.builder.on_collect = None
                logger.info("Replacing active %s session", old.activity.value)
                await old.end(self.clock())
        elif effect is Effect.START_POLLER:
            if self.poller is None:
                self.poller = self.poller_factory(self.store, self.metrics)
            self.poller.start()
        elif effect is Effect.STOP_POLLER:
            if self.poller is not None:
                await self.poller.stop()
                self.poller = None
        elif effect is Effect.PAUSE_SESSION:
            if self.session is not None:
                await self.session.pause(self.clock())
        elif effect is Effect.RESUME_SESSION:
            if self.session is not None:
                await self.session.resume(self.clock())
        elif effect is Effect.END_SESSION:
            if self.session is not None:
                await self.session.end(self.clock())
        elif effect is Effect.SUMMARY_AVAILABLE:
            if self.workout is not None:
                logger.info("Workout summary ready: %s", self.workout.to_dict())
        elif effect is Effect.RESET_METRICS:
            self.metrics.reset()
            self.history = HeartRateHistory()
        elif effect is Effect.RELEASE_SESSION:
            self.session = None
            self.builder = None
            self.workout = None
            self.activity = None

    async def _create_session(self, activity: ActivityKind, generation: int) -> None:
        cfg = get_settings()
        try:
            session = await self.store.start_session(activity, cfg.DEFAULT_LOCATION)
        except SessionError as exc:
            logger.warning("Could not start %s workout: %s", activity.value, exc)
            if generation == self._generation:
                await self._dispatch(SessionEvent.START_FAILED)
            return
        if generation != self._generation:
            # A newer selection superseded this one while it was being created.
            await session.end(self.clock())
            return

        self.activity = activity
        self.session = session
        self.builder = session.builder
        self.workout = None
        session.on_state_change = self._on_session_state
        session.builder.on_collect = self._on_collect

        start = self.clock()
        await session.start_activity(start)
        await session.builder.begin_collection(start)

    # ------------------------------------------------------------------
    # Session callbacks
    # ------------------------------------------------------------------

    def _track(self, task: asyncio.Task) -> None:
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _spawn(self, coro) -> None:
        self._track(asyncio.get_running_loop().create_task(coro))

    def _on_session_state(
        self, session: WorkoutSession, new_state: PlatformState, old_state: PlatformState, date: datetime
    ) -> None:
        if session is not self.session:
            return
        if new_state is PlatformState.RUNNING and self.state is SessionState.STARTING:
            self._spawn(self._dispatch(SessionEvent.SESSION_STARTED))
        elif new_state is not session.state:
            # Superseded by a later change already queued behind this one.
            return
        elif new_state is PlatformState.PAUSED:
            self._spawn(self._dispatch(SessionEvent.PLATFORM_PAUSED))
        elif new_state is PlatformState.RUNNING and old_state is PlatformState.PAUSED:
            self._spawn(self._dispatch(SessionEvent.PLATFORM_RESUMED))
        elif new_state is PlatformState.ENDED:
            self._spawn(self._finish(session, date))

    async def _finish(self, session: WorkoutSession, date: datetime) -> None:
        await self._dispatch(SessionEvent.END)
        builder = session.builder
        await builder.end_collection(date)
        workout = await builder.finish_workout()
        if session is not self.session:
            return
        self.workout = workout
        await self._dispatch(SessionEvent.COLLECTION_STOPPED)

    def _on_collect(self, builder: LiveWorkoutBuilder, kinds: Set[DataKind]) -> None:
        if builder is not self.builder:
            return
        for kind in kinds:
            self.update_for_statistics(builder.statistics(kind))

    def update_for_statistics(self, statistics: Optional[Statistics]) -> None:
        if statistics is None:
            return
        kind = statistics.kind
        source = f"live:{kind.value}"
        if kind is DataKind.HEART_RATE:
            self.metrics.set("heart_rate", statistics.most_recent or 0, source)
            self.metrics.set("average_heart_rate", statistics.average or 0, source)
            if statistics.most_recent:
                self.history.add(statistics.most_recent)
        elif kind is DataKind.ACTIVE_ENERGY_BURNED:
            self.metrics.set("active_energy", statistics.sum, source)
        elif kind is DataKind.BASAL_ENERGY_BURNED:
            self.metrics.set("basal_energy", statistics.sum, source)
        elif kind in DISTANCE_KINDS:
            self.metrics.set("distance", statistics.sum, source)


__all__ = ["SessionEvent", "Effect", "Transition", "TRANSITIONS", "transition", "WorkoutController"]
