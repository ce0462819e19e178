"""In-process health store.

:class:`SimulatedHealthStore` keeps samples in memory and hands out real
:class:`~StaminaBar.health_store.WorkoutSession` objects, so the controller
and poller can run end to end without a device.  It is used by the test
suite, the ``simulate`` CLI command and the development server.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set

from StaminaBar.builder import LiveWorkoutBuilder
from StaminaBar.common.kinds import DataKind, Sample
from StaminaBar.common.states import ActivityKind
from StaminaBar.health_store import AuthorizationError, HealthStore, SessionError, WorkoutSession

logger = logging.getLogger(__name__)


class SimulatedHealthStore(HealthStore):
    """Health store backed by in-memory sample lists.

    Parameters
    ----------
    grant:
        Whether :meth:`request_authorization` succeeds.  A refusal marks every
        requested read kind as denied so later queries raise
        :class:`AuthorizationError`.
    fail_sessions:
        When ``True`` :meth:`start_session` raises :class:`SessionError`.
    latency:
        Seconds each query waits before answering.
    """

    def __init__(self, *, grant: bool = True, fail_sessions: bool = False, latency: float = 0.0) -> None:
        self.grant = grant
        self.fail_sessions = fail_sessions
        self.latency = latency
        self.samples: Dict[DataKind, List[Sample]] = defaultdict(list)
        self.authorized: Set[DataKind] = set()
        self.denied: Set[DataKind] = set()
        self.sessions: List[WorkoutSession] = []
        self.queries: Counter[DataKind] = Counter()

    # ------------------------------------------------------------------
    # Fixtures
    # ------------------------------------------------------------------

    def add_sample(
        self,
        kind: DataKind,
        value: float,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Sample:
        end = end or datetime.now()
        sample = Sample(kind, float(value), start or end, end)
        self.samples[kind].append(sample)
        return sample

    @property
    def active_sessions(self) -> List[WorkoutSession]:
        return [s for s in self.sessions if s.end_date is None]

    # ------------------------------------------------------------------
    # HealthStore
    # ------------------------------------------------------------------

    async def request_authorization(self, read_kinds: Iterable[DataKind], write_kinds: Iterable[DataKind]) -> bool:
        await self._wait()
        read = set(read_kinds)
        if not self.grant:
            self.denied |= read
            return False
        self.authorized |= read | set(write_kinds)
        self.denied -= read
        return True

    async def start_session(self, activity: ActivityKind, location: str = "outdoor") -> WorkoutSession:
        await self._wait()
        if self.fail_sessions:
            raise SessionError("workout session could not be created")
        session = WorkoutSession(activity, LiveWorkoutBuilder(activity), location)
        self.sessions.append(session)
        return session

    async def most_recent_sample(self, kind: DataKind) -> Optional[Sample]:
        self._check(kind)
        await self._wait()
        samples = self.samples.get(kind)
        if not samples:
            return None
        return max(samples, key=lambda s: s.start)

    async def cumulative_sum(self, kind: DataKind, start: datetime, end: datetime) -> Optional[float]:
        self._check(kind)
        await self._wait()
        window = [s for s in self.samples.get(kind, []) if s.start >= start and s.end <= end]
        if not window:
            return None
        return sum(s.value for s in window)

    def _check(self, kind: DataKind) -> None:
        self.queries[kind] += 1
        if kind in self.denied:
            raise AuthorizationError(f"read access to {kind.value} denied")

    async def _wait(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        else:
            await asyncio.sleep(0)


async def drive_workout(
    session: WorkoutSession,
    seconds: float,
    *,
    step: float = 1.0,
    rng: Optional[random.Random] = None,
    realtime: bool = True,
    on_step: Optional[Callable[[float], Awaitable[None]]] = None,
) -> int:
    """Feed plausible heart rate, energy and distance samples into ``session``.

    Heart rate ramps from resting towards a working rate with some noise.
    ``on_step`` is awaited with the simulated elapsed seconds after every
    batch.  Returns the number of sample batches delivered.
    """

    rng = rng or random.Random()
    builder = session.builder
    distance_kind = (
        DataKind.DISTANCE_CYCLING if session.activity is ActivityKind.CYCLING else DataKind.DISTANCE_WALKING_RUNNING
    )
    now = session.start_date or datetime.now()
    heart_rate = 65.0
    batches = 0
    elapsed = 0.0
    while elapsed < seconds and session.end_date is None:
        elapsed += step
        previous, now = now, now + timedelta(seconds=step)
        heart_rate += (150 - heart_rate) * 0.05 + rng.uniform(-3, 3)
        builder.add_samples(
            [
                Sample(DataKind.HEART_RATE, round(heart_rate), previous, now),
                Sample(DataKind.ACTIVE_ENERGY_BURNED, 0.15 * step, previous, now),
                Sample(distance_kind, 0.0025 * step, previous, now),
            ]
        )
        batches += 1
        if on_step is not None:
            await on_step(elapsed)
        await asyncio.sleep(step if realtime else 0)
    return batches


__all__ = ["SimulatedHealthStore", "drive_workout"]
