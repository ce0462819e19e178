"""Live workout builder.

The builder aggregates raw samples delivered during a session into per-kind
statistics and produces the :class:`WorkoutRecord` once collection stops.
Samples that arrive while the session is paused or before collection begins
are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from StaminaBar.common.kinds import DISTANCE_KINDS, DataKind, Sample
from StaminaBar.common.states import ActivityKind

logger = logging.getLogger(__name__)

CollectCallback = Callable[["LiveWorkoutBuilder", Set[DataKind]], None]


@dataclass(frozen=True)
class Statistics:
    """Aggregate of every sample of one kind collected so far."""

    kind: DataKind
    count: int = 0
    sum: float = 0.0
    most_recent: Optional[float] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    @property
    def average(self) -> Optional[float]:
        if not self.count:
            return None
        return self.sum / self.count

    def add(self, value: float) -> "Statistics":
        return replace(
            self,
            count=self.count + 1,
            sum=self.sum + value,
            most_recent=value,
            minimum=value if self.minimum is None else min(self.minimum, value),
            maximum=value if self.maximum is None else max(self.maximum, value),
        )


@dataclass(frozen=True)
class WorkoutRecord:
    """Summary of a finished workout."""

    activity: ActivityKind
    start: datetime
    end: datetime
    duration: float
    total_energy: float
    total_distance: float
    average_heart_rate: Optional[float]

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["activity"] = self.activity.value
        data["start"] = self.start.isoformat(timespec="seconds")
        data["end"] = self.end.isoformat(timespec="seconds")
        return data


class LiveWorkoutBuilder:
    def __init__(self, activity: ActivityKind) -> None:
        self.activity = activity
        self.start_date: Optional[datetime] = None
        self.end_date: Optional[datetime] = None
        self.collecting = False
        self.workout: Optional[WorkoutRecord] = None
        self.on_collect: Optional[CollectCallback] = None
        self._stats: Dict[DataKind, Statistics] = {}
        self._pauses: List[Tuple[datetime, Optional[datetime]]] = []

    # ------------------------------------------------------------------
    # Collection lifecycle
    # ------------------------------------------------------------------

    async def begin_collection(self, start: datetime) -> bool:
        if self.collecting or self.end_date is not None:
            return False
        self.start_date = start
        self.collecting = True
        logger.debug("Collection started for %s at %s", self.activity.value, start)
        return True

    async def end_collection(self, end: datetime) -> bool:
        if not self.collecting:
            return False
        if self.paused:
            self.mark_resumed(end)
        self.end_date = end
        self.collecting = False
        logger.debug("Collection stopped for %s at %s", self.activity.value, end)
        return True

    async def finish_workout(self) -> Optional[WorkoutRecord]:
        """Return the workout record, or ``None`` if collection never ran."""

        if self.workout is not None:
            return self.workout
        if self.start_date is None or self.end_date is None:
            return None
        energy = self._stats.get(DataKind.ACTIVE_ENERGY_BURNED)
        heart = self._stats.get(DataKind.HEART_RATE)
        distance = sum(self._stats[k].sum for k in DISTANCE_KINDS if k in self._stats)
        self.workout = WorkoutRecord(
            activity=self.activity,
            start=self.start_date,
            end=self.end_date,
            duration=self.elapsed_time(self.end_date),
            total_energy=energy.sum if energy else 0.0,
            total_distance=distance,
            average_heart_rate=heart.average if heart else None,
        )
        return self.workout

    # ------------------------------------------------------------------
    # Pause bookkeeping
    # ------------------------------------------------------------------

    @property
    def paused(self) -> bool:
        return bool(self._pauses) and self._pauses[-1][1] is None

    def mark_paused(self, date: datetime) -> None:
        if not self.paused:
            self._pauses.append((date, None))

    def mark_resumed(self, date: datetime) -> None:
        if self.paused:
            started, _ = self._pauses[-1]
            self._pauses[-1] = (started, date)

    def elapsed_time(self, at: Optional[datetime] = None) -> float:
        """Return active seconds between the start and ``at``, excluding pauses."""

        if self.start_date is None:
            return 0.0
        at = at or datetime.now()
        if self.end_date is not None and at > self.end_date:
            at = self.end_date
        total = (at - self.start_date).total_seconds()
        for started, ended in self._pauses:
            if started >= at:
                continue
            stop = at if ended is None or ended > at else ended
            total -= (stop - started).total_seconds()
        return max(0.0, total)

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    def add_samples(self, samples: Iterable[Sample]) -> Set[DataKind]:
        """Aggregate ``samples`` and notify ``on_collect`` of the kinds touched.

        Must be called on the event loop; the notification is scheduled with
        ``call_soon``.
        """

        if not self.collecting or self.paused:
            return set()
        kinds: Set[DataKind] = set()
        for sample in samples:
            current = self._stats.get(sample.kind) or Statistics(sample.kind)
            self._stats[sample.kind] = current.add(float(sample.value))
            kinds.add(sample.kind)
        if kinds and self.on_collect is not None:
            asyncio.get_running_loop().call_soon(self.on_collect, self, set(kinds))
        return kinds

    def statistics(self, kind: DataKind) -> Optional[Statistics]:
        return self._stats.get(kind)


__all__ = ["Statistics", "WorkoutRecord", "LiveWorkoutBuilder"]
