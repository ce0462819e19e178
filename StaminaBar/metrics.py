"""Metric snapshot and its single-writer store.

Every displayed health metric lives in one immutable :class:`MetricSnapshot`.
Producers never touch it directly: they :meth:`MetricStore.post` a
:class:`MetricUpdate` and the store's drain task applies updates one at a time
in arrival order.  Readers always see a complete snapshot and each field is
simply last-write-wins.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, fields, replace
from typing import Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricSnapshot:
    heart_rate: float = 0.0
    average_heart_rate: float = 0.0
    hrv: float = 0.0
    active_energy: float = 0.0
    basal_energy: float = 0.0
    total_daily_energy: float = 0.0
    step_count: int = 0
    vo2max: float = 0.0
    previous_vo2max: float = 0.0
    distance: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


METRIC_FIELDS = frozenset(f.name for f in fields(MetricSnapshot))


@dataclass(frozen=True)
class MetricUpdate:
    """Request to overwrite one snapshot field with ``value``."""

    field: str
    value: float
    source: str = ""

    def __post_init__(self) -> None:
        if self.field not in METRIC_FIELDS:
            raise ValueError(f"Unknown metric field: {self.field!r}")


class ResetMetrics:
    """Marker update clearing every field back to zero."""

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return "RESET_METRICS"


RESET_METRICS = ResetMetrics()

Update = Union[MetricUpdate, ResetMetrics]
Subscriber = Callable[[MetricSnapshot], None]


def apply_update(snapshot: MetricSnapshot, update: Update) -> MetricSnapshot:
    """Return ``snapshot`` with ``update`` applied.

    A new VO2 max reading moves the current value into ``previous_vo2max``.
    Replaying the reading already shown changes nothing.
    """

    if isinstance(update, ResetMetrics):
        return MetricSnapshot()
    if update.field == "step_count":
        return replace(snapshot, step_count=int(update.value))
    if update.field == "vo2max":
        value = float(update.value)
        if value == snapshot.vo2max:
            return snapshot
        return replace(snapshot, previous_vo2max=snapshot.vo2max, vo2max=value)
    return replace(snapshot, **{update.field: float(update.value)})


class MetricStore:
    """Holds the current :class:`MetricSnapshot` and applies queued updates."""

    def __init__(self) -> None:
        self._snapshot = MetricSnapshot()
        self._queue: asyncio.Queue[Update] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._subscribers: List[Subscriber] = []
        self.version = 0

    @property
    def snapshot(self) -> MetricSnapshot:
        return self._snapshot

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Update channel
    # ------------------------------------------------------------------

    def post(self, update: Update) -> None:
        """Queue ``update``.  Must be called from the store's event loop."""

        self._queue.put_nowait(update)

    def set(self, field: str, value: float, source: str = "") -> None:
        self.post(MetricUpdate(field, value, source))

    def reset(self) -> None:
        self.post(RESET_METRICS)

    async def flush(self) -> None:
        """Wait until every queued update has been applied."""

        if not self.running:
            self._drain_now()
            return
        await self._queue.join()

    # ------------------------------------------------------------------
    # Drain task
    # ------------------------------------------------------------------

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._drain(), name="metric-store")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._drain_now()

    async def _drain(self) -> None:
        while True:
            update = await self._queue.get()
            try:
                self._apply(update)
            finally:
                self._queue.task_done()

    def _drain_now(self) -> None:
        while not self._queue.empty():
            update = self._queue.get_nowait()
            try:
                self._apply(update)
            finally:
                self._queue.task_done()

    def _apply(self, update: Update) -> None:
        new = apply_update(self._snapshot, update)
        if new == self._snapshot:
            return
        self._snapshot = new
        self.version += 1
        if isinstance(update, MetricUpdate):
            logger.debug("%s = %s (%s)", update.field, update.value, update.source or "-")
        for subscriber in list(self._subscribers):
            try:
                subscriber(new)
            except Exception:
                logger.exception("Metric subscriber %r failed", subscriber)

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback`` with every changed snapshot; returns an unsubscribe hook."""

        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe


__all__ = [
    "MetricSnapshot",
    "METRIC_FIELDS",
    "MetricUpdate",
    "RESET_METRICS",
    "apply_update",
    "MetricStore",
]
