"""Periodic refresh of the metrics the live session does not stream.

While a workout runs, :class:`MetricPoller` wakes every ``POLL_INTERVAL``
seconds and issues five independent queries against the health store: the
latest HRV and VO2 max samples and today's cumulative basal energy, active
energy and step count.  Each query posts its own update to the metric store
when it completes; a query that fails or finds no data leaves its field as
it was until the next tick.

When a query from the previous tick is still running the ``POLL_OVERLAP``
setting decides what happens:

``coalesce``
    skip that metric for this tick (default)
``restart``
    cancel the running query and issue a new one
``overlap``
    issue a new query alongside the old one
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from config.settings import get_settings
from StaminaBar.common.kinds import DataKind
from StaminaBar.health_store import AuthorizationError, HealthStore
from StaminaBar.metrics import MetricStore

logger = logging.getLogger(__name__)

OVERLAP_POLICIES = ("coalesce", "restart", "overlap")

Fetch = Callable[[HealthStore, datetime], Awaitable[Optional[float]]]


def start_of_day(now: datetime) -> datetime:
    return datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)


def _most_recent(kind: DataKind) -> Fetch:
    async def fetch(store: HealthStore, now: datetime) -> Optional[float]:
        sample = await store.most_recent_sample(kind)
        return None if sample is None else sample.value

    return fetch


def _today_sum(kind: DataKind) -> Fetch:
    async def fetch(store: HealthStore, now: datetime) -> Optional[float]:
        return await store.cumulative_sum(kind, start_of_day(now), now)

    return fetch


@dataclass(frozen=True)
class PollTarget:
    """One periodically refreshed metric."""

    name: str
    field: str
    fetch: Fetch


DEFAULT_TARGETS: Tuple[PollTarget, ...] = (
    PollTarget("hrv", "hrv", _most_recent(DataKind.HEART_RATE_VARIABILITY_SDNN)),
    PollTarget("basal_energy", "basal_energy", _today_sum(DataKind.BASAL_ENERGY_BURNED)),
    PollTarget("active_energy", "total_daily_energy", _today_sum(DataKind.ACTIVE_ENERGY_BURNED)),
    PollTarget("step_count", "step_count", _today_sum(DataKind.STEP_COUNT)),
    PollTarget("vo2max", "vo2max", _most_recent(DataKind.VO2_MAX)),
)


class MetricPoller:
    def __init__(
        self,
        store: HealthStore,
        metrics: MetricStore,
        *,
        interval: Optional[float] = None,
        overlap: Optional[str] = None,
        targets: Tuple[PollTarget, ...] = DEFAULT_TARGETS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        cfg = get_settings()
        self.store = store
        self.metrics = metrics
        self.interval = float(interval if interval is not None else cfg.POLL_INTERVAL)
        self.overlap = overlap or cfg.POLL_OVERLAP
        if self.overlap not in OVERLAP_POLICIES:
            raise ValueError(f"Unknown overlap policy: {self.overlap!r}")
        self.targets = {t.name: t for t in targets}
        self.clock = clock
        self.ticks = 0
        self.issued: Counter[str] = Counter()
        self.skipped: Counter[str] = Counter()
        self._in_flight: Dict[str, List[asyncio.Task]] = {}
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def in_flight(self, name: str) -> int:
        return sum(1 for t in self._in_flight.get(name, []) if not t.done())

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return
        logger.info("Metric poller started (every %ss, %s)", self.interval, self.overlap)
        self._task = asyncio.get_running_loop().create_task(self._run(), name="metric-poller")

    async def stop(self) -> None:
        """Stop ticking and cancel requests still in flight.

        Nothing issued by this poller writes to the metric store afterwards.
        """

        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        pending = [t for tasks in self._in_flight.values() for t in tasks if not t.done()]
        self._in_flight.clear()
        for fetch in pending:
            fetch.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if task is not None:
            logger.info("Metric poller stopped after %s ticks", self.ticks)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.tick()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def tick(self) -> List[asyncio.Task]:
        """Issue one request per metric according to the overlap policy."""

        self.ticks += 1
        tasks = []
        for name in self.targets:
            task = self.refresh(name)
            if task is not None:
                tasks.append(task)
        return tasks

    def refresh(self, name: str) -> Optional[asyncio.Task]:
        target = self.targets[name]
        pending = [t for t in self._in_flight.get(name, []) if not t.done()]
        if pending:
            if self.overlap == "coalesce":
                self.skipped[name] += 1
                logger.debug("%s request still in flight; skipping", name)
                return None
            if self.overlap == "restart":
                for task in pending:
                    task.cancel()
                pending = []
        task = asyncio.get_running_loop().create_task(self._fetch(target), name=f"poll-{name}")
        self._in_flight[name] = pending + [task]
        self.issued[name] += 1
        return task

    async def poll_once(self) -> None:
        """Run a single tick and wait for the requests it issued."""

        tasks = self.tick()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _fetch(self, target: PollTarget) -> None:
        started = self.clock()
        try:
            value = await target.fetch(self.store, started)
        except AuthorizationError as exc:
            logger.warning("Not authorized to read %s: %s", target.name, exc)
            return
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Failed to retrieve %s", target.name)
            return
        if value is None:
            logger.info("No %s data available", target.name)
            return
        self.metrics.set(target.field, value, source=f"poll:{target.name}")


__all__ = ["OVERLAP_POLICIES", "PollTarget", "DEFAULT_TARGETS", "MetricPoller", "start_of_day"]
