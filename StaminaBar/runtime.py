"""Event-loop thread hosting the workout controller.

Flask serves requests from its own threads, but the controller, the metric
store and every health store callback belong to a single asyncio loop.
:class:`WorkoutRuntime` runs that loop in a background thread and exposes
blocking helpers that submit coroutines to it with
:func:`asyncio.run_coroutine_threadsafe`, so state is only ever touched from
the loop.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
from typing import Any, Awaitable, Callable, Dict, Optional

from config.settings import get_settings
from StaminaBar.common.states import ActivityKind, SessionState
from StaminaBar.health_store import HealthStore
from StaminaBar.heartrate_mon.strap import HeartRateStrap, builder_sink
from StaminaBar.session_controller import WorkoutController
from StaminaBar.simulated import SimulatedHealthStore, drive_workout

logger = logging.getLogger(__name__)


class WorkoutRuntime:
    def __init__(self, store: Optional[HealthStore] = None, *, simulate: bool = False, timeout: float = 5.0) -> None:
        self.store = store or SimulatedHealthStore()
        self.simulate = simulate
        self.timeout = timeout
        self.loop = asyncio.new_event_loop()
        self.controller: Optional[WorkoutController] = None
        self.strap: Optional[HeartRateStrap] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._background: set[asyncio.Task] = set()

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self.loop.is_running()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> "WorkoutRuntime":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(target=self._run_loop, name="workout-loop", daemon=True)
        self._thread.start()
        self._ready.wait(self.timeout)
        self.call(self._setup)
        return self

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.call_soon(self._ready.set)
        self.loop.run_forever()

    async def _setup(self) -> None:
        self.controller = WorkoutController(self.store)
        self.controller.metrics.start()
        mac = get_settings().HR_STRAP_MAC
        if mac:
            self.strap = HeartRateStrap(mac, on_bpm=builder_sink(self.controller))
            self._spawn(self.strap.run_forever())
        logger.info("Workout runtime ready (%s)", type(self.store).__name__)

    def stop(self) -> None:
        if self._thread is None:
            return
        if self.loop.is_running():
            try:
                self.call(self._teardown)
            finally:
                self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(self.timeout)
        self._thread = None
        self.loop.close()

    async def _teardown(self) -> None:
        background = list(self._background)
        for task in background:
            task.cancel()
        if background:
            await asyncio.gather(*background, return_exceptions=True)
        if self.controller is not None:
            await self.controller.shutdown()
            await self.controller.metrics.stop()

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = self.loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # Thread-safe entry points
    # ------------------------------------------------------------------

    def call(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """Run ``fn(*args)`` on the loop and block for its result."""

        future = asyncio.run_coroutine_threadsafe(fn(*args), self.loop)
        return future.result(self.timeout)

    def _require_controller(self) -> WorkoutController:
        if self.controller is None:
            raise RuntimeError("workout runtime has not been started")
        return self.controller

    async def _status(self) -> Dict[str, Any]:
        controller = self._require_controller()
        await controller.settle()
        status = controller.status()
        poller = controller.poller
        status["poller"] = {"running": bool(poller and poller.running), "ticks": poller.ticks if poller else 0}
        return status

    def status(self) -> Dict[str, Any]:
        return self.call(self._status)

    async def _start_workout(self, activity: ActivityKind) -> Dict[str, Any]:
        controller = self._require_controller()
        await controller.select_activity(activity)
        await controller.settle()
        if self.simulate and controller.session is not None and controller.state is SessionState.RUNNING:
            self._spawn(drive_workout(controller.session, math.inf))
        return await self._status()

    def start_workout(self, activity: ActivityKind) -> Dict[str, Any]:
        return self.call(self._start_workout, activity)

    async def _action(self, name: str) -> Dict[str, Any]:
        controller = self._require_controller()
        await getattr(controller, name)()
        await controller.settle()
        return await self._status()

    def action(self, name: str) -> Dict[str, Any]:
        """Run one of the controller's session actions by name."""

        if name not in {"toggle_pause", "pause", "resume", "end_workout", "dismiss_summary", "request_authorization"}:
            raise ValueError(f"Unknown workout action: {name!r}")
        return self.call(self._action, name)


__all__ = ["WorkoutRuntime"]
