"""Command line entry point.

``zone``
    print the stamina bar band for a heart rate
``simulate``
    run a workout against the simulated health store and print snapshots
``onboarding``
    show or reset the onboarding-shown flag
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
import sys
from datetime import datetime, timedelta
from typing import List, Optional

from StaminaBar import preferences
from StaminaBar.common.kinds import DataKind
from StaminaBar.common.states import ActivityKind
from StaminaBar.poller import MetricPoller
from StaminaBar.session_controller import WorkoutController
from StaminaBar.simulated import SimulatedHealthStore, drive_workout
from zone_mapper import describe_zone

logger = logging.getLogger(__name__)


def _seed_daily_samples(store: SimulatedHealthStore, now: datetime, rng: random.Random) -> None:
    morning = datetime.combine(now.date(), datetime.min.time()) + timedelta(hours=7)
    if morning > now:
        morning = now
    store.add_sample(DataKind.HEART_RATE_VARIABILITY_SDNN, round(rng.uniform(35, 75), 1), morning, morning)
    store.add_sample(DataKind.VO2_MAX, round(rng.uniform(38, 48), 1), morning, morning)
    store.add_sample(DataKind.BASAL_ENERGY_BURNED, round(rng.uniform(900, 1300)), morning, now)
    store.add_sample(DataKind.ACTIVE_ENERGY_BURNED, round(rng.uniform(150, 400)), morning, now)
    store.add_sample(DataKind.STEP_COUNT, rng.randint(2000, 9000), morning, now)


class _SimulatedClock:
    """Clock advanced by the simulation instead of the wall."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now


async def simulate(activity: ActivityKind, seconds: float, *, every: float = 5.0, seed: Optional[int] = None) -> dict:
    """Run a full simulated workout without real-time waits and return the summary."""

    rng = random.Random(seed)
    store = SimulatedHealthStore()
    started = datetime.now()
    _seed_daily_samples(store, started, rng)
    clock = _SimulatedClock(started)
    controller = WorkoutController(
        store,
        poller_factory=lambda s, m: MetricPoller(s, m, interval=every, clock=clock),
        clock=clock,
    )
    controller.metrics.start()
    try:
        await controller.request_authorization()
        await controller.select_activity(activity)
        await controller.settle()
        if controller.session is None:
            raise RuntimeError("workout did not start")

        last = {"reported": 0.0}

        async def on_step(elapsed: float) -> None:
            clock.now = started + timedelta(seconds=elapsed)
            if elapsed - last["reported"] < every and elapsed < seconds:
                return
            last["reported"] = elapsed
            if controller.poller is not None:
                await controller.poller.poll_once()
            await controller.settle()
            snap = controller.metrics.snapshot
            zone = describe_zone(snap.heart_rate)
            print(
                f"{int(elapsed):>5}s  {snap.heart_rate:>5.0f} bpm  band {zone['band']:>7}"
                f"  {snap.distance:5.2f} mi  {snap.active_energy:6.1f} kcal  {snap.step_count} steps"
            )

        await drive_workout(controller.session, seconds, rng=rng, realtime=False, on_step=on_step)
        await controller.end_workout()
        await controller.settle()
        summary = controller.status()["summary"]
        await controller.dismiss_summary()
        await controller.settle()
        return summary or {}
    finally:
        await controller.shutdown()
        await controller.metrics.stop()


def _cmd_zone(args) -> int:
    if args.bpm < 0:
        print("heart rate must be non-negative", file=sys.stderr)
        return 2
    print(json.dumps(describe_zone(args.bpm)))
    return 0


def _cmd_simulate(args) -> int:
    try:
        activity = ActivityKind.parse(args.activity)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 2
    summary = asyncio.run(simulate(activity, args.seconds, every=args.every, seed=args.seed))
    print(json.dumps(summary, indent=2))
    return 0


def _cmd_onboarding(args) -> int:
    if args.reset:
        preferences.mark_onboarding_shown(False)
    elif args.mark:
        preferences.mark_onboarding_shown(True)
    print("shown" if preferences.onboarding_shown() else "not shown")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stamina", description="Stamina Bar workout tools")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    zone = sub.add_parser("zone", help="map a heart rate to its stamina bar band")
    zone.add_argument("bpm", type=float)
    zone.set_defaults(func=_cmd_zone)

    sim = sub.add_parser("simulate", help="run a simulated workout")
    sim.add_argument("--activity", default=ActivityKind.OTHER.value)
    sim.add_argument("--seconds", type=float, default=60.0)
    sim.add_argument("--every", type=float, default=5.0, help="seconds between poller ticks and printed lines")
    sim.add_argument("--seed", type=int)
    sim.set_defaults(func=_cmd_simulate)

    onboarding = sub.add_parser("onboarding", help="show or change the onboarding flag")
    group = onboarding.add_mutually_exclusive_group()
    group.add_argument("--reset", action="store_true")
    group.add_argument("--mark", action="store_true")
    onboarding.set_defaults(func=_cmd_onboarding)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
