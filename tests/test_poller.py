import asyncio
from datetime import datetime, timedelta

import pytest

from StaminaBar.common.kinds import DataKind
from StaminaBar.health_store import READ_KINDS
from StaminaBar.metrics import MetricSnapshot, MetricStore
from StaminaBar.poller import MetricPoller, start_of_day
from StaminaBar.simulated import SimulatedHealthStore

NOW = datetime(2024, 5, 4, 15, 30)


def _seeded_store(**kwargs):
    store = SimulatedHealthStore(**kwargs)
    morning = start_of_day(NOW) + timedelta(hours=8)
    store.add_sample(DataKind.HEART_RATE_VARIABILITY_SDNN, 52.0, morning, morning)
    store.add_sample(DataKind.VO2_MAX, 44.1, morning, morning)
    store.add_sample(DataKind.BASAL_ENERGY_BURNED, 600, morning, morning + timedelta(hours=1))
    store.add_sample(DataKind.BASAL_ENERGY_BURNED, 400, morning + timedelta(hours=2), morning + timedelta(hours=3))
    store.add_sample(DataKind.ACTIVE_ENERGY_BURNED, 250, morning, morning + timedelta(hours=1))
    store.add_sample(DataKind.STEP_COUNT, 4200, morning, morning + timedelta(hours=1))
    # Yesterday's steps fall outside today's window.
    store.add_sample(DataKind.STEP_COUNT, 9000, morning - timedelta(days=1), morning - timedelta(hours=20))
    return store


def test_start_of_day():
    assert start_of_day(NOW) == datetime(2024, 5, 4)


def test_invalid_overlap_policy():
    with pytest.raises(ValueError):
        MetricPoller(SimulatedHealthStore(), MetricStore(), overlap="queue")


def test_interval_and_policy_from_settings(monkeypatch):
    from config.settings import reset_settings

    monkeypatch.setenv("POLL_INTERVAL", "5")
    monkeypatch.setenv("POLL_OVERLAP", "restart")
    reset_settings()
    poller = MetricPoller(SimulatedHealthStore(), MetricStore())
    assert poller.interval == 5.0
    assert poller.overlap == "restart"


def test_poll_once_sets_every_field():
    store = _seeded_store()

    async def runner():
        metrics = MetricStore()
        poller = MetricPoller(store, metrics, clock=lambda: NOW)
        await poller.poll_once()
        await metrics.flush()
        return metrics.snapshot, poller

    snap, poller = asyncio.run(runner())
    assert snap.hrv == 52.0
    assert snap.vo2max == 44.1
    assert snap.previous_vo2max == 0.0
    assert snap.basal_energy == 1000.0
    assert snap.total_daily_energy == 250.0
    assert snap.step_count == 4200
    # Live workout fields are not touched by the poller.
    assert snap.active_energy == 0.0
    assert poller.ticks == 1
    assert sum(poller.issued.values()) == 5


def test_missing_data_leaves_field_unchanged(caplog):
    store = SimulatedHealthStore()

    async def runner():
        metrics = MetricStore()
        metrics.set("step_count", 321)
        poller = MetricPoller(store, metrics, clock=lambda: NOW)
        await poller.poll_once()
        await metrics.flush()
        return metrics.snapshot

    with caplog.at_level("INFO"):
        snap = asyncio.run(runner())
    assert snap.step_count == 321
    assert "No step_count data available" in caplog.text


def test_denied_kind_is_skipped_others_still_update(caplog):
    store = _seeded_store(grant=False)

    async def runner():
        await store.request_authorization({DataKind.STEP_COUNT}, set())
        metrics = MetricStore()
        poller = MetricPoller(store, metrics, clock=lambda: NOW)
        await poller.poll_once()
        await metrics.flush()
        return metrics.snapshot

    snap = asyncio.run(runner())
    assert snap.step_count == 0
    assert snap.hrv == 52.0
    assert "Not authorized to read step_count" in caplog.text


def test_failed_query_is_logged_and_ignored(caplog):
    class Broken(SimulatedHealthStore):
        async def most_recent_sample(self, kind):
            raise OSError("store offline")

    store = Broken()
    store.add_sample(DataKind.STEP_COUNT, 10, NOW, NOW)

    async def runner():
        metrics = MetricStore()
        await MetricPoller(store, metrics, clock=lambda: NOW + timedelta(minutes=1)).poll_once()
        await metrics.flush()
        return metrics.snapshot

    snap = asyncio.run(runner())
    assert snap.step_count == 10
    assert "Failed to retrieve hrv" in caplog.text


def _overlap_run(policy):
    store = _seeded_store(latency=0.05)

    async def runner():
        metrics = MetricStore()
        poller = MetricPoller(store, metrics, overlap=policy, clock=lambda: NOW)
        first = poller.tick()
        await asyncio.sleep(0)
        second = poller.tick()
        in_flight = poller.in_flight("hrv")
        await asyncio.gather(*(first + second), return_exceptions=True)
        await metrics.flush()
        return poller, in_flight, first, metrics.snapshot

    return asyncio.run(runner())


def test_overlap_coalesce_skips_busy_metrics():
    poller, in_flight, first, snap = _overlap_run("coalesce")
    assert in_flight == 1
    assert poller.issued["hrv"] == 1
    assert poller.skipped["hrv"] == 1
    assert snap.hrv == 52.0


def test_overlap_restart_cancels_previous_request():
    poller, in_flight, first, snap = _overlap_run("restart")
    assert in_flight == 1
    assert poller.issued["hrv"] == 2
    assert all(task.cancelled() for task in first)
    assert snap.hrv == 52.0


def test_overlap_allows_concurrent_requests():
    poller, in_flight, first, snap = _overlap_run("overlap")
    assert in_flight == 2
    assert poller.issued["hrv"] == 2
    assert not poller.skipped


def test_timer_ticks_until_stopped():
    store = _seeded_store()

    async def runner():
        metrics = MetricStore()
        poller = MetricPoller(store, metrics, interval=0.01, clock=lambda: NOW)
        poller.start()
        assert poller.running
        await asyncio.sleep(0.055)
        await poller.stop()
        ticks = poller.ticks
        await asyncio.sleep(0.03)
        return poller, ticks

    poller, ticks = asyncio.run(runner())
    assert ticks >= 2
    assert poller.ticks == ticks
    assert not poller.running


def test_read_kinds_cover_polled_metrics():
    for kind in (
        DataKind.HEART_RATE_VARIABILITY_SDNN,
        DataKind.BASAL_ENERGY_BURNED,
        DataKind.ACTIVE_ENERGY_BURNED,
        DataKind.STEP_COUNT,
        DataKind.VO2_MAX,
    ):
        assert kind in READ_KINDS


def test_stop_cancels_requests_in_flight():
    store = _seeded_store(latency=0.05)

    async def runner():
        metrics = MetricStore()
        poller = MetricPoller(store, metrics, interval=3600, clock=lambda: NOW)
        poller.start()
        tasks = poller.tick()
        await asyncio.sleep(0)
        await poller.stop()
        await asyncio.sleep(0.1)
        await metrics.flush()
        return poller, tasks, metrics.snapshot

    poller, tasks, snap = asyncio.run(runner())
    assert tasks
    assert all(task.cancelled() for task in tasks)
    assert all(poller.in_flight(name) == 0 for name in poller.targets)
    assert snap == MetricSnapshot()
