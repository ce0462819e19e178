import asyncio
from datetime import datetime, timedelta

from StaminaBar.builder import LiveWorkoutBuilder, Statistics
from StaminaBar.common.kinds import DataKind, Sample
from StaminaBar.common.states import ActivityKind

T0 = datetime(2024, 5, 4, 7, 0)


def _at(seconds):
    return T0 + timedelta(seconds=seconds)


def test_statistics_accumulate():
    stats = Statistics(DataKind.HEART_RATE)
    assert stats.average is None
    for value in (100, 130, 115):
        stats = stats.add(value)
    assert stats.count == 3
    assert stats.most_recent == 115
    assert stats.minimum == 100
    assert stats.maximum == 130
    assert stats.average == 115


def test_samples_outside_collection_are_dropped():
    async def runner():
        builder = LiveWorkoutBuilder(ActivityKind.WALKING)
        before = builder.add_samples([Sample(DataKind.HEART_RATE, 90, T0, T0)])
        await builder.begin_collection(T0)
        during = builder.add_samples([Sample(DataKind.HEART_RATE, 95, _at(1), _at(1))])
        builder.mark_paused(_at(2))
        paused = builder.add_samples([Sample(DataKind.HEART_RATE, 200, _at(3), _at(3))])
        return builder, before, during, paused

    builder, before, during, paused = asyncio.run(runner())
    assert before == set()
    assert during == {DataKind.HEART_RATE}
    assert paused == set()
    assert builder.statistics(DataKind.HEART_RATE).count == 1


def test_collect_callback_scheduled_on_loop():
    calls = []

    async def runner():
        builder = LiveWorkoutBuilder(ActivityKind.RUNNING)
        builder.on_collect = lambda b, kinds: calls.append(kinds)
        await builder.begin_collection(T0)
        builder.add_samples(
            [
                Sample(DataKind.HEART_RATE, 120, T0, _at(5)),
                Sample(DataKind.DISTANCE_WALKING_RUNNING, 0.01, T0, _at(5)),
            ]
        )
        assert calls == []
        await asyncio.sleep(0)

    asyncio.run(runner())
    assert calls == [{DataKind.HEART_RATE, DataKind.DISTANCE_WALKING_RUNNING}]


def test_elapsed_time_excludes_pauses():
    async def runner():
        builder = LiveWorkoutBuilder(ActivityKind.YOGA)
        await builder.begin_collection(T0)
        builder.mark_paused(_at(60))
        builder.mark_resumed(_at(90))
        builder.mark_paused(_at(120))
        mid_pause = builder.elapsed_time(_at(150))
        await builder.end_collection(_at(200))
        return builder, mid_pause

    builder, mid_pause = asyncio.run(runner())
    assert mid_pause == 90
    assert not builder.paused
    assert builder.elapsed_time(_at(200)) == 90
    # Later instants are clamped to the end of collection.
    assert builder.elapsed_time(_at(500)) == 90


def test_finish_workout_summary():
    async def runner():
        builder = LiveWorkoutBuilder(ActivityKind.CYCLING)
        assert await builder.finish_workout() is None
        await builder.begin_collection(T0)
        builder.add_samples(
            [
                Sample(DataKind.HEART_RATE, 110, T0, _at(30)),
                Sample(DataKind.HEART_RATE, 130, _at(30), _at(60)),
                Sample(DataKind.ACTIVE_ENERGY_BURNED, 8, T0, _at(60)),
                Sample(DataKind.DISTANCE_CYCLING, 0.3, T0, _at(60)),
            ]
        )
        await builder.end_collection(_at(60))
        assert not await builder.begin_collection(_at(70))
        first = await builder.finish_workout()
        second = await builder.finish_workout()
        return first, second

    first, second = asyncio.run(runner())
    assert first is second
    assert first.duration == 60
    assert first.total_energy == 8
    assert first.total_distance == 0.3
    assert first.average_heart_rate == 120
    data = first.to_dict()
    assert data["activity"] == "cycling"
    assert data["start"] == "2024-05-04T07:00:00"
