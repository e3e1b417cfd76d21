from __future__ import annotations

import asyncio
import json
from datetime import timedelta

from fakes import FakeDataSource, FakeSubscriber
from sensor_relay.context import build_context
from sensor_relay.database.config import Config
from sensor_relay.exceptions import DataSourceError
from sensor_relay.polling.scheduler import PollingScheduler, SchedulerState
from sensor_relay.polling.window import TimeWindowCalculator
from sensor_relay.realtime.broadcaster import Broadcaster
from sensor_relay.realtime.registry import SubscriberRegistry


def _scheduler(data_source, *, tables=None, poll_interval: float = 3600):
    registry = SubscriberRegistry()
    scheduler = PollingScheduler(
        data_source=data_source,
        broadcaster=Broadcaster(registry),
        calculator=TimeWindowCalculator(timedelta(days=30), timedelta(minutes=1)),
        stream_tables=tables or {"temperature": "temperature_readings", "id": "id_scans"},
        poll_interval=poll_interval,
    )
    return scheduler, registry


def _messages(subscriber) -> list:
    return [json.loads(m) for m in subscriber.messages]


def test_row_in_window_is_broadcast_once_unmodified(temperature_row) -> None:
    source = FakeDataSource(rows={"temperature_readings": temperature_row})
    scheduler, registry = _scheduler(source)
    subscriber = FakeSubscriber()

    async def scenario() -> dict:
        await registry.admit(subscriber)
        return await scheduler.run_cycle()

    result = asyncio.run(scenario())

    assert _messages(subscriber) == [
        {"type": "temperature_update", "data": {**temperature_row, "created_at": "2024-05-01T12:00:00"}}
    ]
    assert result["broadcasts"] == {"temperature": 1, "id": None}
    assert scheduler.state is SchedulerState.IDLE


def test_both_streams_share_one_window_per_cycle(temperature_row, id_row) -> None:
    source = FakeDataSource(rows={"temperature_readings": temperature_row, "id_scans": id_row})
    scheduler, _ = _scheduler(source)

    asyncio.run(scheduler.run_cycle())

    assert source.queried_streams() == ["temperature_readings", "id_scans"]
    (_, first_window), (_, second_window) = source.calls
    assert first_window is second_window


def test_failed_cycle_does_not_prevent_next_cycle(id_row) -> None:
    source = FakeDataSource(
        rows={"id_scans": id_row},
        errors={"id_scans": [DataSourceError("connection lost")]},
    )
    scheduler, registry = _scheduler(source)
    subscriber = FakeSubscriber()

    async def scenario() -> None:
        await registry.admit(subscriber)
        await scheduler.run_cycle()
        assert subscriber.messages == []
        await scheduler.run_cycle()

    asyncio.run(scenario())

    assert [m["type"] for m in _messages(subscriber)] == ["id_update"]
    assert scheduler.failures == 1
    assert scheduler.cycles == 2


def test_failure_in_one_stream_still_polls_the_other(temperature_row, id_row) -> None:
    source = FakeDataSource(
        rows={"temperature_readings": temperature_row, "id_scans": id_row},
        errors={"temperature_readings": [DataSourceError("timeout")]},
    )
    scheduler, registry = _scheduler(source)
    subscriber = FakeSubscriber()

    async def scenario() -> None:
        await registry.admit(subscriber)
        await scheduler.run_cycle()

    asyncio.run(scenario())

    assert [m["type"] for m in _messages(subscriber)] == ["id_update"]


def test_disabled_stream_never_reaches_data_source(temperature_row) -> None:
    config = Config.from_env({"TEMPERATURE_TABLE": "temperatures", "IDS_TABLE": "users"})
    source = FakeDataSource(rows={"temperatures": temperature_row, "users": {"id": 1}})
    context = build_context(config, data_source=source)

    async def scenario() -> None:
        for _ in range(3):
            await context.scheduler.run_cycle()

    asyncio.run(scenario())

    assert set(source.queried_streams()) == {"temperatures"}
    assert context.scheduler.enabled_streams == ["temperature"]


def test_loop_keeps_running_after_errors_and_never_overlaps(id_row) -> None:
    source = FakeDataSource(
        rows={"id_scans": id_row},
        errors={"id_scans": [DataSourceError("down"), RuntimeError("driver bug")]},
        delay_s=0.01,
    )
    scheduler, _ = _scheduler(source, poll_interval=0.01)

    async def scenario() -> None:
        scheduler.start()
        for _ in range(500):
            if scheduler.cycles >= 4:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

    asyncio.run(scenario())

    assert scheduler.cycles >= 4
    assert scheduler.failures == 2
    assert source.max_active == 1
    assert scheduler.is_running is False


def test_stop_before_start_is_noop() -> None:
    scheduler, _ = _scheduler(FakeDataSource())

    asyncio.run(scheduler.stop())

    assert scheduler.get_status()["is_running"] is False


def test_get_status_reports_cycle_counters(temperature_row) -> None:
    scheduler, _ = _scheduler(FakeDataSource(rows={"temperature_readings": temperature_row}), tables={"temperature": "temperature_readings"})

    asyncio.run(scheduler.run_cycle())
    status = scheduler.get_status()

    assert status["state"] == "idle"
    assert status["cycles"] == 1
    assert status["enabled_streams"] == ["temperature"]
    assert status["last_check"] is not None
