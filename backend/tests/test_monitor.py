"""
Background monitor loops.
"""

import asyncio
from datetime import timedelta

import pytest

from airmonitor.services import monitor
from airmonitor.services.timestamp import utc_now


@pytest.fixture(autouse=True)
def no_startup_delay(monkeypatch):
    monkeypatch.setattr(monitor, "STARTUP_DELAY", 0)


def test_loop_keeps_running_after_a_failed_cycle():
    calls = []

    async def cycle():
        calls.append(len(calls))
        if len(calls) == 1:
            raise RuntimeError("supabase timeout")

    async def scenario():
        task = asyncio.create_task(monitor._run_forever("test", cycle, 0))
        while len(calls) < 3:
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return task

    task = asyncio.run(scenario())

    assert len(calls) >= 3
    assert task.cancelled()


def test_start_and_stop_monitors(monkeypatch):
    # Park the loops before their first cycle
    monkeypatch.setattr(monitor, "STARTUP_DELAY", 3600)

    async def scenario():
        await monitor.start_monitors()
        started = list(monitor._tasks)
        await monitor.stop_monitors()
        return started

    started = asyncio.run(scenario())

    assert len(started) == 2
    assert all(task.cancelled() for task in started)
    assert monitor._tasks == []


def test_stop_monitors_without_tasks():
    asyncio.run(monitor.stop_monitors())
    assert monitor._tasks == []


def test_health_cycle_flips_silent_devices(monkeypatch, db, settings):
    device, = db.seed("devices", {"name": "Room 101", "status": "online"})
    stale = (utc_now() - timedelta(hours=2)).isoformat()
    db.seed("sensor_readings", {"device_id": device["id"], "sensor_type": "co2", "value": 600, "created_at": stale, "timestamp": stale})
    monkeypatch.setattr(monitor, "get_supabase", lambda: db)

    asyncio.run(monitor._health_cycle())

    assert db.rows("devices")[0]["status"] == "offline"


def test_prolonged_cycle_skips_without_recipients(monkeypatch, db):
    monkeypatch.setattr(monitor, "get_supabase", lambda: db)
    asyncio.run(monitor._prolonged_cycle())
    assert db.rows("notifications") == []
