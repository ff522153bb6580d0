import asyncio
from datetime import timedelta

import pytest

from netmon.base.config import JsonFileSettingsProvider, ScannerSettings, StaticSettingsProvider
from netmon.errors import ErrorCode, NetMonError
from netmon.monitoring.events import MonitoringEventType
from netmon.monitoring.session import (
    MonitoringSessionController,
    SessionState,
    format_countdown,
)


@pytest.fixture
def session(gateway, now):
    return MonitoringSessionController(gateway, schedule_timers=False, clock=lambda: now)


def _types(session):
    return [event.type for event in session.events]


@pytest.mark.asyncio
async def test_restart_seeds_countdown_with_new_interval(session, gateway):
    await session.start(30)
    assert session.state is SessionState.RUNNING
    assert session.countdown == 30

    await session.stop()
    assert session.state is SessionState.IDLE
    assert session.countdown == 0

    status = await session.start(45)
    assert session.countdown == 45
    assert status.interval_seconds == 45
    assert [c.args[0] for c in gateway.start_monitoring.await_args_list] == [30, 45]


@pytest.mark.asyncio
async def test_start_without_interval_uses_scanner_settings(gateway, now):
    provider = StaticSettingsProvider(ScannerSettings(scan_interval=15))
    session = MonitoringSessionController(
        gateway, settings_provider=provider, schedule_timers=False, clock=lambda: now
    )
    await session.start()
    assert session.interval_seconds == 15
    gateway.start_monitoring.assert_awaited_once_with(15)


@pytest.mark.asyncio
async def test_start_with_corrupt_settings_file_uses_default_interval(gateway, now, tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    session = MonitoringSessionController(
        gateway, settings_provider=JsonFileSettingsProvider(path), schedule_timers=False, clock=lambda: now
    )

    status = await session.start()

    assert status.interval_seconds == 60
    assert session.state is SessionState.RUNNING
    gateway.start_monitoring.assert_awaited_once_with(60)


@pytest.mark.asyncio
async def test_countdown_cycles_back_to_interval(session):
    await session.start(3)
    assert [session.tick() for _ in range(5)] == [2, 1, 0, 3, 2]


def test_tick_while_idle_stays_at_zero(session):
    assert session.tick() == 0
    assert session.countdown_display == "0:00"


@pytest.mark.asyncio
async def test_scan_started_resets_countdown(session):
    await session.start(10)
    for _ in range(4):
        session.tick()
    assert session.countdown == 6

    await session.scan_tick()

    assert session.countdown == 10


@pytest.mark.asyncio
async def test_stop_while_idle_is_a_no_op(session, gateway):
    status = await session.stop()
    assert status.is_running is False
    gateway.stop_monitoring.assert_not_awaited()


@pytest.mark.asyncio
async def test_second_stop_changes_nothing(session, gateway):
    await session.start(30)
    await session.scan_tick()
    await session.stop()

    before = (session.state, session.countdown, session.status.scan_count, list(session.events))
    status = await session.stop()

    assert status.is_running is False
    assert (session.state, session.countdown, session.status.scan_count, list(session.events)) == before
    assert before[2] == 1
    assert gateway.stop_monitoring.await_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("interval", [0, -5, True, 1.5, "30"])
async def test_invalid_interval_is_rejected(session, gateway, interval):
    with pytest.raises(NetMonError) as exc:
        await session.start(interval)
    assert exc.value.code is ErrorCode.MONITOR_INVALID_INTERVAL
    assert session.state is SessionState.IDLE
    gateway.start_monitoring.assert_not_awaited()


@pytest.mark.asyncio
async def test_backend_start_failure_leaves_session_idle(session, gateway):
    gateway.start_monitoring.side_effect = NetMonError(ErrorCode.GATEWAY_UNAVAILABLE, "down")

    with pytest.raises(NetMonError) as exc:
        await session.start(30)

    assert exc.value.code is ErrorCode.MONITOR_START_FAILED
    assert session.state is SessionState.IDLE
    assert session.countdown == 0


@pytest.mark.asyncio
async def test_backend_stop_failure_keeps_session_running(session, gateway):
    await session.start(30)
    gateway.stop_monitoring.side_effect = NetMonError(ErrorCode.GATEWAY_TIMEOUT, "slow")

    with pytest.raises(NetMonError) as exc:
        await session.stop()

    assert exc.value.code is ErrorCode.MONITOR_STOP_FAILED
    assert session.is_running


@pytest.mark.asyncio
async def test_second_start_is_rejected_while_running(session):
    await session.start(30)
    with pytest.raises(NetMonError) as exc:
        await session.start(60)
    assert exc.value.code is ErrorCode.MONITOR_ALREADY_RUNNING
    assert session.interval_seconds == 30


@pytest.mark.asyncio
async def test_concurrent_start_is_rejected(session, gateway):
    release = asyncio.Event()

    async def slow_start(interval):
        await release.wait()

    gateway.start_monitoring.side_effect = slow_start

    first = asyncio.create_task(session.start(30))
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    with pytest.raises(NetMonError) as exc:
        await session.start(30)
    assert exc.value.code is ErrorCode.MONITOR_ALREADY_RUNNING

    release.set()
    await first
    assert session.is_running
    assert gateway.start_monitoring.await_count == 1


@pytest.mark.asyncio
async def test_scan_result_after_stop_is_discarded(session, gateway, make_device):
    gate = asyncio.Event()

    async def slow_devices():
        await gate.wait()
        return [make_device("aa:00:00:00:00:01")]

    gateway.get_all_devices.side_effect = slow_devices
    await session.start(60)

    pending = asyncio.create_task(session.scan_tick())
    await asyncio.sleep(0)
    await session.stop()
    gate.set()

    assert await pending is False
    assert session.status.devices_total == 0
    assert MonitoringEventType.SCAN_COMPLETED not in _types(session)


@pytest.mark.asyncio
async def test_stale_scan_does_not_block_next_session(session, gateway, make_device):
    gate = asyncio.Event()
    calls = 0

    async def devices():
        nonlocal calls
        calls += 1
        if calls == 1:
            await gate.wait()
        return [make_device("aa:00:00:00:00:01")]

    gateway.get_all_devices.side_effect = devices
    await session.start(60)
    stale = asyncio.create_task(session.scan_tick())
    await asyncio.sleep(0)
    await session.stop()
    await session.start(60)

    assert await session.scan_tick() is True
    assert session.status.devices_online == 1

    gate.set()
    assert await stale is False
    assert session.status.scan_count == 1


@pytest.mark.asyncio
async def test_scan_failure_keeps_session_running(session, gateway):
    gateway.get_all_devices.side_effect = NetMonError(ErrorCode.GATEWAY_UNAVAILABLE, "backend down")
    await session.start(60)

    assert await session.scan_tick() is False

    assert session.is_running
    assert session.status.scan_count == 1
    latest = session.events[0]
    assert latest.type is MonitoringEventType.SCAN_FAILED
    assert "backend down" in latest.payload["error"]


@pytest.mark.asyncio
async def test_event_log_keeps_newest_five(session, gateway, make_device):
    gateway.get_all_devices.return_value = [make_device("aa:00:00:00:00:01")]
    await session.start(60)
    for _ in range(4):
        await session.scan_tick()

    events = session.events
    assert len(events) == 5
    assert events[0].type is MonitoringEventType.SCAN_COMPLETED
    assert events[0].payload["scan_number"] == 4
    assert events[-1].payload["scan_number"] == 2

    session.clear_events()
    assert session.events == []


@pytest.mark.asyncio
async def test_device_discovered_and_offline_events(gateway, now, make_device):
    session = MonitoringSessionController(
        gateway, event_log_capacity=20, schedule_timers=False, clock=lambda: now
    )
    a = make_device("aa:00:00:00:00:0a", timedelta(seconds=30), ip="10.0.0.10")
    b = make_device("aa:00:00:00:00:0b", timedelta(seconds=30), ip="10.0.0.11")
    b_stale = make_device("aa:00:00:00:00:0b", timedelta(seconds=200), ip="10.0.0.11")
    c = make_device("aa:00:00:00:00:0c", timedelta(seconds=5), ip="10.0.0.12", vendor="Globex")

    gateway.get_all_devices.return_value = [a, b]
    await session.start(60)
    await session.scan_tick()

    # The first scan only establishes the baseline
    assert MonitoringEventType.DEVICE_DISCOVERED not in _types(session)
    assert session.status.devices_online == 2

    gateway.get_all_devices.return_value = [a, b_stale, c]
    await session.scan_tick()

    discovered = [e for e in session.events if e.type is MonitoringEventType.DEVICE_DISCOVERED]
    offline = [e for e in session.events if e.type is MonitoringEventType.DEVICE_OFFLINE]
    assert [e.payload["mac"] for e in discovered] == ["aa:00:00:00:00:0c"]
    assert discovered[0].payload["vendor"] == "Globex"
    assert [e.payload["ip"] for e in offline] == ["10.0.0.11"]
    assert session.status.devices_online == 2
    assert session.status.devices_total == 3


@pytest.mark.asyncio
async def test_online_window_is_two_intervals(session, gateway, make_device):
    gateway.get_all_devices.return_value = [
        make_device("aa:00:00:00:00:01", timedelta(seconds=119)),
        make_device("aa:00:00:00:00:02", timedelta(seconds=120)),
        make_device("aa:00:00:00:00:02", timedelta(seconds=120)),
    ]
    await session.start(60)
    await session.scan_tick()

    assert session.status.devices_online == 1
    assert session.status.devices_total == 2


@pytest.mark.asyncio
async def test_subscribers_receive_events(session, gateway):
    received = []
    session.subscribe(received.append)
    await session.start(60)
    await session.scan_tick()
    session.unsubscribe(received.append)
    await session.scan_tick()

    assert [e.type for e in received] == [
        MonitoringEventType.SCAN_STARTED,
        MonitoringEventType.SCAN_COMPLETED,
    ]


@pytest.mark.asyncio
async def test_timers_fire_first_scan_and_stop_cancels_them(gateway, now):
    session = MonitoringSessionController(gateway, clock=lambda: now)
    await session.start(60)
    await asyncio.sleep(0.01)

    assert session.status.scan_count == 1
    scan_task, countdown_task = session._scan_task, session._countdown_task

    await session.stop()

    assert scan_task.done() and countdown_task.done()
    assert session._scan_task is None and session._countdown_task is None


@pytest.mark.asyncio
async def test_shutdown_swallows_backend_failure(session, gateway):
    await session.start(60)
    gateway.stop_monitoring.side_effect = NetMonError(ErrorCode.GATEWAY_UNAVAILABLE, "gone")

    await session.shutdown()

    assert session.state is SessionState.IDLE


def test_format_countdown():
    assert format_countdown(75) == "1:15"
    assert format_countdown(5) == "0:05"
    assert format_countdown(-3) == "0:00"
