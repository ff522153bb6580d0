import asyncio
import itertools
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from netmon.analytics.dashboard import (
    SOURCES,
    DashboardPoller,
    DashboardSnapshot,
    MetricsAggregator,
    count_vulnerable,
    network_load_percent,
)
from netmon.data.constants import SecurityGrade
from netmon.data.models import NetworkHealth, NetworkStats, ScanRecord
from netmon.errors import ErrorCode, NetMonError


def _healthy_backend(gateway, make_device, now):
    gateway.get_all_devices.return_value = [
        make_device("aa:00:00:00:00:01", timedelta(hours=1)),
        make_device("aa:00:00:00:00:02", timedelta(hours=23, minutes=59)),
        make_device("aa:00:00:00:00:03", timedelta(hours=24)),
        make_device("aa:00:00:00:00:04", timedelta(days=3), vendor=None),
    ]
    gateway.get_network_stats.return_value = NetworkStats(total_devices=4, total_scans=8)
    gateway.get_network_health.return_value = NetworkHealth(score=72, grade="C")
    gateway.get_scan_history.return_value = [
        ScanRecord(id=i, timestamp=now, total_hosts=4) for i in range(5)
    ]


@pytest.mark.asyncio
async def test_active_nodes_window_is_exclusive(gateway, make_device, now):
    _healthy_backend(gateway, make_device, now)
    snapshot = await MetricsAggregator(gateway).refresh_dashboard(now=now)

    # Seen exactly 24h ago is outside the window
    assert snapshot.active_nodes == 2
    assert snapshot.total_scans == 8
    assert snapshot.network_load_percent == 25
    assert snapshot.vulnerability_count == 1
    assert snapshot.health_tier == "fair"
    assert len(snapshot.recent_scans) == 5
    assert snapshot.failed_sources == []
    assert snapshot.error is None
    assert not snapshot.degraded


@pytest.mark.asyncio
async def test_scan_history_uses_configured_limit(gateway, make_device, now):
    _healthy_backend(gateway, make_device, now)
    await MetricsAggregator(gateway, scan_history_limit=3).refresh_dashboard(now=now)
    gateway.get_scan_history.assert_awaited_once_with(3)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "failing",
    [combo for n in range(1, 5) for combo in itertools.combinations(SOURCES, n)],
)
async def test_any_failure_subset_never_raises(gateway, make_device, now, failing):
    _healthy_backend(gateway, make_device, now)
    commands = {
        "devices": gateway.get_all_devices,
        "stats": gateway.get_network_stats,
        "health": gateway.get_network_health,
        "scans": gateway.get_scan_history,
    }
    for source in failing:
        commands[source].side_effect = NetMonError(ErrorCode.GATEWAY_UNAVAILABLE, f"{source} down")

    snapshot = await MetricsAggregator(gateway).refresh_dashboard(now=now)

    assert snapshot.failed_sources == [s for s in SOURCES if s in failing]
    if "devices" in failing:
        assert snapshot.active_nodes == 0
        assert snapshot.vulnerability_count == 0
    if "stats" in failing:
        assert snapshot.total_scans == 0
    if "health" in failing:
        assert snapshot.network_health is None
        assert snapshot.health_tier is None
    if "scans" in failing:
        assert snapshot.recent_scans == []

    if len(failing) == len(SOURCES):
        assert snapshot.error == "Failed to load dashboard data: devices down"
    else:
        assert snapshot.error is None


@pytest.mark.asyncio
async def test_synchronous_raise_is_settled(gateway, now):
    gateway.get_network_stats = MagicMock(side_effect=RuntimeError("boom"))
    gateway.get_network_health.return_value = NetworkHealth(score=95)

    snapshot = await MetricsAggregator(gateway).refresh_dashboard(now=now)

    assert snapshot.failed_sources == ["stats"]
    assert snapshot.network_health.grade is SecurityGrade.A


@pytest.mark.asyncio
async def test_sources_are_fetched_concurrently(gateway, now):
    in_flight = 0
    peak = 0

    def overlapping(result):
        async def _call(*args):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return result
        return _call

    gateway.get_all_devices.side_effect = overlapping([])
    gateway.get_network_stats.side_effect = overlapping(NetworkStats())
    gateway.get_network_health.side_effect = overlapping(NetworkHealth(score=80))
    gateway.get_scan_history.side_effect = overlapping([])

    snapshot = await MetricsAggregator(gateway).refresh_dashboard(now=now)

    assert peak == 4
    assert in_flight == 0
    assert snapshot.failed_sources == []


@pytest.mark.asyncio
async def test_cancellation_propagates(gateway, now):
    gateway.get_all_devices.side_effect = asyncio.CancelledError()
    with pytest.raises(asyncio.CancelledError):
        await MetricsAggregator(gateway).refresh_dashboard(now=now)


def test_network_load_is_capped_and_guards_zero_scans():
    assert network_load_percent(5, 0) == 100
    assert network_load_percent(0, 0) == 0
    assert network_load_percent(3, 4) == 75
    assert network_load_percent(50, 10) == 100


def test_vulnerable_devices_are_unknown_type_or_missing_vendor(make_device):
    devices = [
        make_device("aa:00:00:00:00:01", device_type="unknown"),
        make_device("aa:00:00:00:00:02", vendor="  "),
        make_device("aa:00:00:00:00:03", device_type=None, vendor="Acme"),
        make_device("aa:00:00:00:00:04"),
    ]
    assert count_vulnerable(devices) == 2


@pytest.mark.asyncio
async def test_poller_publishes_snapshots(gateway, make_device, now):
    _healthy_backend(gateway, make_device, now)
    poller = DashboardPoller(MetricsAggregator(gateway), interval_seconds=60)
    received = []
    poller.snapshot_ready.connect(received.append)

    snapshot = await poller.retry()

    assert poller.latest is snapshot
    assert received == [snapshot]


@pytest.mark.asyncio
async def test_poller_start_and_stop(gateway):
    aggregator = MetricsAggregator(gateway)
    aggregator.refresh_dashboard = AsyncMock(return_value=DashboardSnapshot())
    poller = DashboardPoller(aggregator, interval_seconds=60)

    poller.start()
    poller.start()
    await asyncio.sleep(0.01)
    assert poller.is_polling
    await poller.stop()

    assert not poller.is_polling
    assert aggregator.refresh_dashboard.await_count == 1


def test_poller_rejects_non_positive_interval(gateway):
    with pytest.raises(ValueError):
        DashboardPoller(MetricsAggregator(gateway), interval_seconds=0)
