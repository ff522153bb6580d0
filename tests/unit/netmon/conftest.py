from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from netmon.data.models import AlertRecord, DeviceRecord, MonitoringStatus

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def gateway():
    """Backend gateway double; every command is an AsyncMock."""
    gw = MagicMock()
    gw.get_all_devices = AsyncMock(return_value=[])
    gw.get_network_stats = AsyncMock()
    gw.get_network_health = AsyncMock()
    gw.get_scan_history = AsyncMock(return_value=[])
    gw.start_monitoring = AsyncMock(
        side_effect=lambda interval: MonitoringStatus(is_running=True, interval_seconds=interval)
    )
    gw.stop_monitoring = AsyncMock(return_value=MonitoringStatus())
    gw.get_unread_alerts = AsyncMock(return_value=[])
    gw.mark_alert_read = AsyncMock(return_value=None)
    gw.ping_host = AsyncMock(return_value=[])
    gw.scan_ports = AsyncMock(return_value=[])
    gw.lookup_mac_vendor = AsyncMock()
    gw.aclose = AsyncMock()
    return gw


@pytest.fixture
def make_device():
    def _make(mac, seen_ago=timedelta(0), ip=None, vendor="Acme", device_type="PC"):
        return DeviceRecord(
            mac=mac,
            ip=ip,
            vendor=vendor,
            device_type=device_type,
            first_seen=NOW - timedelta(days=30),
            last_seen=NOW - seen_ago,
        )
    return _make


@pytest.fixture
def make_alert():
    def _make(alert_id, severity="low", alert_type="new_device", is_read=False,
              message="", ip=None, mac=None):
        return AlertRecord(
            id=alert_id,
            created_at=NOW,
            alert_type=alert_type,
            severity=severity,
            device_ip=ip,
            device_mac=mac,
            message=message,
            is_read=is_read,
        )
    return _make
