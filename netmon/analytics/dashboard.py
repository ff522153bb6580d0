"""
netmon/analytics/dashboard.py
Dashboard aggregation.

MetricsAggregator fans out four independent backend fetches, lets each one
fail on its own, and folds whatever came back into a DashboardSnapshot whose
every field is always defined. DashboardPoller repeats that on a fixed
cadence for callers that want a live dashboard.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from netmon.data.constants import UNKNOWN_DEVICE_TYPE, health_tier
from netmon.data.models import DeviceRecord, NetworkHealth, NetworkStats, ScanRecord
from netmon.net.gateway import BackendGateway
from netmon.utils.async_helpers import cancel_and_wait, create_safe_task, settle
from netmon.utils.observer import Signal

logger = logging.getLogger(__name__)

DEFAULT_SCAN_HISTORY_LIMIT = 5
DEFAULT_ACTIVE_WINDOW = timedelta(hours=24)
DEFAULT_POLL_SECONDS = 30.0

SOURCES = ("devices", "stats", "health", "scans")


class DashboardSnapshot(BaseModel):
    active_nodes: int = 0
    total_scans: int = 0
    network_health: Optional[NetworkHealth] = None
    recent_scans: List[ScanRecord] = Field(default_factory=list)
    vulnerability_count: int = 0
    network_load_percent: int = 0
    health_tier: Optional[str] = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Sub-fetches that failed and fell back to their defaults
    failed_sources: List[str] = Field(default_factory=list)
    # Set once when every sub-fetch failed
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return bool(self.failed_sources)


def count_active_nodes(devices: List[DeviceRecord], now: datetime,
                       window: timedelta = DEFAULT_ACTIVE_WINDOW) -> int:
    """Devices whose last sighting is strictly inside the window ending at now."""
    return sum(1 for device in devices if device.is_active(now, window))


def count_vulnerable(devices: List[DeviceRecord]) -> int:
    """
    Coarse vulnerability count: unidentified device types or missing vendors.

    Stands in for real per-device findings, which the dashboard fetch does not
    include.
    """
    count = 0
    for device in devices:
        unknown_type = (device.device_type or "").strip().upper() == UNKNOWN_DEVICE_TYPE
        no_vendor = not (device.vendor or "").strip()
        if unknown_type or no_vendor:
            count += 1
    return count


def network_load_percent(active_nodes: int, total_scans: int) -> int:
    return min(round(active_nodes / max(total_scans, 1) * 100), 100)


class MetricsAggregator:
    """
    Builds dashboard snapshots from the backend.

    refresh_dashboard() never raises because a sub-fetch failed: each of the
    four calls is settled independently and replaced by its default
    (no devices, no stats, no health, no scans) when it fails.
    """

    def __init__(
        self,
        gateway: BackendGateway,
        scan_history_limit: int = DEFAULT_SCAN_HISTORY_LIMIT,
        active_window: timedelta = DEFAULT_ACTIVE_WINDOW,
    ):
        self._gateway = gateway
        self.scan_history_limit = scan_history_limit
        self.active_window = active_window

    async def refresh_dashboard(self, now: Optional[datetime] = None) -> DashboardSnapshot:
        failures: Dict[str, Exception] = {}

        def failed(source: str) -> Callable[[Exception], None]:
            def record(error: Exception) -> None:
                failures[source] = error
            return record

        devices, stats, health, scans = await asyncio.gather(
            settle(self._gateway.get_all_devices, [], "dashboard.devices", failed("devices")),
            settle(self._gateway.get_network_stats, None, "dashboard.stats", failed("stats")),
            settle(self._gateway.get_network_health, None, "dashboard.health", failed("health")),
            settle(
                lambda: self._gateway.get_scan_history(self.scan_history_limit),
                [],
                "dashboard.scans",
                failed("scans"),
            ),
        )

        now = now or datetime.now(timezone.utc)
        active_nodes = count_active_nodes(devices, now, self.active_window)
        total_scans = stats.total_scans if isinstance(stats, NetworkStats) else 0

        error = None
        if len(failures) == len(SOURCES):
            first = failures["devices"]
            error = f"Failed to load dashboard data: {getattr(first, 'message', None) or first}"
            logger.error(f"[Dashboard] {error}")
        elif failures:
            logger.info(f"[Dashboard] Partial refresh, defaults used for: {', '.join(sorted(failures))}")

        return DashboardSnapshot(
            active_nodes=active_nodes,
            total_scans=total_scans,
            network_health=health,
            recent_scans=list(scans),
            vulnerability_count=count_vulnerable(devices),
            network_load_percent=network_load_percent(active_nodes, total_scans),
            health_tier=health_tier(health.score) if health is not None else None,
            generated_at=now,
            failed_sources=[source for source in SOURCES if source in failures],
            error=error,
        )


class DashboardPoller:
    """
    Refreshes the dashboard on a fixed cadence.

    The first refresh happens as soon as start() is called. `retry()` forces
    an immediate refresh, which is what the UI's retry button calls after an
    aggregate failure. Each new snapshot is published on `snapshot_ready`.
    """

    def __init__(self, aggregator: MetricsAggregator, interval_seconds: float = DEFAULT_POLL_SECONDS):
        if interval_seconds <= 0:
            raise ValueError("poll interval must be positive")
        self.aggregator = aggregator
        self.interval_seconds = interval_seconds
        self.latest: Optional[DashboardSnapshot] = None
        self.snapshot_ready = Signal("dashboard_snapshots")
        self._task: Optional[asyncio.Task] = None

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> DashboardSnapshot:
        snapshot = await self.aggregator.refresh_dashboard()
        self.latest = snapshot
        self.snapshot_ready.emit(snapshot)
        return snapshot

    async def retry(self) -> DashboardSnapshot:
        return await self.refresh()

    def start(self) -> None:
        if self.is_polling:
            return
        self._task = create_safe_task(self._poll(), name="dashboard-poller")

    async def stop(self) -> None:
        task, self._task = self._task, None
        await cancel_and_wait(task)

    async def _poll(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self.interval_seconds)
