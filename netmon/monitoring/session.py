"""
Monitoring Session Controller - recurring scans with a live event feed

PURPOSE:
Own the lifecycle of one continuous monitoring session: start and stop it on
the backend, trigger a scan every `interval_seconds`, keep the device counts
and a short feed of events, and expose the "next scan in m:ss" countdown.

STATES:
    IDLE --start(interval)--> RUNNING --stop()--> IDLE

TWO CLOCKS:
A running session has two independent asyncio tasks:
- the scan scheduler, which runs scan_tick() immediately on start and then
  once every interval;
- the countdown ticker, which calls tick() once a second.
They are not coupled. The only link is that every SCAN_STARTED event resets
the countdown to the interval, so the displayed countdown re-synchronizes
with the real scan cadence on each scan even if the two tasks drift.

LIVENESS:
Each start() opens a new generation. Timer loops and scan ticks capture the
generation they were started under and re-check it after every await, so a
continuation that resumes after stop() (or after a stop/start pair) does not
touch the session state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from netmon.base.config import SettingsProvider, StaticSettingsProvider
from netmon.data.models import MonitoringStatus
from netmon.errors import ErrorCode, NetMonError, handle_error
from netmon.monitoring import events as ev
from netmon.monitoring.events import (
    DEFAULT_EVENT_LOG_CAPACITY,
    EventLog,
    MonitoringEvent,
    MonitoringEventType,
)
from netmon.net.gateway import BackendGateway
from netmon.utils.async_helpers import cancel_and_wait, create_safe_task
from netmon.utils.observer import Signal

logger = logging.getLogger(__name__)

# A device counts as online when seen within this many scan intervals.
# One interval of slack absorbs drift between our ticks and the backend's scans.
ONLINE_WINDOW_INTERVALS = 2

COUNTDOWN_TICK_SECONDS = 1.0


class SessionState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


def format_countdown(seconds: int) -> str:
    """Render a countdown as m:ss."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


class MonitoringSessionController:
    """
    Finite-state controller for a recurring monitoring session.

    Args:
        gateway: Backend command gateway
        settings_provider: Source of the default scan interval
        event_log_capacity: How many events the feed keeps (newest first)
        schedule_timers: When False, start() does not spawn the scan and
            countdown tasks and the caller drives scan_tick()/tick() itself
        clock: Returns the current time (UTC); used for the online window
    """

    def __init__(
        self,
        gateway: BackendGateway,
        settings_provider: Optional[SettingsProvider] = None,
        event_log_capacity: int = DEFAULT_EVENT_LOG_CAPACITY,
        schedule_timers: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._gateway = gateway
        self._settings_provider = settings_provider or StaticSettingsProvider()
        self._schedule_timers = schedule_timers
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._log = EventLog(event_log_capacity)
        self.event_emitted = Signal("monitoring_events")
        self.event_emitted.connect(self._on_event)

        self._state = SessionState.IDLE
        self._interval = 0
        self._countdown = 0
        self._devices_online = 0
        self._devices_total = 0
        self._scan_count = 0

        # MAC -> last known IP of devices online at the previous scan tick.
        # None until the first tick of a session has completed.
        self._online: Optional[Dict[str, Optional[str]]] = None

        self._generation = 0
        self._start_lock = asyncio.Lock()
        self._scanning_generation: Optional[int] = None
        self._scan_task: Optional[asyncio.Task] = None
        self._countdown_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SessionState.RUNNING

    @property
    def interval_seconds(self) -> int:
        return self._interval

    @property
    def countdown(self) -> int:
        return self._countdown

    @property
    def countdown_display(self) -> str:
        return format_countdown(self._countdown)

    @property
    def events(self) -> List[MonitoringEvent]:
        """Event feed, most recent first."""
        return self._log.snapshot()

    @property
    def status(self) -> MonitoringStatus:
        return MonitoringStatus(
            is_running=self.is_running,
            interval_seconds=self._interval,
            devices_online=self._devices_online,
            devices_total=self._devices_total,
            scan_count=self._scan_count,
        )

    def subscribe(self, callback: Callable[[MonitoringEvent], None]) -> None:
        self.event_emitted.connect(callback)

    def unsubscribe(self, callback: Callable[[MonitoringEvent], None]) -> None:
        self.event_emitted.disconnect(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, interval_seconds: Optional[int] = None) -> MonitoringStatus:
        """
        Start monitoring. The first scan fires immediately.

        Raises:
            NetMonError(MONITOR_INVALID_INTERVAL): interval is not a positive integer
            NetMonError(MONITOR_ALREADY_RUNNING): running, or another start is in flight
            NetMonError(MONITOR_START_FAILED): the backend refused or was unreachable
        """
        if interval_seconds is None:
            interval_seconds = self._settings_provider.load().scan_interval

        if isinstance(interval_seconds, bool) or not isinstance(interval_seconds, int) or interval_seconds <= 0:
            raise NetMonError(
                ErrorCode.MONITOR_INVALID_INTERVAL,
                f"Scan interval must be a positive number of seconds, got {interval_seconds!r}",
                details={"interval_seconds": interval_seconds},
            )

        if self.is_running or self._start_lock.locked():
            raise NetMonError(
                ErrorCode.MONITOR_ALREADY_RUNNING,
                "Monitoring session is already running",
                details={"interval_seconds": self._interval},
            )

        async with self._start_lock:
            try:
                await self._gateway.start_monitoring(interval_seconds)
            except Exception as e:
                error = handle_error(e, "start_monitoring")
                logger.error(f"[Monitor] Failed to start monitoring: {error.message}")
                raise NetMonError(
                    ErrorCode.MONITOR_START_FAILED,
                    f"Could not start monitoring: {error.message}",
                    details={"cause": error.code.value},
                ) from e

            self._generation += 1
            generation = self._generation

            self._interval = interval_seconds
            self._countdown = interval_seconds
            self._devices_online = 0
            self._devices_total = 0
            self._scan_count = 0
            self._online = None
            self._state = SessionState.RUNNING

            if self._schedule_timers:
                self._scan_task = create_safe_task(
                    self._scan_loop(generation), name=f"monitor-scan-{generation}"
                )
                self._countdown_task = create_safe_task(
                    self._countdown_loop(generation), name=f"monitor-countdown-{generation}"
                )

        logger.info(f"[Monitor] Monitoring started (interval={interval_seconds}s)")
        return self.status

    async def stop(self) -> MonitoringStatus:
        """
        Stop monitoring. A no-op while idle.

        Raises:
            NetMonError(MONITOR_STOP_FAILED): the backend failed; the session keeps running
        """
        if not self.is_running:
            return self.status

        try:
            await self._gateway.stop_monitoring()
        except Exception as e:
            error = handle_error(e, "stop_monitoring")
            logger.error(f"[Monitor] Failed to stop monitoring: {error.message}")
            raise NetMonError(
                ErrorCode.MONITOR_STOP_FAILED,
                f"Could not stop monitoring: {error.message}",
                details={"cause": error.code.value},
            ) from e

        await self._teardown()
        logger.info(f"[Monitor] Monitoring stopped after {self._scan_count} scan(s)")
        return self.status

    async def shutdown(self) -> None:
        """Stop on application exit; backend failures are logged, not raised."""
        if not self.is_running:
            return
        try:
            await self._gateway.stop_monitoring()
        except Exception as e:
            logger.warning(f"[Monitor] Backend stop failed during shutdown: {e}")
        await self._teardown()

    async def _teardown(self) -> None:
        self._generation += 1
        self._state = SessionState.IDLE
        self._countdown = 0

        tasks = (self._scan_task, self._countdown_task)
        self._scan_task = None
        self._countdown_task = None
        current = asyncio.current_task()
        for task in tasks:
            if task is None:
                continue
            if task is current:
                task.cancel()
            else:
                await cancel_and_wait(task)

    def clear_events(self) -> None:
        self._log.clear()

    # ------------------------------------------------------------------
    # Clocks
    # ------------------------------------------------------------------

    def _is_live(self, generation: int) -> bool:
        return self.is_running and generation == self._generation

    async def _scan_loop(self, generation: int) -> None:
        while self._is_live(generation):
            await self.scan_tick(generation)
            if not self._is_live(generation):
                break
            await asyncio.sleep(self._interval)

    async def _countdown_loop(self, generation: int) -> None:
        while self._is_live(generation):
            await asyncio.sleep(COUNTDOWN_TICK_SECONDS)
            if not self._is_live(generation):
                break
            self.tick()

    def tick(self) -> int:
        """
        Advance the countdown by one second.

        Counts down to 0, and the tick after 0 starts over at the interval.
        While idle the countdown stays at 0.
        """
        if not self.is_running:
            self._countdown = 0
        elif self._countdown <= 0:
            self._countdown = self._interval
        else:
            self._countdown -= 1
        return self._countdown

    def _on_event(self, event: MonitoringEvent) -> None:
        if event.type is MonitoringEventType.SCAN_STARTED and self.is_running:
            self._countdown = self._interval

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def _emit(self, event: MonitoringEvent) -> None:
        self._log.append(event)
        self.event_emitted.emit(event)

    async def scan_tick(self, generation: Optional[int] = None) -> bool:
        """
        Run one scan cycle.

        Returns True when the cycle completed, False when it was skipped
        (session not running, stale generation, or a scan already in
        progress) or failed. A failure is recorded as a SCAN_FAILED event and
        leaves the session running.
        """
        if generation is None:
            generation = self._generation
        if not self._is_live(generation):
            return False
        if self._scanning_generation == generation:
            logger.debug("[Monitor] Scan already in progress, skipping tick")
            return False

        self._scanning_generation = generation
        try:
            self._scan_count += 1
            scan_number = self._scan_count
            self._emit(ev.scan_started(scan_number))
            started = time.monotonic()

            try:
                devices = await self._gateway.get_all_devices()
            except Exception as e:
                if not self._is_live(generation):
                    return False
                error = handle_error(e, "get_all_devices")
                logger.warning(f"[Monitor] Scan #{scan_number} failed: {error.message}")
                self._emit(ev.scan_failed(scan_number, error.message))
                return False

            if not self._is_live(generation):
                logger.debug(f"[Monitor] Discarding scan #{scan_number} result from a stopped session")
                return False

            window = timedelta(seconds=self._interval * ONLINE_WINDOW_INTERVALS)
            now = self._clock()
            all_macs = {device.mac for device in devices}
            online = {
                device.mac: device
                for device in devices
                if device.is_active(now, window)
            }

            self._devices_total = len(all_macs)
            self._devices_online = len(online)

            if self._online is not None:
                for mac, device in online.items():
                    if mac not in self._online:
                        self._emit(ev.device_discovered(mac, device.ip, device.vendor))
                for mac, ip in self._online.items():
                    if mac not in online:
                        self._emit(ev.device_offline(mac, ip))
            self._online = {mac: device.ip for mac, device in online.items()}

            duration_ms = int((time.monotonic() - started) * 1000)
            self._emit(ev.scan_completed(
                scan_number, self._devices_online, self._devices_total, duration_ms
            ))
            logger.debug(
                f"[Monitor] Scan #{scan_number}: {self._devices_online}/{self._devices_total} online"
            )
            return True
        finally:
            if self._scanning_generation == generation:
                self._scanning_generation = None
