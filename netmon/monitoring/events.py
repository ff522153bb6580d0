"""Events emitted by a monitoring session."""
#
# PURPOSE:
# The live feed of the monitoring card. The session controller emits one
# MonitoringEvent per notable thing that happens during a scan cycle;
# subscribers (the UI, the CLI, the controller's own countdown) react to it.
#
# LOGIC:
# - MonitoringEventType: closed taxonomy of events
# - MonitoringEvent: immutable record with timestamp and payload
# - EventLog: bounded, most-recent-first buffer of events
# - format_event_message: one-line human rendering of an event
#

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Iterator, List, Optional

DEFAULT_EVENT_LOG_CAPACITY = 5


class MonitoringEventType(str, Enum):
    """
    Taxonomy of monitoring events.
    """
    SCAN_STARTED = "scan_started"
    SCAN_COMPLETED = "scan_completed"
    SCAN_FAILED = "scan_failed"
    DEVICE_DISCOVERED = "device_discovered"
    DEVICE_OFFLINE = "device_offline"


class EventLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


EVENT_LEVELS: Dict[MonitoringEventType, EventLevel] = {
    MonitoringEventType.SCAN_STARTED: EventLevel.INFO,
    MonitoringEventType.SCAN_COMPLETED: EventLevel.SUCCESS,
    MonitoringEventType.SCAN_FAILED: EventLevel.ERROR,
    MonitoringEventType.DEVICE_DISCOVERED: EventLevel.SUCCESS,
    MonitoringEventType.DEVICE_OFFLINE: EventLevel.WARNING,
}


@dataclass(frozen=True)
class MonitoringEvent:
    """
    One entry of the monitoring feed.

    Fields:
        type: Event classification
        payload: Event-specific data (scan number, device mac/ip, error, ...)
        timestamp: When the event occurred (epoch seconds)
    """
    type: MonitoringEventType
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @property
    def level(self) -> EventLevel:
        return EVENT_LEVELS.get(self.type, EventLevel.INFO)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "level": self.level.value,
            "timestamp": self.timestamp,
            "payload": dict(self.payload),
            "message": format_event_message(self),
        }


def scan_started(scan_number: int) -> MonitoringEvent:
    return MonitoringEvent(MonitoringEventType.SCAN_STARTED, {"scan_number": scan_number})


def scan_completed(scan_number: int, devices_online: int, devices_total: int,
                   duration_ms: int) -> MonitoringEvent:
    return MonitoringEvent(
        MonitoringEventType.SCAN_COMPLETED,
        {
            "scan_number": scan_number,
            "devices_online": devices_online,
            "devices_total": devices_total,
            "duration_ms": duration_ms,
        },
    )


def scan_failed(scan_number: int, error: str) -> MonitoringEvent:
    return MonitoringEvent(
        MonitoringEventType.SCAN_FAILED,
        {"scan_number": scan_number, "error": error},
    )


def device_discovered(mac: str, ip: Optional[str], vendor: Optional[str]) -> MonitoringEvent:
    return MonitoringEvent(
        MonitoringEventType.DEVICE_DISCOVERED,
        {"mac": mac, "ip": ip, "vendor": vendor},
    )


def device_offline(mac: str, ip: Optional[str]) -> MonitoringEvent:
    return MonitoringEvent(MonitoringEventType.DEVICE_OFFLINE, {"mac": mac, "ip": ip})


def format_event_message(event: MonitoringEvent) -> str:
    p = event.payload
    if event.type is MonitoringEventType.SCAN_STARTED:
        return f"Scan #{p.get('scan_number', '?')} started"
    if event.type is MonitoringEventType.SCAN_COMPLETED:
        return (
            f"Scan #{p.get('scan_number', '?')} completed: "
            f"{p.get('devices_online', 0)}/{p.get('devices_total', 0)} devices online"
        )
    if event.type is MonitoringEventType.SCAN_FAILED:
        return f"Scan #{p.get('scan_number', '?')} failed: {p.get('error', 'unknown error')}"
    if event.type is MonitoringEventType.DEVICE_DISCOVERED:
        label = p.get("ip") or p.get("mac")
        vendor = p.get("vendor")
        return f"New device: {label} ({vendor})" if vendor else f"New device: {label}"
    if event.type is MonitoringEventType.DEVICE_OFFLINE:
        return f"Device offline: {p.get('ip') or p.get('mac')}"
    return event.type.value


class EventLog:
    """
    Bounded event buffer, newest first.

    Appending past capacity drops the oldest entry.
    """
    def __init__(self, capacity: int = DEFAULT_EVENT_LOG_CAPACITY):
        if capacity <= 0:
            raise ValueError("event log capacity must be positive")
        self._events: Deque[MonitoringEvent] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._events.maxlen or 0

    def append(self, event: MonitoringEvent) -> None:
        self._events.appendleft(event)

    def clear(self) -> None:
        self._events.clear()

    def latest(self) -> Optional[MonitoringEvent]:
        return self._events[0] if self._events else None

    def snapshot(self) -> List[MonitoringEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[MonitoringEvent]:
        return iter(list(self._events))
