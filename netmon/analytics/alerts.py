"""
netmon/analytics/alerts.py
Alert filtering, read-state changes and summary counts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union

from netmon.data.constants import ALERT_BADGE_FALLBACK, AlertType, Severity
from netmon.data.models import AlertRecord, as_utc
from netmon.errors import ErrorCode, NetMonError, handle_error
from netmon.net.gateway import BackendGateway

logger = logging.getLogger(__name__)

ALL = "all"


class StatusFilter:
    ALL = "all"
    UNREAD = "unread"
    READ = "read"

    CHOICES = (ALL, UNREAD, READ)


@dataclass(frozen=True)
class AlertFilter:
    """
    Filter over an alert set. Every active criterion must match.

    `alert_type` and `severity` take "all" or a member value; they are
    normalized to the enum, so unrecognized text becomes the UNKNOWN member
    and matches only alerts whose own value was unrecognized.
    """
    status: str = StatusFilter.ALL
    alert_type: Union[str, AlertType] = ALL
    severity: Union[str, Severity] = ALL
    query: str = ""

    def __post_init__(self):
        status = (self.status or ALL).strip().lower()
        if status not in StatusFilter.CHOICES:
            raise ValueError(f"status must be one of {StatusFilter.CHOICES}, got {self.status!r}")
        object.__setattr__(self, "status", status)

        if isinstance(self.alert_type, str) and self.alert_type.strip().lower() in ("", ALL):
            object.__setattr__(self, "alert_type", ALL)
        else:
            object.__setattr__(self, "alert_type", AlertType(self.alert_type))

        if isinstance(self.severity, str) and self.severity.strip().lower() in ("", ALL):
            object.__setattr__(self, "severity", ALL)
        else:
            object.__setattr__(self, "severity", Severity(self.severity))

        object.__setattr__(self, "query", (self.query or "").strip().lower())

    def matches(self, alert: AlertRecord) -> bool:
        if self.status == StatusFilter.UNREAD and alert.is_read:
            return False
        if self.status == StatusFilter.READ and not alert.is_read:
            return False

        if self.alert_type != ALL and alert.alert_type is not self.alert_type:
            return False

        if self.severity != ALL and alert.severity is not self.severity:
            return False

        # The text query is the last criterion; when present it decides.
        if self.query:
            return any(
                self.query in (text or "").lower()
                for text in (alert.message, alert.device_ip, alert.device_mac)
            )

        return True


@dataclass(frozen=True)
class AlertSummary:
    total: int = 0
    unread: int = 0
    critical: int = 0
    high: int = 0


@dataclass
class MarkAllReadResult:
    marked: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failed


def summarize(alerts: Iterable[AlertRecord]) -> AlertSummary:
    total = unread = critical = high = 0
    for alert in alerts:
        total += 1
        if not alert.is_read:
            unread += 1
        if alert.severity is Severity.CRITICAL:
            critical += 1
        elif alert.severity is Severity.HIGH:
            high += 1
    return AlertSummary(total=total, unread=unread, critical=critical, high=high)


def severity_bucket(alert: AlertRecord) -> Severity:
    """Badge bucket for an alert; unrecognized severities show as info."""
    if alert.severity is Severity.UNKNOWN:
        return ALERT_BADGE_FALLBACK
    return alert.severity


def relative_age(created_at: datetime, now: Optional[datetime] = None) -> str:
    """Short age label: Just now, 5m ago, 3h ago, 2d ago, or the ISO date."""
    now = as_utc(now or datetime.now(timezone.utc))
    created_at = as_utc(created_at)
    seconds = (now - created_at).total_seconds()

    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return created_at.date().isoformat()


class AlertClassifier:
    """
    Holds the current alert set and mediates read-state changes through the
    backend. Summary counts are always derived from the full, unfiltered set.
    """

    def __init__(self, gateway: BackendGateway, alerts: Optional[Iterable[AlertRecord]] = None):
        self._gateway = gateway
        self._alerts: List[AlertRecord] = list(alerts or [])

    @property
    def alerts(self) -> List[AlertRecord]:
        return list(self._alerts)

    @property
    def summary(self) -> AlertSummary:
        return summarize(self._alerts)

    async def load(self) -> List[AlertRecord]:
        """Replace the alert set with the backend's current one."""
        self._alerts = list(await self._gateway.get_unread_alerts())
        logger.info(f"[Alerts] Loaded {len(self._alerts)} alert(s)")
        return self.alerts

    def get(self, alert_id: int) -> Optional[AlertRecord]:
        for alert in self._alerts:
            if alert.id == alert_id:
                return alert
        return None

    def filter(self, criteria: Optional[AlertFilter] = None) -> List[AlertRecord]:
        criteria = criteria or AlertFilter()
        return [alert for alert in self._alerts if criteria.matches(alert)]

    async def mark_read(self, alert_id: int) -> AlertRecord:
        """
        Mark one alert read.

        Raises:
            NetMonError(ALERT_NOT_FOUND): no alert with that id is loaded
            NetMonError(ALERT_UPDATE_FAILED): the backend call failed; the alert stays unread
        """
        alert = self.get(alert_id)
        if alert is None:
            raise NetMonError(
                ErrorCode.ALERT_NOT_FOUND,
                f"Alert {alert_id} not found",
                details={"alert_id": alert_id},
            )
        if alert.is_read:
            return alert

        try:
            await self._gateway.mark_alert_read(alert_id)
        except Exception as e:
            error = handle_error(e, f"mark_alert_read({alert_id})")
            logger.warning(f"[Alerts] Failed to mark alert {alert_id} as read: {error.message}")
            raise NetMonError(
                ErrorCode.ALERT_UPDATE_FAILED,
                f"Could not mark alert {alert_id} as read: {error.message}",
                details={"alert_id": alert_id, "cause": error.code.value},
            ) from e

        alert.mark_read()
        return alert

    async def mark_all_read(self) -> MarkAllReadResult:
        """
        Mark every unread alert read, one backend call per alert.

        A failure on one alert does not stop the others. Alerts whose call
        failed stay unread and are listed in the result.
        """
        result = MarkAllReadResult()
        for alert in [a for a in self._alerts if not a.is_read]:
            try:
                await self._gateway.mark_alert_read(alert.id)
            except Exception as e:
                error = handle_error(e, f"mark_alert_read({alert.id})")
                logger.warning(f"[Alerts] Failed to mark alert {alert.id} as read: {error.message}")
                result.failed[alert.id] = error.message
                continue
            alert.mark_read()
            result.marked.append(alert.id)

        if result.failed:
            logger.warning(
                f"[Alerts] Marked {len(result.marked)} alert(s) read, {len(result.failed)} failed"
            )
        return result
