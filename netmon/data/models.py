"""
netmon/data/models.py
Typed records returned by the scanning backend.

Field names follow the backend's JSON so responses validate without
aliasing. Enumerated fields go through the lenient parsers in
netmon.data.constants, so an unexpected severity or grade string never fails
validation of the surrounding record.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from netmon.data.constants import (
    AlertType,
    SecurityGrade,
    Severity,
    grade_for_score,
)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


# ============================================================================
# Devices & scans
# ============================================================================

class DeviceRecord(BaseModel):
    mac: str
    ip: Optional[str] = None
    vendor: Optional[str] = None
    device_type: Optional[str] = None
    first_seen: datetime
    last_seen: datetime
    custom_name: Optional[str] = None

    @field_validator("mac")
    @classmethod
    def normalize_mac(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("mac cannot be empty")
        return v

    def seen_since(self, cutoff: datetime) -> bool:
        """True when the last sighting is strictly after cutoff."""
        return as_utc(self.last_seen) > as_utc(cutoff)

    def is_active(self, now: datetime, window: timedelta) -> bool:
        return self.seen_since(now - window)


class ScanRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    timestamp: datetime
    total_hosts: int = 0
    scan_duration_ms: int = 0
    subnet: str = ""


class NetworkStats(BaseModel):
    total_devices: int = 0
    total_scans: int = 0
    avg_devices_per_scan: float = 0.0
    unique_vendors: int = 0
    last_scan_timestamp: Optional[datetime] = None


class HealthBreakdown(BaseModel):
    security: float = 0.0
    stability: float = 0.0
    compliance: float = 0.0

    @field_validator("security", "stability", "compliance")
    @classmethod
    def clamp(cls, v: float) -> float:
        return _clamp_percent(v)


class NetworkHealth(BaseModel):
    score: float
    grade: SecurityGrade = SecurityGrade.NOT_ASSESSED
    status: str = ""
    breakdown: HealthBreakdown = Field(default_factory=HealthBreakdown)
    insights: List[str] = Field(default_factory=list)

    @field_validator("score")
    @classmethod
    def clamp_score(cls, v: float) -> float:
        return _clamp_percent(v)

    @field_validator("grade", mode="before")
    @classmethod
    def parse_grade(cls, v):
        return SecurityGrade.parse(v)

    @model_validator(mode="after")
    def derive_grade(self) -> "NetworkHealth":
        # Health grades are letters only; anything else is re-derived from the score.
        if self.grade in (SecurityGrade.NOT_ASSESSED, SecurityGrade.UNKNOWN):
            self.grade = grade_for_score(self.score)
        return self


# ============================================================================
# Monitoring
# ============================================================================

class MonitoringStatus(BaseModel):
    is_running: bool = False
    interval_seconds: int = 0
    devices_online: int = 0
    devices_total: int = 0
    scan_count: int = 0

    @model_validator(mode="after")
    def check_interval(self) -> "MonitoringStatus":
        if self.is_running and self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive while running")
        return self


# ============================================================================
# Alerts
# ============================================================================

class AlertRecord(BaseModel):
    id: int
    created_at: datetime
    alert_type: AlertType = AlertType.UNKNOWN
    severity: Severity = Severity.UNKNOWN
    device_id: Optional[int] = None
    device_mac: Optional[str] = None
    device_ip: Optional[str] = None
    message: str = ""
    is_read: bool = False

    @field_validator("alert_type", mode="before")
    @classmethod
    def parse_alert_type(cls, v):
        return AlertType(v) if v is not None else AlertType.UNKNOWN

    @field_validator("severity", mode="before")
    @classmethod
    def parse_severity(cls, v):
        return Severity.parse(v)

    def mark_read(self) -> None:
        # Read state only ever moves forward.
        self.is_read = True


# ============================================================================
# Security
# ============================================================================

class VulnerabilityInfo(BaseModel):
    cve_id: str
    description: str = ""
    severity: Severity = Severity.UNKNOWN
    cvss_score: Optional[float] = Field(default=None, ge=0.0, le=10.0)

    @field_validator("severity", mode="before")
    @classmethod
    def parse_severity(cls, v):
        return Severity.parse(v)


class PortWarning(BaseModel):
    port: int = Field(ge=1, le=65535)
    service: str = ""
    warning: str = ""
    severity: Severity = Severity.UNKNOWN
    recommendation: Optional[str] = None

    @field_validator("severity", mode="before")
    @classmethod
    def parse_severity(cls, v):
        return Severity.parse(v)


class DeviceSecurityProfile(BaseModel):
    mac: str
    last_ip: Optional[str] = None
    vendor: Optional[str] = None
    device_type: Optional[str] = None
    hostname: Optional[str] = None
    os_guess: Optional[str] = None
    custom_name: Optional[str] = None
    vulnerabilities: List[VulnerabilityInfo] = Field(default_factory=list)
    port_warnings: List[PortWarning] = Field(default_factory=list)
    security_grade: SecurityGrade = SecurityGrade.NOT_ASSESSED

    @field_validator("vulnerabilities", "port_warnings", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v

    @field_validator("security_grade", mode="before")
    @classmethod
    def parse_grade(cls, v):
        return SecurityGrade.parse(v)

    @property
    def display_name(self) -> str:
        return self.custom_name or self.hostname or self.last_ip or self.mac

    @property
    def has_known_issues(self) -> bool:
        return bool(self.vulnerabilities or self.port_warnings)


# ============================================================================
# Network tools
# ============================================================================

class PingResult(BaseModel):
    success: bool
    latency_ms: Optional[float] = None
    ttl: Optional[int] = None
    os_guess: Optional[str] = None
    error: Optional[str] = None


class PortScanResult(BaseModel):
    port: int
    is_open: bool
    service: Optional[str] = None


class VendorLookupResult(BaseModel):
    mac: str
    vendor: Optional[str] = None
    is_randomized: bool = False
