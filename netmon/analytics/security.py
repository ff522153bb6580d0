"""Module security: per-device security grades and the fleet rollup."""
#
# PURPOSE:
# Turns the backend's per-device security data (letter grade, CVE matches,
# risky open ports) into the numbers the vulnerability page shows: one card
# per risk level for the whole network, and per-device badge counts.
#
# HOW GRADES ROLL UP:
# - F -> critical, D -> high, C -> medium
# - A, B and "not assessed" (empty or missing grade) -> secure
# - anything else is counted as unrecognized instead of guessing a bucket
#
# The grade itself is assigned by the backend. This module never recomputes
# it from the findings, and a device with no findings reports "no known
# issues" whatever its grade says.
#

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from netmon.data.constants import (
    FINDING_BADGE_BUCKETS,
    FINDING_BADGE_FALLBACK,
    GRADE_RISK_BUCKETS,
    SecurityGrade,
    Severity,
)
from netmon.data.models import DeviceSecurityProfile

RISK_FILTERS = ("all", "critical", "high", "medium")


@dataclass(frozen=True)
class GradeRollup:
    critical: int = 0
    high: int = 0
    medium: int = 0
    secure: int = 0
    unrecognized: int = 0


@dataclass
class DeviceSecuritySummary:
    mac: str
    display_name: str
    grade: SecurityGrade
    vulnerabilities: Dict[Severity, int] = field(default_factory=dict)
    port_warnings: Dict[Severity, int] = field(default_factory=dict)
    no_known_issues: bool = True


def badge_bucket(severity: Optional[Severity]) -> Severity:
    """Display bucket of a vulnerability or port warning severity."""
    if severity in FINDING_BADGE_BUCKETS:
        return severity
    return FINDING_BADGE_FALLBACK


def _bucket_counts(severities: Iterable[Severity]) -> Dict[Severity, int]:
    counts = {bucket: 0 for bucket in FINDING_BADGE_BUCKETS}
    for severity in severities:
        counts[badge_bucket(severity)] += 1
    return counts


class SecurityGrader:
    def grade(self, device: DeviceSecurityProfile) -> SecurityGrade:
        return SecurityGrade.parse(device.security_grade)

    def risk_level(self, device: DeviceSecurityProfile) -> Optional[str]:
        """critical/high/medium/secure, or None for an unrecognized grade."""
        return GRADE_RISK_BUCKETS.get(self.grade(device))

    def rollup(self, devices: Iterable[DeviceSecurityProfile]) -> GradeRollup:
        counts = {"critical": 0, "high": 0, "medium": 0, "secure": 0, "unrecognized": 0}
        for device in devices:
            counts[self.risk_level(device) or "unrecognized"] += 1
        return GradeRollup(**counts)

    def summarize(self, device: DeviceSecurityProfile) -> DeviceSecuritySummary:
        return DeviceSecuritySummary(
            mac=device.mac,
            display_name=device.display_name,
            grade=self.grade(device),
            vulnerabilities=_bucket_counts(v.severity for v in device.vulnerabilities),
            port_warnings=_bucket_counts(w.severity for w in device.port_warnings),
            no_known_issues=not device.has_known_issues,
        )

    def filter_by_risk(self, devices: Iterable[DeviceSecurityProfile],
                       risk: str = "all") -> List[DeviceSecurityProfile]:
        """Devices on one summary card; "all" returns every device."""
        risk = (risk or "all").lower()
        if risk not in RISK_FILTERS:
            raise ValueError(f"risk must be one of {RISK_FILTERS}, got {risk!r}")
        if risk == "all":
            return list(devices)
        return [device for device in devices if self.risk_level(device) == risk]
