"""
netmon/data/constants.py
Closed enumerations shared by the dashboard, alert and security layers.

Every enum here parses case-insensitively and maps anything it does not
recognize to an explicit fallback member instead of raising. Backend data is
not trusted to stay inside these sets.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional


class Severity(str, Enum):
    """Severity bucket used by alerts, vulnerabilities and port warnings."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.UNKNOWN

    @classmethod
    def parse(cls, value: Optional[str]) -> "Severity":
        if value is None:
            return cls.UNKNOWN
        return cls(value)


class AlertType(str, Enum):
    NEW_DEVICE = "new_device"
    OFFLINE = "offline"
    HIGH_RISK = "high_risk"
    IP_CHANGE = "ip_change"
    SUSPICIOUS_PORT = "suspicious_port"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.UNKNOWN


class SecurityGrade(str, Enum):
    """
    Letter grade the backend assigns to a device.

    Empty and missing grades mean "not assessed" and parse to NOT_ASSESSED.
    Any other unrecognized text parses to UNKNOWN.
    """
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"
    NOT_ASSESSED = "N/A"
    UNKNOWN = "?"

    @classmethod
    def _missing_(cls, value):
        if value is None:
            return cls.NOT_ASSESSED
        if isinstance(value, str):
            normalized = value.strip().upper()
            if normalized in ("", "N/A", "NA"):
                return cls.NOT_ASSESSED
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.UNKNOWN

    @classmethod
    def parse(cls, value: Optional[str]) -> "SecurityGrade":
        if value is None:
            return cls.NOT_ASSESSED
        return cls(value)


# ---------------------------------------------------------------------------
# Badge buckets
# ---------------------------------------------------------------------------
# Alerts fall back to INFO; vulnerability and port-warning badges only have
# four buckets and fall back to LOW.
ALERT_BADGE_FALLBACK = Severity.INFO
FINDING_BADGE_BUCKETS = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW)
FINDING_BADGE_FALLBACK = Severity.LOW


# ---------------------------------------------------------------------------
# Grade rollup
# ---------------------------------------------------------------------------
# Which summary card each grade lands on. Grades outside this map (UNKNOWN)
# are counted separately as unrecognized.
GRADE_RISK_BUCKETS: Dict[SecurityGrade, str] = {
    SecurityGrade.F: "critical",
    SecurityGrade.D: "high",
    SecurityGrade.C: "medium",
    SecurityGrade.A: "secure",
    SecurityGrade.B: "secure",
    SecurityGrade.NOT_ASSESSED: "secure",
}


# ---------------------------------------------------------------------------
# Network health
# ---------------------------------------------------------------------------
# Score thresholds used when the backend omits the health grade.
HEALTH_GRADE_THRESHOLDS = (
    (90, SecurityGrade.A),
    (80, SecurityGrade.B),
    (70, SecurityGrade.C),
    (60, SecurityGrade.D),
)

# Colour tiers of the health score card.
HEALTH_TIERS = (
    (80, "good"),
    (60, "fair"),
    (40, "poor"),
)

# device_type value the backend uses for unidentified devices
UNKNOWN_DEVICE_TYPE = "UNKNOWN"


def grade_for_score(score: float) -> SecurityGrade:
    """Letter grade for a 0-100 health score."""
    for threshold, grade in HEALTH_GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return SecurityGrade.F


def health_tier(score: float) -> str:
    for threshold, tier in HEALTH_TIERS:
        if score >= threshold:
            return tier
    return "critical"
