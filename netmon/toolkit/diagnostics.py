"""
netmon/toolkit/diagnostics.py
Ad-hoc network tools: ping, port scan, MAC vendor lookup.

The backend sends the packets. This module validates input before it leaves
the console and condenses the raw results into the summaries the tools
page shows.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from netmon.data.models import PingResult, PortScanResult, VendorLookupResult
from netmon.errors import ErrorCode, NetMonError
from netmon.net.gateway import BackendGateway

if TYPE_CHECKING:
    from netmon.base.config import SettingsProvider

logger = logging.getLogger(__name__)

PORT_PRESETS: Dict[str, str] = {
    "common": "21,22,23,80,443,445,3389,8080",
    "web": "80,443,8000,8080,8443",
    "database": "1433,3306,5432,27017",
    "all": "20,21,22,23,25,53,80,110,143,443,445,3306,3389,5432,8080",
}

MAX_PING_COUNT = 100

_DANGEROUS_PATTERNS = (";", "&", "|", "`", "$(", ">", "<")

_MAC_PATTERN = re.compile(r"^[0-9a-f]{2}([:-])[0-9a-f]{2}(\1[0-9a-f]{2}){4}$", re.IGNORECASE)


def parse_port_list(text: Optional[str]) -> List[int]:
    """
    Parse "22, 80,443" into [22, 80, 443].

    Non-numeric and out-of-range (1-65535) entries are dropped; duplicates
    keep their first position.
    """
    ports: List[int] = []
    for chunk in (text or "").split(","):
        chunk = chunk.strip()
        if not chunk.isdigit():
            continue
        port = int(chunk)
        if 1 <= port <= 65535 and port not in ports:
            ports.append(port)
    return ports


def normalize_mac(mac: str) -> str:
    """Canonical lower-case colon form; raises ValueError on malformed input."""
    mac = (mac or "").strip()
    if not _MAC_PATTERN.match(mac):
        raise ValueError(f"Invalid MAC address: {mac!r}")
    return mac.replace("-", ":").lower()


def is_locally_administered(mac: str) -> bool:
    """
    True for locally administered (randomized/virtual) addresses.

    That is bit 1 of the first octet, which phones set when they randomize
    their MAC for privacy.
    """
    first_octet = int(normalize_mac(mac).split(":")[0], 16)
    return bool(first_octet & 0x02)


@dataclass(frozen=True)
class PingSummary:
    sent: int
    received: int
    loss_percent: float
    avg_latency_ms: Optional[float]
    os_guess: Optional[str]


def summarize_ping(results: Iterable[PingResult]) -> PingSummary:
    results = list(results)
    sent = len(results)
    received = sum(1 for r in results if r.success)
    latencies = [r.latency_ms for r in results if r.success and r.latency_ms is not None]
    avg = round(sum(latencies) / len(latencies), 2) if latencies else None
    loss = round((sent - received) / sent * 100, 1) if sent else 0.0
    os_guess = next((r.os_guess for r in results if r.os_guess), None)
    return PingSummary(sent=sent, received=received, loss_percent=loss,
                       avg_latency_ms=avg, os_guess=os_guess)


def open_ports(results: Iterable[PortScanResult]) -> List[PortScanResult]:
    return [r for r in results if r.is_open]


class NetworkTools:
    """Validating front for the backend's ping/port-scan/vendor commands."""

    def __init__(self, gateway: BackendGateway,
                 settings_provider: Optional["SettingsProvider"] = None):
        self._gateway = gateway
        self._settings_provider = settings_provider

    @staticmethod
    def _target(target: str) -> str:
        target = (target or "").strip()
        if (not target or any(c.isspace() for c in target)
                or any(p in target for p in _DANGEROUS_PATTERNS)):
            raise NetMonError(
                ErrorCode.TOOL_TARGET_INVALID,
                f"Invalid target: {target!r}",
                details={"target": target},
            )
        return target

    async def ping(self, target: str, count: int = 4) -> List[PingResult]:
        target = self._target(target)
        if not 1 <= count <= MAX_PING_COUNT:
            raise NetMonError(
                ErrorCode.TOOL_TARGET_INVALID,
                f"Ping count must be between 1 and {MAX_PING_COUNT}",
                details={"count": count},
            )
        logger.info(f"[Tools] Pinging {target} x{count}")
        return await self._gateway.ping_host(target, count)

    def default_ports(self) -> List[int]:
        """The configured TCP port set, or the "common" preset without settings."""
        if self._settings_provider is None:
            return parse_port_list(PORT_PRESETS["common"])
        return self._settings_provider.load().tcp_port_list

    async def scan_ports(self, target: str,
                         ports: "str | Iterable[int] | None" = None) -> List[PortScanResult]:
        target = self._target(target)
        if ports is None:
            port_list = self.default_ports()
        elif isinstance(ports, str):
            port_list = parse_port_list(PORT_PRESETS.get(ports.strip().lower(), ports))
        else:
            port_list = parse_port_list(",".join(str(p) for p in ports))
        if not port_list:
            raise NetMonError(
                ErrorCode.TOOL_PORTS_INVALID,
                "No valid ports to scan",
                details={"ports": str(ports)},
            )
        logger.info(f"[Tools] Scanning {len(port_list)} port(s) on {target}")
        return await self._gateway.scan_ports(target, port_list)

    async def lookup_vendor(self, mac: str) -> VendorLookupResult:
        try:
            normalized = normalize_mac(mac)
        except ValueError as e:
            raise NetMonError(
                ErrorCode.TOOL_TARGET_INVALID,
                str(e),
                details={"mac": mac},
            ) from e
        result = await self._gateway.lookup_mac_vendor(normalized)
        if "is_randomized" not in result.model_fields_set:
            result = result.model_copy(update={"is_randomized": is_locally_administered(normalized)})
        return result
