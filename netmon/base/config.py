# ============================================================================
# netmon/base/config.py
# Application Configuration Management
# ============================================================================
#
# PURPOSE:
# Defines every tunable of the monitoring console in one place: where the
# scanning backend lives, how the monitoring session and dashboard behave,
# and how logging is set up.
#
# KEY CONCEPTS:
# 1. Frozen dataclasses: one immutable section per concern
# 2. Environment variables: NETMON_* overrides, read once by from_env()
# 3. Singleton: get_config() returns one shared instance
# 4. Scanner settings: the user's local settings document (scan interval,
#    TCP ports, SNMP) is loaded elsewhere and handed in through a
#    SettingsProvider. The core only ever reads the loaded struct.
#
# ============================================================================

from __future__ import annotations

import json
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol

from netmon.toolkit.diagnostics import parse_port_list


logger = logging.getLogger(__name__)


# ============================================================================
# Backend Connection Configuration
# ============================================================================

@dataclass(frozen=True)
class BackendConfig:
    # Base URL of the scanning engine's command endpoint
    base_url: str = "http://127.0.0.1:8731"

    # Seconds to wait for a single command before treating it as failed
    # Port scans of many ports can be slow, so this is generous
    request_timeout: float = 30.0


# ============================================================================
# Monitoring & Dashboard Configuration
# ============================================================================

@dataclass(frozen=True)
class MonitoringConfig:
    # How many live events the monitoring feed keeps (most recent first)
    event_log_capacity: int = 5

    # Dashboard refresh cadence in seconds
    dashboard_poll_seconds: float = 30.0

    # How many scans the dashboard asks for in its history strip
    scan_history_limit: int = 5

    # A device counts as an active node if seen within this many hours
    active_window_hours: int = 24

    # Scan interval used when the local settings do not provide a usable one
    default_scan_interval: int = 60


# ============================================================================
# Logging Configuration
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # Optional rotating log file. Disabled unless a path is given.
    file_path: Optional[Path] = None
    max_file_size_mb: int = 10
    backup_count: int = 5


# ============================================================================
# Master Configuration Container
# ============================================================================

@dataclass(frozen=True)
class NetMonConfig:
    backend: BackendConfig = field(default_factory=BackendConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    log: LogConfig = field(default_factory=LogConfig)

    debug: bool = False

    # Where the optional HTTP surface listens (loopback by default)
    api_host: str = "127.0.0.1"
    api_port: int = 8766

    # Path of the local scanner settings document, if any
    settings_path: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "NetMonConfig":
        """Build a config from NETMON_* environment variables."""
        backend = BackendConfig(
            base_url=os.getenv("NETMON_BACKEND_URL", "http://127.0.0.1:8731"),
            request_timeout=float(os.getenv("NETMON_BACKEND_TIMEOUT", "30")),
        )

        monitoring = MonitoringConfig(
            event_log_capacity=int(os.getenv("NETMON_EVENT_LOG_CAPACITY", "5")),
            dashboard_poll_seconds=float(os.getenv("NETMON_DASHBOARD_POLL_SECONDS", "30")),
            scan_history_limit=int(os.getenv("NETMON_SCAN_HISTORY_LIMIT", "5")),
            active_window_hours=int(os.getenv("NETMON_ACTIVE_WINDOW_HOURS", "24")),
        )

        log_file = os.getenv("NETMON_LOG_FILE")
        log = LogConfig(
            level=os.getenv("NETMON_LOG_LEVEL", "INFO"),
            file_path=Path(log_file) if log_file else None,
        )

        settings_path = os.getenv("NETMON_SETTINGS_PATH")

        return cls(
            backend=backend,
            monitoring=monitoring,
            log=log,
            debug=os.getenv("NETMON_DEBUG", "false").lower() == "true",
            api_host=os.getenv("NETMON_API_HOST", "127.0.0.1"),
            api_port=int(os.getenv("NETMON_API_PORT", "8766")),
            settings_path=Path(settings_path) if settings_path else None,
        )


# ============================================================================
# Local Scanner Settings
# ============================================================================
# The settings page of the console stores a small key-value document:
#   {"snmpEnabled": false, "snmpCommunity": "public",
#    "scanInterval": 60, "tcpPorts": "22,80,443,445,8080,3389"}
# Loading is lenient: missing keys take defaults and an unusable
# scanInterval falls back to DEFAULT_SCAN_INTERVAL.

DEFAULT_SCAN_INTERVAL = 60
DEFAULT_TCP_PORTS = "22,80,443,445,8080,3389"


@dataclass(frozen=True)
class ScannerSettings:
    snmp_enabled: bool = False
    snmp_community: str = "public"
    scan_interval: int = DEFAULT_SCAN_INTERVAL
    tcp_ports: str = DEFAULT_TCP_PORTS

    @property
    def tcp_port_list(self) -> List[int]:
        return parse_port_list(self.tcp_ports)

    @classmethod
    def from_document(cls, document: Optional[Mapping[str, Any]]) -> "ScannerSettings":
        if not document:
            return cls()

        return cls(
            snmp_enabled=_parse_bool(document.get("snmpEnabled"), False),
            snmp_community=str(document.get("snmpCommunity") or "public"),
            scan_interval=_parse_interval(document.get("scanInterval")),
            tcp_ports=str(document.get("tcpPorts") or DEFAULT_TCP_PORTS),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "snmpEnabled": self.snmp_enabled,
            "snmpCommunity": self.snmp_community,
            "scanInterval": self.scan_interval,
            "tcpPorts": self.tcp_ports,
        }


def _parse_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return default


def _parse_interval(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return DEFAULT_SCAN_INTERVAL
    try:
        if isinstance(value, (int, float)):
            interval = int(value)
        else:
            interval = int(str(value).strip())
    except (TypeError, ValueError, OverflowError):
        logger.warning(f"[Settings] Unparsable scanInterval {value!r}, using {DEFAULT_SCAN_INTERVAL}s")
        return DEFAULT_SCAN_INTERVAL
    if interval <= 0:
        return DEFAULT_SCAN_INTERVAL
    return interval


class SettingsProvider(Protocol):
    """Supplies already-loaded scanner settings to the core."""
    def load(self) -> ScannerSettings:
        ...


class StaticSettingsProvider:
    def __init__(self, settings: Optional[ScannerSettings] = None):
        self._settings = settings or ScannerSettings()

    def load(self) -> ScannerSettings:
        return self._settings


class JsonFileSettingsProvider:
    """
    Reads the settings document from a JSON file.

    Loading never fails: a missing, unreadable or corrupt file, or one that
    does not hold a JSON object, yields the default settings.
    """
    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> ScannerSettings:
        if not self.path.exists():
            logger.info(f"[Settings] {self.path} not found, using defaults")
            return ScannerSettings()

        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"[Settings] Could not read {self.path}, using defaults: {e}")
            return ScannerSettings()

        if not isinstance(document, dict):
            logger.warning(f"[Settings] {self.path} does not hold a JSON object, using defaults")
            return ScannerSettings()
        return ScannerSettings.from_document(document)


# ============================================================================
# Global Configuration Singleton
# ============================================================================

_config: Optional[NetMonConfig] = None


def get_config() -> NetMonConfig:
    """
    Get the global configuration instance.

    Returns:
        The shared NetMonConfig (created from the environment on first use)
    """
    global _config
    if _config is None:
        _config = NetMonConfig.from_env()
    return _config


def set_config(config: Optional[NetMonConfig]) -> None:
    """Replace the global configuration (mainly used for testing)."""
    global _config
    _config = config


def settings_provider_for(config: NetMonConfig) -> SettingsProvider:
    if config.settings_path is not None:
        return JsonFileSettingsProvider(config.settings_path)
    return StaticSettingsProvider(
        ScannerSettings(scan_interval=config.monitoring.default_scan_interval)
    )


def setup_logging(config: Optional[NetMonConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    Call this once at application startup.
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_path is not None:
        from logging.handlers import RotatingFileHandler
        cfg.log.file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.log.file_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    level = "DEBUG" if cfg.debug else cfg.log.level.upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
    # httpx logs every request at INFO; the gateway already logs failures
    logging.getLogger("httpx").setLevel(logging.WARNING)
