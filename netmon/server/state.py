from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from netmon.analytics.alerts import AlertClassifier
from netmon.analytics.dashboard import DashboardPoller, MetricsAggregator
from netmon.analytics.security import SecurityGrader
from netmon.base.config import NetMonConfig, get_config, settings_provider_for
from netmon.monitoring.session import MonitoringSessionController
from netmon.net.gateway import BackendGateway, HttpBackendGateway
from netmon.toolkit.diagnostics import NetworkTools

logger = logging.getLogger(__name__)


class MonitoringConsole:
    """
    One gateway shared by every component of a running console.

    The HTTP surface and the CLI both work through this object; nothing else
    constructs components directly.
    """

    def __init__(self, gateway: BackendGateway, config: Optional[NetMonConfig] = None):
        self.config = config or get_config()
        self.gateway = gateway

        monitoring = self.config.monitoring
        self.aggregator = MetricsAggregator(
            gateway,
            scan_history_limit=monitoring.scan_history_limit,
            active_window=timedelta(hours=monitoring.active_window_hours),
        )
        self.poller = DashboardPoller(self.aggregator, monitoring.dashboard_poll_seconds)
        self.settings_provider = settings_provider_for(self.config)
        self.session = MonitoringSessionController(
            gateway,
            settings_provider=self.settings_provider,
            event_log_capacity=monitoring.event_log_capacity,
        )
        self.alerts = AlertClassifier(gateway)
        self.grader = SecurityGrader()
        self.tools = NetworkTools(gateway, self.settings_provider)

    @classmethod
    def from_config(cls, config: Optional[NetMonConfig] = None) -> "MonitoringConsole":
        config = config or get_config()
        gateway = HttpBackendGateway(
            config.backend.base_url,
            timeout=config.backend.request_timeout,
        )
        return cls(gateway, config)

    async def aclose(self) -> None:
        """Stop background work and release the gateway."""
        await self.poller.stop()
        await self.session.shutdown()
        close = getattr(self.gateway, "aclose", None)
        if close is not None:
            await close()
        logger.info("[Console] Closed")
