"""
netmon/server/api.py
HTTP surface of the monitoring console.

A thin FastAPI layer over MonitoringConsole: every route delegates to one
component and returns its result as JSON. NetMonError is turned into a JSON
error body with the status code from the error taxonomy.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from netmon import __version__
from netmon.analytics.alerts import AlertFilter, relative_age, severity_bucket
from netmon.analytics.security import DeviceSecuritySummary
from netmon.data.models import DeviceSecurityProfile
from netmon.errors import ErrorCode, NetMonError
from netmon.server.state import MonitoringConsole
from netmon.toolkit.diagnostics import open_ports, summarize_ping

logger = logging.getLogger(__name__)


class StartMonitoringRequest(BaseModel):
    # None means "use the interval from the local scanner settings"
    interval_seconds: Optional[int] = None


class SecuritySummaryRequest(BaseModel):
    devices: List[DeviceSecurityProfile] = Field(default_factory=list)
    risk: str = "all"


def get_console(request: Request) -> MonitoringConsole:
    return request.app.state.console


def _monitoring_view(console: MonitoringConsole) -> Dict[str, Any]:
    session = console.session
    return {
        "status": session.status.model_dump(),
        "state": session.state.value,
        "countdown": session.countdown,
        "countdown_display": session.countdown_display,
        "events": [event.to_dict() for event in session.events],
    }


def _device_summary(summary: DeviceSecuritySummary) -> Dict[str, Any]:
    return {
        "mac": summary.mac,
        "display_name": summary.display_name,
        "grade": summary.grade.value,
        "vulnerabilities": {s.value: n for s, n in summary.vulnerabilities.items()},
        "port_warnings": {s.value: n for s, n in summary.port_warnings.items()},
        "no_known_issues": summary.no_known_issues,
    }


# --- Dashboard ---

dashboard_router = APIRouter(tags=["dashboard"])


@dashboard_router.get("/dashboard")
async def get_dashboard(console: MonitoringConsole = Depends(get_console)):
    snapshot = await console.poller.refresh()
    return snapshot.model_dump(mode="json")


# --- Monitoring ---

monitoring_router = APIRouter(prefix="/monitoring", tags=["monitoring"])


@monitoring_router.get("")
async def get_monitoring(console: MonitoringConsole = Depends(get_console)):
    return _monitoring_view(console)


@monitoring_router.post("/start")
async def start_monitoring(
    body: Optional[StartMonitoringRequest] = None,
    console: MonitoringConsole = Depends(get_console),
):
    interval = body.interval_seconds if body is not None else None
    await console.session.start(interval)
    return _monitoring_view(console)


@monitoring_router.post("/stop")
async def stop_monitoring(console: MonitoringConsole = Depends(get_console)):
    await console.session.stop()
    return _monitoring_view(console)


@monitoring_router.delete("/events")
async def clear_events(console: MonitoringConsole = Depends(get_console)):
    console.session.clear_events()
    return {"cleared": True}


# --- Alerts ---

alerts_router = APIRouter(prefix="/alerts", tags=["alerts"])


@alerts_router.get("")
async def list_alerts(
    status: str = "all",
    alert_type: str = Query("all", alias="type"),
    severity: str = "all",
    q: str = "",
    refresh: bool = True,
    console: MonitoringConsole = Depends(get_console),
):
    try:
        criteria = AlertFilter(status=status, alert_type=alert_type, severity=severity, query=q)
    except ValueError as e:
        raise NetMonError(ErrorCode.REQUEST_INVALID, str(e)) from e

    if refresh:
        await console.alerts.load()

    return [
        {
            **alert.model_dump(mode="json"),
            "badge": severity_bucket(alert).value,
            "age": relative_age(alert.created_at),
        }
        for alert in console.alerts.filter(criteria)
    ]


@alerts_router.get("/summary")
async def alert_summary(console: MonitoringConsole = Depends(get_console)):
    return asdict(console.alerts.summary)


@alerts_router.post("/read-all")
async def mark_all_read(console: MonitoringConsole = Depends(get_console)):
    result = await console.alerts.mark_all_read()
    return {
        "marked": result.marked,
        "failed": {str(alert_id): reason for alert_id, reason in result.failed.items()},
        "complete": result.complete,
    }


@alerts_router.post("/{alert_id}/read")
async def mark_read(alert_id: int, console: MonitoringConsole = Depends(get_console)):
    alert = await console.alerts.mark_read(alert_id)
    return alert.model_dump(mode="json")


# --- Security ---

security_router = APIRouter(prefix="/security", tags=["security"])


@security_router.post("/summary")
async def security_summary(
    body: SecuritySummaryRequest,
    console: MonitoringConsole = Depends(get_console),
):
    grader = console.grader
    try:
        devices = grader.filter_by_risk(body.devices, body.risk)
    except ValueError as e:
        raise NetMonError(ErrorCode.REQUEST_INVALID, str(e)) from e

    return {
        "rollup": asdict(grader.rollup(body.devices)),
        "devices": [_device_summary(grader.summarize(device)) for device in devices],
    }


# --- Tools ---

tools_router = APIRouter(prefix="/tools", tags=["tools"])


@tools_router.get("/ping")
async def ping(target: str, count: int = 4, console: MonitoringConsole = Depends(get_console)):
    results = await console.tools.ping(target, count)
    return {
        "results": [r.model_dump(mode="json") for r in results],
        "summary": asdict(summarize_ping(results)),
    }


@tools_router.get("/ports")
async def scan_ports(target: str, ports: Optional[str] = None, console: MonitoringConsole = Depends(get_console)):
    results = await console.tools.scan_ports(target, ports)
    return {
        "results": [r.model_dump(mode="json") for r in results],
        "open": [r.port for r in open_ports(results)],
    }


@tools_router.get("/mac")
async def lookup_mac(mac: str, console: MonitoringConsole = Depends(get_console)):
    result = await console.tools.lookup_vendor(mac)
    return result.model_dump(mode="json")


# --- App ---

def create_app(console: Optional[MonitoringConsole] = None) -> FastAPI:
    """
    Build the API around a console. Without one, a console is built from the
    global config when the app starts.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "console", None) is None:
            app.state.console = MonitoringConsole.from_config()
        logger.info("[API] Monitoring console ready")
        try:
            yield
        finally:
            await app.state.console.aclose()

    app = FastAPI(
        title="NetMon Console API",
        description="Dashboard, monitoring, alerts and diagnostics for a LAN scanning backend",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.console = console

    @app.exception_handler(NetMonError)
    async def netmon_error_handler(request: Request, exc: NetMonError):
        logger.error(f"[API] {exc.code.value}: {exc.message}")
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.get("/health", tags=["system"])
    async def health_check():
        return {"status": "ok", "version": __version__}

    for router in (dashboard_router, monitoring_router, alerts_router, security_router, tools_router):
        app.include_router(router)

    return app
