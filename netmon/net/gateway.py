"""
netmon/net/gateway.py
Command gateway to the scanning backend.

Everything the console knows about the network arrives through the fixed set
of named commands below. `BackendGateway` is the protocol the rest of the
package depends on; `HttpBackendGateway` is the production implementation
over httpx. Every failure leaves this module as a NetMonError with a
GATEWAY_* code, so callers never deal with httpx or pydantic exceptions.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Type, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from netmon.data.models import (
    AlertRecord,
    DeviceRecord,
    MonitoringStatus,
    NetworkHealth,
    NetworkStats,
    PingResult,
    PortScanResult,
    ScanRecord,
    VendorLookupResult,
)
from netmon.errors import ErrorCode, NetMonError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class BackendGateway(Protocol):
    """Remote command surface of the scanning backend."""

    async def get_all_devices(self) -> List[DeviceRecord]: ...

    async def get_network_stats(self) -> NetworkStats: ...

    async def get_network_health(self) -> NetworkHealth: ...

    async def get_scan_history(self, limit: int) -> List[ScanRecord]: ...

    async def start_monitoring(self, interval_seconds: int) -> MonitoringStatus: ...

    async def stop_monitoring(self) -> MonitoringStatus: ...

    async def get_unread_alerts(self) -> List[AlertRecord]: ...

    async def mark_alert_read(self, alert_id: int) -> None: ...

    async def ping_host(self, target: str, count: int) -> List[PingResult]: ...

    async def scan_ports(self, target: str, ports: List[int]) -> List[PortScanResult]: ...

    async def lookup_mac_vendor(self, mac: str) -> VendorLookupResult: ...


class HttpBackendGateway:
    """
    BackendGateway over HTTP.

    Each command is `POST {base_url}/commands/{name}` with the parameters as
    a JSON object. A 2xx response carries the result as JSON; anything else
    is a failed command whose body may hold an `error` message.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def invoke(self, command: str, **params: Any) -> Any:
        """Run one backend command and return its decoded JSON result."""
        url = f"{self.base_url}/commands/{command}"
        try:
            response = await self.client.post(url, json=params)
        except httpx.TimeoutException as e:
            logger.warning(f"[Gateway] {command} timed out")
            raise NetMonError(
                ErrorCode.GATEWAY_TIMEOUT,
                f"Backend command '{command}' timed out",
                details={"command": command},
            ) from e
        except httpx.TransportError as e:
            logger.warning(f"[Gateway] {command} transport failure: {e}")
            raise NetMonError(
                ErrorCode.GATEWAY_UNAVAILABLE,
                f"Backend unreachable while running '{command}': {e}",
                details={"command": command},
            ) from e

        if response.status_code >= 400:
            reason = _error_message(response)
            logger.warning(f"[Gateway] {command} failed with HTTP {response.status_code}: {reason}")
            raise NetMonError(
                ErrorCode.GATEWAY_COMMAND_FAILED,
                f"Backend command '{command}' failed: {reason}",
                details={"command": command, "status_code": response.status_code},
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise NetMonError(
                ErrorCode.GATEWAY_PROTOCOL_ERROR,
                f"Backend command '{command}' returned invalid JSON",
                details={"command": command},
            ) from e

    async def _invoke_model(self, command: str, model: Type[M], **params: Any) -> M:
        data = await self.invoke(command, **params)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise _protocol_error(command, e) from e

    async def _invoke_list(self, command: str, model: Type[M], **params: Any) -> List[M]:
        data = await self.invoke(command, **params)
        try:
            return TypeAdapter(List[model]).validate_python(data or [])
        except ValidationError as e:
            raise _protocol_error(command, e) from e

    # --- Commands ---

    async def get_all_devices(self) -> List[DeviceRecord]:
        return await self._invoke_list("get_all_devices", DeviceRecord)

    async def get_network_stats(self) -> NetworkStats:
        return await self._invoke_model("get_network_stats", NetworkStats)

    async def get_network_health(self) -> NetworkHealth:
        return await self._invoke_model("get_network_health", NetworkHealth)

    async def get_scan_history(self, limit: int) -> List[ScanRecord]:
        return await self._invoke_list("get_scan_history", ScanRecord, limit=limit)

    async def start_monitoring(self, interval_seconds: int) -> MonitoringStatus:
        return await self._invoke_model(
            "start_monitoring", MonitoringStatus, interval_seconds=interval_seconds
        )

    async def stop_monitoring(self) -> MonitoringStatus:
        return await self._invoke_model("stop_monitoring", MonitoringStatus)

    async def get_unread_alerts(self) -> List[AlertRecord]:
        return await self._invoke_list("get_unread_alerts", AlertRecord)

    async def mark_alert_read(self, alert_id: int) -> None:
        await self.invoke("mark_alert_read", alert_id=alert_id)

    async def ping_host(self, target: str, count: int) -> List[PingResult]:
        return await self._invoke_list("ping_host", PingResult, target=target, count=count)

    async def scan_ports(self, target: str, ports: List[int]) -> List[PortScanResult]:
        return await self._invoke_list("scan_ports", PortScanResult, target=target, ports=ports)

    async def lookup_mac_vendor(self, mac: str) -> VendorLookupResult:
        return await self._invoke_model("lookup_mac_vendor", VendorLookupResult, mac=mac)

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()


def _error_message(response: httpx.Response) -> str:
    try:
        body: Dict[str, Any] = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)


def _protocol_error(command: str, error: ValidationError) -> NetMonError:
    logger.warning(f"[Gateway] {command} returned an unexpected payload: {error.error_count()} error(s)")
    return NetMonError(
        ErrorCode.GATEWAY_PROTOCOL_ERROR,
        f"Backend command '{command}' returned an unexpected payload",
        details={
            "command": command,
            "errors": [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in error.errors()
            ],
        },
    )
