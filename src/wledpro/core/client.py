"""Network device client for the WLED JSON API."""

from __future__ import annotations

import ipaddress
import logging
from typing import Any, Protocol

import httpx

from wledpro.config import RefreshConfig
from wledpro.errors import DeviceTimeout, ProtocolError, Unreachable
from wledpro.models import Device, DeviceReport, normalize_identity

logger = logging.getLogger(__name__)

STATE_INFO_PATH = "/json/si"


class DeviceClient(Protocol):
    """Issues status requests to single devices.

    Implementations raise ``Unreachable``, ``DeviceTimeout`` or
    ``ProtocolError`` and never write to the device store.
    """

    async def fetch(self, address: str) -> DeviceReport: ...

    async def refresh(self, device: Device) -> DeviceReport: ...


class BaseDeviceClient:
    async def fetch(self, address: str) -> DeviceReport:
        raise NotImplementedError

    async def refresh(self, device: Device) -> DeviceReport:
        """Fetch ``device.address`` and check it still answers as ``device``."""
        report = await self.fetch(device.address)
        if report.identity != device.identity:
            raise ProtocolError(
                f"{device.address} now answers as {report.identity}",
                {"expected": device.identity, "address": device.address},
            )
        return report


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _attributes_from(state: dict[str, Any], info: dict[str, Any]) -> dict[str, Any]:
    segments = state.get("seg")
    first: dict[str, Any] = {}
    if isinstance(segments, list) and segments:
        first = _mapping(segments[0])
    leds = _mapping(info.get("leds"))
    wifi = _mapping(info.get("wifi"))
    return {
        "version": info.get("ver", ""),
        "arch": info.get("arch", ""),
        "product": info.get("product", ""),
        "led_count": leds.get("count"),
        "on": state.get("on"),
        "brightness": state.get("bri"),
        "effect": first.get("fx"),
        "palette": first.get("pal"),
        "wifi_signal": wifi.get("signal"),
        "uptime": info.get("uptime"),
    }


def parse_state_info(payload: Any, address: str) -> DeviceReport:
    """Turn a ``/json/si`` body into a ``DeviceReport``."""
    if not isinstance(payload, dict):
        raise ProtocolError(f"Unexpected response from {address}", {"body": payload})

    state = payload.get("state")
    info = payload.get("info")
    if not isinstance(state, dict) or not isinstance(info, dict):
        raise ProtocolError(
            f"Response from {address} is missing state or info",
            {"keys": sorted(payload)},
        )

    mac = info.get("mac")
    if not isinstance(mac, str) or not mac:
        raise ProtocolError(f"Response from {address} carries no MAC address")

    return DeviceReport(
        identity=normalize_identity(mac),
        name=str(info.get("name") or ""),
        attributes=_attributes_from(state, info),
    )


def _is_ipv6(address: str) -> bool:
    try:
        return ipaddress.ip_address(address).version == 6
    except ValueError:
        return False


class WledHttpClient(BaseDeviceClient):
    """HTTP client for WLED controllers."""

    def __init__(
        self,
        timeout: float = 5.0,
        port: int = 80,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._port = port
        self._transport = transport

    @classmethod
    def from_config(cls, config: RefreshConfig) -> WledHttpClient:
        return cls(timeout=config.request_timeout, port=config.port)

    def url_for(self, address: str) -> str:
        host, has_port = address, ":" in address
        if _is_ipv6(address):
            host, has_port = f"[{address}]", False
        elif address.startswith("["):
            has_port = "]:" in address
        if not has_port and self._port != 80:
            host = f"{host}:{self._port}"
        return f"http://{host}{STATE_INFO_PATH}"

    async def fetch(self, address: str) -> DeviceReport:
        url = self.url_for(address)
        logger.debug("Requesting %s", url)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as exc:
            raise DeviceTimeout(
                f"{address} did not answer within {self._timeout}s"
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ProtocolError(
                f"{address} answered with HTTP {exc.response.status_code}",
                {"status_code": exc.response.status_code},
            ) from exc
        except httpx.RequestError as exc:
            raise Unreachable(f"Cannot reach {address}: {exc}") from exc
        except httpx.InvalidURL as exc:
            raise Unreachable(f"Invalid address {address!r}: {exc}") from exc
        except ValueError as exc:
            raise ProtocolError(f"{address} sent invalid JSON") from exc

        return parse_state_info(payload, address)
