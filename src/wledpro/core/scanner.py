from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Callable
from typing import Protocol

from zeroconf import ServiceBrowser, ServiceInfo, ServiceListener, Zeroconf

from wledpro.config import ScanningConfig
from wledpro.errors import ScanError
from wledpro.models import DiscoveredDevice, normalize_identity

logger = logging.getLogger(__name__)

MDNS_SERVICE_TYPE = "_wled._tcp.local."


class DiscoveryScanner(Protocol):
    def scan(self) -> AsyncIterator[DiscoveredDevice]: ...


def _decode_txt_properties(properties: dict[bytes, bytes | None]) -> dict[str, str]:
    decoded: dict[str, str] = {}
    for key, value in properties.items():
        key_text = key.decode("utf-8", errors="replace")
        if value is None:
            value_text = ""
        elif isinstance(value, bytes):
            value_text = value.decode("utf-8", errors="replace")
        else:
            value_text = str(value)
        decoded[key_text] = value_text
    return decoded


def _pick_ip(info: ServiceInfo) -> str | None:
    addresses = info.parsed_addresses()
    if not addresses:
        return None
    for address in addresses:
        if ":" not in address:
            return address
    return addresses[0]


def _strip_service_suffix(name: str) -> str:
    suffix = f".{MDNS_SERVICE_TYPE}"
    if name.endswith(suffix):
        return name[: -len(suffix)]
    return name.rstrip(".")


def device_from_service_info(
    info: ServiceInfo, service_name: str
) -> DiscoveredDevice | None:
    ip = _pick_ip(info)
    if ip is None:
        return None

    properties = _decode_txt_properties(info.properties)
    mac = properties.get("mac", "")
    if not mac:
        logger.debug("Ignoring %s: no mac in TXT record", service_name)
        return None

    address = ip
    if info.port not in (None, 80):
        address = f"[{ip}]:{info.port}" if ":" in ip else f"{ip}:{info.port}"
    return DiscoveredDevice(
        identity=normalize_identity(mac),
        address=address,
        name=_strip_service_suffix(service_name),
        port=info.port,
        txt=properties,
    )


class WledListener(ServiceListener):
    """Forwards resolved services to ``on_device`` from the zeroconf thread."""

    def __init__(
        self, info_timeout: float, on_device: Callable[[DiscoveredDevice], None]
    ) -> None:
        self._info_timeout_ms = max(int(info_timeout * 1000), 1)
        self._on_device = on_device
        self._lock = threading.Lock()
        self._seen: set[str] = set()

    def add_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        info = zc.get_service_info(type_, name, timeout=self._info_timeout_ms)
        if not info:
            return
        device = device_from_service_info(info, name)
        if device is None:
            return
        with self._lock:
            if device.identity in self._seen:
                return
            self._seen.add(device.identity)
        logger.debug("Discovered '%s' at %s via mDNS", device.name, device.address)
        self._on_device(device)

    def update_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        self.add_service(zc, type_, name)

    def remove_service(self, _zc: Zeroconf, _type_: str, name: str) -> None:
        logger.debug("Service %s went away", name)


class MdnsScanner:
    """Browses ``_wled._tcp`` for ``timeout`` seconds, yielding as it resolves."""

    def __init__(self, timeout: float = 5.0) -> None:
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: ScanningConfig) -> MdnsScanner:
        return cls(timeout=config.timeout)

    async def scan(self) -> AsyncIterator[DiscoveredDevice]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[DiscoveredDevice] = asyncio.Queue()

        def _forward(device: DiscoveredDevice) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, device)

        logger.debug("Browsing %s for %.2fs", MDNS_SERVICE_TYPE, self._timeout)
        try:
            zeroconf = Zeroconf()
        except OSError as exc:
            raise ScanError(
                "mDNS discovery is unavailable", {"error": str(exc)}
            ) from exc

        listener = WledListener(self._timeout, _forward)
        found = 0
        try:
            ServiceBrowser(zeroconf, MDNS_SERVICE_TYPE, listener)
            deadline = loop.time() + self._timeout
            while (remaining := deadline - loop.time()) > 0:
                try:
                    device = await asyncio.wait_for(queue.get(), timeout=remaining)
                except (asyncio.TimeoutError, TimeoutError):
                    break
                found += 1
                yield device
        finally:
            await asyncio.to_thread(zeroconf.close)

        logger.debug("mDNS scan complete: found %d devices", found)
