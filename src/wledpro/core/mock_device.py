"""Mock WLED controller for development and testing.

Serves the subset of the WLED JSON API that wledpro reads (``/json``,
``/json/si``, ``/json/state``, ``/json/info``) as a FastAPI app run by uvicorn,
and optionally advertises itself over mDNS.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from dataclasses import dataclass, field
from typing import Any, Literal

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel
from zeroconf import ServiceInfo, Zeroconf

from .scanner import MDNS_SERVICE_TYPE

logger = logging.getLogger(__name__)


class SegmentUpdate(BaseModel):
    fx: int | None = None
    pal: int | None = None


class StateUpdate(BaseModel):
    """Body of ``POST /json/state``; ``on="t"`` toggles like real firmware."""

    on: Literal["t"] | bool | None = None
    bri: int | None = None
    seg: list[SegmentUpdate] = []


@dataclass
class MockWledDevice:
    """Mock WLED controller with a single segment."""

    name: str = "WLED Mock"
    mac_address: str = "aabbccddeeff"
    version: str = "0.14.4"
    led_count: int = 30
    host: str = "0.0.0.0"
    port: int = 8080

    on: bool = True
    brightness: int = 128
    effect: int = 0
    palette: int = 0

    _app: FastAPI | None = field(default=None, repr=False)
    _server: uvicorn.Server | None = field(default=None, repr=False)
    _serve_task: asyncio.Task[None] | None = field(default=None, repr=False)
    _zeroconf: Zeroconf | None = field(default=None, repr=False)
    _service: ServiceInfo | None = field(default=None, repr=False)

    def state(self) -> dict[str, Any]:
        return {
            "on": self.on,
            "bri": self.brightness,
            "seg": [
                {
                    "id": 0,
                    "start": 0,
                    "stop": self.led_count,
                    "fx": self.effect,
                    "pal": self.palette,
                }
            ],
        }

    def info(self) -> dict[str, Any]:
        return {
            "ver": self.version,
            "name": self.name,
            "mac": self.mac_address,
            "arch": "esp32",
            "product": "FOSS",
            "leds": {"count": self.led_count},
            "wifi": {"signal": 100},
            "uptime": 0,
        }

    @property
    def app(self) -> FastAPI:
        if self._app is None:
            self._app = self._build_app()
        return self._app

    def _build_app(self) -> FastAPI:
        app = FastAPI(title=f"WLED mock '{self.name}'")

        @app.get("/json")
        @app.get("/json/si")
        def state_info() -> dict[str, Any]:
            return {"state": self.state(), "info": self.info()}

        @app.get("/json/state")
        def get_state() -> dict[str, Any]:
            return self.state()

        @app.get("/json/info")
        def get_info() -> dict[str, Any]:
            return self.info()

        @app.post("/json")
        @app.post("/json/state")
        def set_state(update: StateUpdate) -> dict[str, Any]:
            self.apply_state(update)
            return {"success": True}

        return app

    def apply_state(self, update: StateUpdate) -> None:
        if update.on == "t":
            self.on = not self.on
        elif update.on is not None:
            self.on = update.on
        if update.bri is not None:
            self.brightness = max(0, min(255, update.bri))
        if update.seg:
            first = update.seg[0]
            if first.fx is not None:
                self.effect = first.fx
            if first.pal is not None:
                self.palette = first.pal
        logger.info("State changed: on=%s bri=%d", self.on, self.brightness)

    async def start(self, advertise: bool = False) -> None:
        """Start serving; with ``advertise`` also register on mDNS."""
        config = uvicorn.Config(
            self.app, host=self.host, port=self.port, log_level="warning"
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve())
        while not self._server.started:
            if self._serve_task.done():
                # surfaces bind errors raised during startup
                await self._serve_task
                raise RuntimeError(f"Mock device could not listen on {self.port}")
            await asyncio.sleep(0.01)

        sockets = [sock for server in self._server.servers for sock in server.sockets]
        if sockets:
            self.port = sockets[0].getsockname()[1]
        logger.info("Mock device '%s' listening on port %d", self.name, self.port)
        if advertise:
            await asyncio.to_thread(self._advertise)

    async def stop(self) -> None:
        if self._zeroconf is not None:
            zeroconf, self._zeroconf = self._zeroconf, None
            if self._service is not None:
                await asyncio.to_thread(zeroconf.unregister_service, self._service)
            await asyncio.to_thread(zeroconf.close)
        server, task = self._server, self._serve_task
        self._server, self._serve_task = None, None
        if server is not None and task is not None:
            server.should_exit = True
            await task
            logger.info("Mock device '%s' stopped", self.name)

    async def run_forever(self, advertise: bool = False) -> None:
        await self.start(advertise=advertise)
        try:
            if self._serve_task is not None:
                await asyncio.shield(self._serve_task)
        finally:
            await self.stop()

    def _advertise(self) -> None:
        instance = f"wled-{self.mac_address[-6:]}"
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            local_ip = sock.getsockname()[0]
        self._service = ServiceInfo(
            MDNS_SERVICE_TYPE,
            f"{instance}.{MDNS_SERVICE_TYPE}",
            addresses=[socket.inet_aton(local_ip)],
            port=self.port,
            properties={"mac": self.mac_address},
            server=f"{instance}.local.",
        )
        self._zeroconf = Zeroconf()
        self._zeroconf.register_service(self._service)
        logger.info("Advertising %s on %s:%d", instance, local_ip, self.port)


async def run_mock_device(
    name: str = "WLED Mock",
    port: int = 8080,
    mac_address: str = "aabbccddeeff",
    advertise: bool = True,
) -> None:
    """Run a mock WLED controller until cancelled."""
    device = MockWledDevice(name=name, port=port, mac_address=mac_address)
    await device.run_forever(advertise=advertise)
