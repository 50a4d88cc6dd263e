from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

from wledpro.config import get_settings
from wledpro.core import BaseDeviceClient
from wledpro.errors import Unreachable
from wledpro.models import DeviceReport, DiscoveredDevice
from wledpro.storage import MemoryDeviceStore


class FakeClient(BaseDeviceClient):
    """Answers from a table of address -> report, or raises a scripted error."""

    def __init__(self) -> None:
        self.reports: dict[str, DeviceReport] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self.active = 0
        self.max_active = 0

    def answer(self, address: str, identity: str, name: str = "", **attributes) -> None:
        self.reports[address] = DeviceReport(
            identity=identity, name=name, attributes=attributes
        )

    async def fetch(self, address: str) -> DeviceReport:
        self.calls.append(address)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if address in self.failures:
                raise self.failures[address]
            if address not in self.reports:
                raise Unreachable(f"Cannot reach {address}")
            return self.reports[address]
        finally:
            self.active -= 1


class FakeScanner:
    def __init__(self) -> None:
        self.found: list[DiscoveredDevice] = []
        self.error: Exception | None = None
        self.scans = 0

    async def scan(self) -> AsyncIterator[DiscoveredDevice]:
        self.scans += 1
        for device in self.found:
            await asyncio.sleep(0)
            yield device
        if self.error is not None:
            raise self.error


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("WLEDPRO_CONFIG", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def scanner() -> FakeScanner:
    return FakeScanner()


@pytest.fixture
def store() -> MemoryDeviceStore:
    return MemoryDeviceStore()
