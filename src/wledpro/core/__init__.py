from __future__ import annotations

from .client import BaseDeviceClient, DeviceClient, WledHttpClient, parse_state_info
from .coordinator import (
    EventKind,
    RefreshCoordinator,
    RefreshOutcome,
    RegistryEvent,
    ScanReport,
)
from .mock_device import MockWledDevice, run_mock_device
from .scanner import DiscoveryScanner, MdnsScanner
from .scheduler import RefreshScheduler
from .view import FilterSortConfig, RegistryView, compute_offline, compute_online

__all__ = [
    "BaseDeviceClient",
    "DeviceClient",
    "DiscoveryScanner",
    "EventKind",
    "FilterSortConfig",
    "MdnsScanner",
    "MockWledDevice",
    "RefreshCoordinator",
    "RefreshOutcome",
    "RefreshScheduler",
    "RegistryEvent",
    "RegistryView",
    "ScanReport",
    "WledHttpClient",
    "compute_offline",
    "compute_online",
    "parse_state_info",
    "run_mock_device",
]
