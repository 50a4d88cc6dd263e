"""wledpro - keep track of WLED lighting controllers on your network."""

from __future__ import annotations

from importlib.metadata import version

from .config import Settings, get_settings
from .core import (
    FilterSortConfig,
    MdnsScanner,
    RefreshCoordinator,
    RefreshScheduler,
    RegistryView,
    WledHttpClient,
    compute_offline,
    compute_online,
)
from .errors import (
    DeviceTimeout,
    NotFound,
    PersistenceError,
    ProtocolError,
    ScanError,
    Unreachable,
    WledproError,
)
from .models import Device, DeviceStatus
from .storage import FileDeviceStore, MemoryDeviceStore

__all__ = [
    "Device",
    "DeviceStatus",
    "DeviceTimeout",
    "FileDeviceStore",
    "FilterSortConfig",
    "MdnsScanner",
    "MemoryDeviceStore",
    "NotFound",
    "PersistenceError",
    "ProtocolError",
    "RefreshCoordinator",
    "RefreshScheduler",
    "RegistryView",
    "ScanError",
    "Settings",
    "Unreachable",
    "WledHttpClient",
    "WledproError",
    "__version__",
    "compute_offline",
    "compute_online",
    "get_settings",
]

__version__ = version("wledpro")
