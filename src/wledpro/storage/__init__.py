from __future__ import annotations

from .base import BaseDeviceStore, DeviceStore
from .database import DEVICES_FILE, FileDeviceStore
from .memory import MemoryDeviceStore

__all__ = [
    "DEVICES_FILE",
    "BaseDeviceStore",
    "DeviceStore",
    "FileDeviceStore",
    "MemoryDeviceStore",
]
