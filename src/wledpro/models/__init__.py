"""Data models for wledpro."""

from wledpro.models.device import (
    Device,
    DeviceReport,
    DeviceStatus,
    DiscoveredDevice,
    normalize_identity,
)

__all__ = [
    "Device",
    "DeviceReport",
    "DeviceStatus",
    "DiscoveredDevice",
    "normalize_identity",
]
