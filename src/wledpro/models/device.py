from __future__ import annotations

import string
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class DeviceStatus(str, Enum):
    UNKNOWN = "unknown"
    REFRESHING = "refreshing"
    ONLINE = "online"
    OFFLINE = "offline"


def normalize_identity(value: str) -> str:
    """Return a MAC-style identity as 12 lowercase hex chars.

    Values that are not MAC addresses (serials, test ids) are stripped and
    returned unchanged.
    """
    cleaned = value.strip().replace(":", "").replace("-", "").replace(".", "")
    if len(cleaned) == 12 and all(ch in string.hexdigits for ch in cleaned):
        return cleaned.lower()
    return value.strip()


class Device(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    identity: str
    address: str
    name: str = ""
    custom_name: bool = False
    hidden: bool = False
    status: DeviceStatus = DeviceStatus.UNKNOWN
    last_refresh: datetime | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)

    @property
    def online(self) -> bool:
        return self.status is DeviceStatus.ONLINE

    @property
    def display_name(self) -> str:
        return self.name or self.address


class DiscoveredDevice(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    identity: str
    address: str
    name: str = ""
    port: int | None = None
    txt: dict[str, str] = Field(default_factory=dict)


class DeviceReport(BaseModel):
    """State reported by a device in answer to one refresh request."""

    model_config = {"frozen": True, "extra": "forbid"}

    identity: str
    name: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)
