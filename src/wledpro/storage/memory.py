from __future__ import annotations

from collections.abc import Iterable

from wledpro.models import Device

from .base import BaseDeviceStore


class MemoryDeviceStore(BaseDeviceStore):
    """Store that keeps records in process memory only."""

    def __init__(self, devices: Iterable[Device] = ()) -> None:
        super().__init__()
        self._records = {device.identity: device for device in devices}

    def _commit(self, records: dict[str, Device]) -> None:
        return None
