"""Filtered and sorted views over a registry snapshot.

Everything here is a pure function of ``(devices, config)``; nothing is cached.
Readers take a fresh ``store.list()`` snapshot on every call.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel

from wledpro.config import DisplayConfig, SortKey
from wledpro.models import Device
from wledpro.storage import DeviceStore

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class FilterSortConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    show_hidden_devices: bool = False
    sort_by: SortKey = "name"
    descending: bool = False

    @classmethod
    def from_display(cls, display: DisplayConfig) -> FilterSortConfig:
        return cls(
            show_hidden_devices=display.show_hidden_devices, sort_by=display.sort_by
        )


def _sort_value(device: Device, sort_by: SortKey) -> Any:
    if sort_by == "name":
        return device.display_name.casefold()
    if sort_by == "address":
        return device.address
    if sort_by == "last_refresh":
        return device.last_refresh or _EPOCH
    return device.identity


def _select(
    devices: Iterable[Device],
    config: FilterSortConfig,
    predicate: Callable[[Device], bool],
) -> list[Device]:
    selected = [
        device
        for device in devices
        if predicate(device) and (config.show_hidden_devices or not device.hidden)
    ]
    # identity breaks ties so equal keys still give a deterministic order
    selected.sort(key=lambda device: device.identity)
    selected.sort(
        key=lambda device: _sort_value(device, config.sort_by),
        reverse=config.descending,
    )
    return selected


def compute_online(devices: Iterable[Device], config: FilterSortConfig) -> list[Device]:
    return _select(devices, config, lambda device: device.online)


def compute_offline(
    devices: Iterable[Device], config: FilterSortConfig
) -> list[Device]:
    """Devices not currently online: offline, never refreshed, or refreshing."""
    return _select(devices, config, lambda device: not device.online)


class RegistryView:
    """Binds the view functions to a store and a mutable display config."""

    def __init__(
        self, store: DeviceStore, config: FilterSortConfig | None = None
    ) -> None:
        self._store = store
        self.config = config or FilterSortConfig()

    def online(self) -> list[Device]:
        return compute_online(self._store.list(), self.config)

    def offline(self) -> list[Device]:
        return compute_offline(self._store.list(), self.config)

    def partition(self) -> tuple[list[Device], list[Device]]:
        """Online and offline lists computed from one snapshot."""
        snapshot = self._store.list()
        online = compute_online(snapshot, self.config)
        return online, compute_offline(snapshot, self.config)

    def toggle_hidden(self) -> bool:
        self.config = self.config.model_copy(
            update={"show_hidden_devices": not self.config.show_hidden_devices}
        )
        return self.config.show_hidden_devices
