"""Device record store interface and the shared transactional core."""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol

from wledpro.errors import NotFound
from wledpro.models import Device

logger = logging.getLogger(__name__)


class DeviceStore(Protocol):
    """Capability interface every storage backend provides."""

    def upsert(self, identity: str, **fields: Any) -> Device: ...

    def update(self, identity: str, **fields: Any) -> Device: ...

    def delete(self, identity: str) -> None: ...

    def get(self, identity: str) -> Device | None: ...

    def list(self) -> tuple[Device, ...]: ...


class BaseDeviceStore:
    """In-memory records plus a ``_commit`` hook for durable backends.

    Every mutation builds the next record map off to the side and hands it to
    ``_commit``. The in-memory map is only swapped in after ``_commit``
    returns, so a failed write (``PersistenceError``) leaves readers on the
    previous state.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, Device] = {}

    def _commit(self, records: dict[str, Device]) -> None:
        raise NotImplementedError

    @staticmethod
    def _merge(
        existing: Device | None, identity: str, fields: dict[str, Any]
    ) -> Device:
        if fields.get("identity", identity) != identity:
            raise ValueError(
                f"Cannot change identity of '{identity}' to '{fields['identity']}'"
            )
        base = existing.model_dump() if existing is not None else {}
        return Device.model_validate({**base, **fields, "identity": identity})

    def _apply(self, identity: str, device: Device | None) -> None:
        # caller holds the lock
        records = dict(self._records)
        if device is None:
            records.pop(identity)
        else:
            records[identity] = device
        self._commit(records)
        self._records = records

    def upsert(self, identity: str, **fields: Any) -> Device:
        """Create ``identity`` or merge ``fields`` into the stored record.

        Fields that are not passed keep their stored value, so a merge never
        loses the hidden flag or the custom name.
        """
        with self._lock:
            existing = self._records.get(identity)
            device = self._merge(existing, identity, fields)
            if device != existing:
                self._apply(identity, device)
                logger.debug(
                    "%s device %s", "Updated" if existing else "Added", identity
                )
        return device

    def update(self, identity: str, **fields: Any) -> Device:
        """Merge ``fields`` into an existing record; ``NotFound`` otherwise."""
        with self._lock:
            existing = self._records.get(identity)
            if existing is None:
                raise NotFound(identity)
            device = self._merge(existing, identity, fields)
            if device != existing:
                self._apply(identity, device)
        return device

    def delete(self, identity: str) -> None:
        with self._lock:
            if identity not in self._records:
                raise NotFound(identity)
            self._apply(identity, None)
        logger.debug("Deleted device %s", identity)

    def get(self, identity: str) -> Device | None:
        with self._lock:
            return self._records.get(identity)

    def list(self) -> tuple[Device, ...]:
        with self._lock:
            return tuple(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._records
