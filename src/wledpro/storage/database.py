from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from wledpro.errors import PersistenceError, StoreCorruptedError
from wledpro.models import Device

from .base import BaseDeviceStore

logger = logging.getLogger(__name__)

DEVICES_FILE = "devices.json"
DOCUMENT_VERSION = 1

# status is volatile and reloads as unknown
_VOLATILE_FIELDS = {"status"}


def _render_document(records: dict[str, Device]) -> str:
    devices = [
        device.model_dump(mode="json", exclude=_VOLATILE_FIELDS)
        for _, device in sorted(records.items())
    ]
    return json.dumps({"version": DOCUMENT_VERSION, "devices": devices}, indent=2)


class FileDeviceStore(BaseDeviceStore):
    """Device records kept in a JSON document inside the data directory.

    Writes go to a temporary file in the same directory which then replaces
    the document, so a crash mid-write never leaves a truncated file.
    """

    def __init__(self, data_dir: Path) -> None:
        super().__init__()
        self._data_dir = data_dir
        self._devices_path = data_dir / DEVICES_FILE
        self._written: str | None = None

    @property
    def path(self) -> Path:
        return self._data_dir

    @property
    def devices_path(self) -> Path:
        return self._devices_path

    def ensure_dirs(self) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def init(self, force: bool = False) -> bool:
        """Create the data directory and an empty document.

        Returns True when a document was written.
        """
        self.ensure_dirs()
        if self._devices_path.exists() and not force:
            return False
        with self._lock:
            self._commit({})
            self._records = {}
        return True

    def load(self) -> FileDeviceStore:
        """Read the document from disk, replacing in-memory records."""
        if not self._devices_path.exists():
            logger.debug("No device document at %s", self._devices_path)
            return self

        try:
            raw = self._devices_path.read_text()
            data = json.loads(raw)
            devices = [Device.model_validate(item) for item in data.get("devices", [])]
        except (OSError, json.JSONDecodeError, AttributeError) as exc:
            raise StoreCorruptedError(
                f"Cannot read devices file: {self._devices_path}",
                {"error": str(exc)},
            ) from exc
        except ValidationError as exc:
            raise StoreCorruptedError(
                f"Invalid devices file: {self._devices_path}\n{exc}"
            ) from exc

        with self._lock:
            self._records = {device.identity: device for device in devices}
            self._written = raw
        logger.debug("Loaded %d device(s) from %s", len(devices), self._devices_path)
        return self

    def _commit(self, records: dict[str, Device]) -> None:
        document = _render_document(records)
        if document == self._written:
            return

        try:
            self.ensure_dirs()
            fd, tmp_name = tempfile.mkstemp(
                dir=self._data_dir, prefix=".devices-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w") as handle:
                    handle.write(document)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self._devices_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.error("Failed to write %s: %s", self._devices_path, exc)
            raise PersistenceError(
                f"Failed to save devices to {self._devices_path}",
                {"error": str(exc)},
            ) from exc

        self._written = document
