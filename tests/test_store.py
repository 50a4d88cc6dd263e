"""Tests for the device record stores."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone

import pytest

from wledpro.errors import NotFound, PersistenceError, StoreCorruptedError
from wledpro.models import Device, DeviceStatus
from wledpro.storage import FileDeviceStore, MemoryDeviceStore


class FailingStore(MemoryDeviceStore):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.fail = False

    def _commit(self, records):
        if self.fail:
            raise PersistenceError("disk full")


def test_upsert_creates_with_defaults(store):
    device = store.upsert("aabbccddeeff", address="10.0.0.5")

    assert device.hidden is False
    assert device.status is DeviceStatus.UNKNOWN
    assert store.get("aabbccddeeff") == device


def test_upsert_merge_keeps_hidden_flag(store):
    store.upsert("aabbccddeeff", address="10.0.0.5", hidden=True)
    merged = store.upsert("aabbccddeeff", address="10.0.0.9")

    assert merged.hidden is True
    assert merged.address == "10.0.0.9"
    assert merged.identity == "aabbccddeeff"


def test_upsert_twice_is_idempotent(store):
    store.upsert("aabbccddeeff", address="10.0.0.5", attributes={"version": "0.14"})
    first = store.list()
    store.upsert("aabbccddeeff", address="10.0.0.5", attributes={"version": "0.14"})

    assert store.list() == first


def test_upsert_rejects_identity_change(store):
    store.upsert("aabbccddeeff", address="10.0.0.5")

    with pytest.raises(ValueError):
        store.upsert("aabbccddeeff", identity="112233445566")


def test_update_requires_existing_record(store):
    with pytest.raises(NotFound):
        store.update("aabbccddeeff", status=DeviceStatus.ONLINE)
    assert store.get("aabbccddeeff") is None


def test_delete_is_terminal(store):
    store.upsert("aabbccddeeff", address="10.0.0.5")
    store.delete("aabbccddeeff")

    assert store.get("aabbccddeeff") is None
    with pytest.raises(NotFound):
        store.delete("aabbccddeeff")


def test_list_returns_snapshot(store):
    store.upsert("a", address="10.0.0.1")
    snapshot = store.list()
    store.upsert("b", address="10.0.0.2")

    assert isinstance(snapshot, tuple)
    assert [device.identity for device in snapshot] == ["a"]
    assert len(store) == 2


def test_failed_delete_leaves_device():
    store = FailingStore([Device(identity="a", address="10.0.0.1")])
    store.fail = True

    with pytest.raises(PersistenceError):
        store.delete("a")
    assert store.get("a") is not None


def test_failed_upsert_leaves_prior_state():
    store = FailingStore([Device(identity="a", address="10.0.0.1", name="Desk")])
    store.fail = True

    with pytest.raises(PersistenceError):
        store.upsert("a", name="Kitchen")
    assert store.get("a").name == "Desk"


def test_file_store_roundtrip(tmp_path):
    store = FileDeviceStore(tmp_path)
    refreshed = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    store.upsert(
        "aabbccddeeff",
        address="10.0.0.5",
        name="Desk",
        hidden=True,
        status=DeviceStatus.ONLINE,
        last_refresh=refreshed,
        attributes={"version": "0.14.4", "brightness": 128},
    )

    loaded = FileDeviceStore(tmp_path).load()
    device = loaded.get("aabbccddeeff")

    assert device is not None
    assert device.hidden is True
    assert device.name == "Desk"
    assert device.last_refresh == refreshed
    assert device.attributes == {"version": "0.14.4", "brightness": 128}
    # reachability is not persisted
    assert device.status is DeviceStatus.UNKNOWN


def test_file_store_delete_persists(tmp_path):
    store = FileDeviceStore(tmp_path)
    store.upsert("a", address="10.0.0.1")
    store.upsert("b", address="10.0.0.2")
    store.delete("a")

    loaded = FileDeviceStore(tmp_path).load()
    assert [device.identity for device in loaded.list()] == ["b"]


def test_file_store_write_failure_keeps_state(tmp_path, monkeypatch):
    store = FileDeviceStore(tmp_path)
    store.upsert("a", address="10.0.0.1")
    before = store.devices_path.read_text()

    def _broken_replace(src, dst):
        raise OSError("read-only file system")

    monkeypatch.setattr(os, "replace", _broken_replace)

    with pytest.raises(PersistenceError):
        store.delete("a")

    assert store.get("a") is not None
    assert store.devices_path.read_text() == before
    assert not list(tmp_path.glob(".devices-*"))


def test_file_store_missing_file_is_empty(tmp_path):
    store = FileDeviceStore(tmp_path / "nothing-here").load()
    assert store.list() == ()


def test_file_store_corrupted_document(tmp_path):
    store = FileDeviceStore(tmp_path)
    store.devices_path.write_text("{not json")

    with pytest.raises(StoreCorruptedError):
        store.load()


def test_file_store_invalid_record(tmp_path):
    store = FileDeviceStore(tmp_path)
    document = {"version": 1, "devices": [{"name": "x"}]}
    store.devices_path.write_text(json.dumps(document))

    with pytest.raises(StoreCorruptedError):
        store.load()


def test_file_store_init(tmp_path):
    store = FileDeviceStore(tmp_path / "data")

    assert store.init() is True
    assert store.devices_path.exists()
    assert store.init() is False
