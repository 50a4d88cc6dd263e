from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from wledpro.cli import helpers
from wledpro.cli.app import app
from wledpro.config import (
    CONFIG_ENV_VAR,
    DatabaseConfig,
    Settings,
    write_settings,
)
from wledpro.models import DiscoveredDevice
from wledpro.storage import FileDeviceStore

runner = CliRunner()

MAC = "aabbccddeeff"


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, client, scanner) -> Path:
    data_dir = tmp_path / "data"
    config_path = tmp_path / "config.toml"
    write_settings(Settings(database=DatabaseConfig(path=str(data_dir))), config_path)
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_path))
    monkeypatch.setenv("COLUMNS", "200")
    monkeypatch.setenv("LOGLEVEL", "WARNING")
    monkeypatch.setattr(helpers, "build_client", lambda settings: client)
    monkeypatch.setattr(helpers, "build_scanner", lambda settings: scanner)
    return data_dir


def _seed(data_dir: Path, **fields) -> FileDeviceStore:
    store = FileDeviceStore(data_dir)
    store.upsert(MAC, address="10.0.0.5", **fields)
    return store


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert "wledpro version" in result.stdout


def test_list_without_devices(data_dir):
    result = runner.invoke(app, ["list"])

    assert result.exit_code == 0
    assert "No devices known yet." in result.stdout


def test_add_then_list(data_dir, client):
    client.answer("10.0.0.5", MAC, name="Desk Lamp", version="0.14.4")

    added = runner.invoke(app, ["add", "10.0.0.5"])
    listed = runner.invoke(app, ["list"])

    assert added.exit_code == 0
    assert "Desk Lamp" in added.stdout
    assert listed.exit_code == 0
    assert "Desk Lamp" in listed.stdout
    assert "online" in listed.stdout
    assert "Offline Devices" not in listed.stdout
    assert FileDeviceStore(data_dir).load().get(MAC).address == "10.0.0.5"


def test_add_unreachable_device(data_dir):
    result = runner.invoke(app, ["add", "10.0.0.99"])

    assert result.exit_code == 1
    assert "Could not add" in result.stdout
    assert FileDeviceStore(data_dir).load().list() == ()


def test_list_rejects_unknown_sort_key(data_dir):
    _seed(data_dir, name="Desk")

    result = runner.invoke(app, ["list", "--sort", "colour"])

    assert result.exit_code == 1


def test_hidden_devices_are_not_listed_by_default(data_dir):
    _seed(data_dir, name="Shelf")

    hidden = runner.invoke(app, ["hide", "AA:BB:CC:DD:EE:FF"])
    default = runner.invoke(app, ["list"])
    everything = runner.invoke(app, ["list", "--show-hidden"])

    assert hidden.exit_code == 0
    assert "Shelf" not in default.stdout
    assert "1 hidden device(s)" in default.stdout
    assert "Shelf" in everything.stdout
    assert FileDeviceStore(data_dir).load().get(MAC).hidden is True


def test_remove_device(data_dir):
    _seed(data_dir)

    removed = runner.invoke(app, ["remove", MAC])
    again = runner.invoke(app, ["remove", MAC])

    assert removed.exit_code == 0
    assert FileDeviceStore(data_dir).load().get(MAC) is None
    assert again.exit_code == 1
    assert "not found" in again.stdout


def test_rename_and_reset(data_dir):
    _seed(data_dir, name="WLED")

    renamed = runner.invoke(app, ["rename", MAC, "Kitchen"])
    device = FileDeviceStore(data_dir).load().get(MAC)
    assert renamed.exit_code == 0
    assert device.name == "Kitchen"
    assert device.custom_name is True

    reset = runner.invoke(app, ["rename", MAC, "--reset"])
    assert reset.exit_code == 0
    assert FileDeviceStore(data_dir).load().get(MAC).custom_name is False

    assert runner.invoke(app, ["rename", MAC]).exit_code == 1


def test_refresh_reports_outcomes(data_dir, client):
    _seed(data_dir, name="Desk")
    client.answer("10.0.0.5", MAC, name="Desk", brightness=42)

    result = runner.invoke(app, ["refresh"])

    assert result.exit_code == 0
    assert "1/1 device(s) online" in result.stdout
    device = FileDeviceStore(data_dir).load().get(MAC)
    assert device.attributes == {"brightness": 42}
    assert device.last_refresh is not None


def test_refresh_offline_device(data_dir):
    _seed(data_dir, name="Desk")

    result = runner.invoke(app, ["refresh", MAC])

    assert result.exit_code == 0
    assert "0/1 device(s) online" in result.stdout


def test_scan_merges_discovered_devices(data_dir, client, scanner):
    scanner.found = [
        DiscoveredDevice(identity=MAC, address="10.0.0.7", name="wled-porch")
    ]
    client.answer("10.0.0.7", MAC, name="Porch")

    result = runner.invoke(app, ["scan"])

    assert result.exit_code == 0
    assert "Found 1 device(s), 1 new" in result.stdout
    device = FileDeviceStore(data_dir).load().get(MAC)
    assert device.name == "Porch"
    assert device.address == "10.0.0.7"


def test_scan_redacts_addresses(data_dir, scanner):
    scanner.found = [
        DiscoveredDevice(identity=MAC, address="10.0.0.7", name="wled-porch")
    ]

    result = runner.invoke(app, ["scan", "--no-refresh", "--redact"])

    assert result.exit_code == 0
    assert "x.x.x.7" in result.stdout
    assert "10.0.0.7" not in result.stdout
    assert MAC not in result.stdout


def test_watch_stops_after_ticks(data_dir, client):
    _seed(data_dir, name="Desk")
    client.answer("10.0.0.5", MAC, name="Desk")

    result = runner.invoke(app, ["watch", "--ticks", "1", "--interval", "0.01"])

    assert result.exit_code == 0
    assert client.calls
    assert FileDeviceStore(data_dir).load().get(MAC).last_refresh is not None


def test_corrupted_store_exits(data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "devices.json").write_text("{broken")

    result = runner.invoke(app, ["list"])

    assert result.exit_code == 1


def test_config_show(data_dir):
    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    assert "[refresh]" in result.stdout
    assert str(data_dir) in result.stdout


def test_init_creates_config_and_data_dir(tmp_path: Path, monkeypatch):
    config_path = tmp_path / "config.toml"
    data_dir = tmp_path / "data"
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_path))

    result = runner.invoke(app, ["init", "--data-dir", str(data_dir)])

    assert result.exit_code == 0
    assert config_path.exists()
    assert (data_dir / "devices.json").exists()


def test_list_refreshes_before_showing(data_dir, client):
    store = _seed(data_dir, name="Desk")
    store.upsert("112233445566", address="10.0.0.6")
    client.answer("10.0.0.5", MAC, name="Desk")

    listed = runner.invoke(app, ["list"])

    assert listed.exit_code == 0
    online, _, offline = listed.stdout.partition("Offline Devices")
    assert "Desk" in online
    assert "112233445566" in offline
    assert sorted(client.calls) == ["10.0.0.5", "10.0.0.6"]


def test_list_without_refresh_shows_stored_state(data_dir, client):
    _seed(data_dir, name="Desk")
    client.answer("10.0.0.5", MAC, name="Desk")

    listed = runner.invoke(app, ["list", "--no-refresh"])

    assert listed.exit_code == 0
    assert client.calls == []
    assert "unknown" in listed.stdout.partition("Offline Devices")[2]
