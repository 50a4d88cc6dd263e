from __future__ import annotations

from pathlib import Path

import typer

from wledpro.config import (
    Settings,
    data_dir_from_settings,
    get_settings,
    resolve_config_path,
)
from wledpro.core import (
    DeviceClient,
    DiscoveryScanner,
    MdnsScanner,
    RefreshCoordinator,
    WledHttpClient,
)
from wledpro.errors import StoreCorruptedError
from wledpro.storage import FileDeviceStore


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def build_store(settings: Settings, data_dir: Path | None = None) -> FileDeviceStore:
    path = data_dir or data_dir_from_settings(settings)
    return FileDeviceStore(path)


def load_store_or_exit(settings: Settings) -> FileDeviceStore:
    store = build_store(settings)
    try:
        return store.load()
    except StoreCorruptedError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def build_client(settings: Settings) -> DeviceClient:
    return WledHttpClient.from_config(settings.refresh)


def build_scanner(settings: Settings) -> DiscoveryScanner:
    return MdnsScanner.from_config(settings.scanning)


def build_coordinator(settings: Settings, store: FileDeviceStore) -> RefreshCoordinator:
    return RefreshCoordinator(
        store,
        build_client(settings),
        build_scanner(settings),
        max_in_flight=settings.refresh.max_in_flight,
    )
