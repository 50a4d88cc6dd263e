from __future__ import annotations

from collections import Counter

import typer
from rich.console import Console

from wledpro.cli.helpers import (
    load_settings_or_exit,
    load_store_or_exit,
    resolve_config_path_or_exit,
)


def register(app: typer.Typer) -> None:
    @app.command()
    def info() -> None:
        """Show wledpro data directory info and stats."""
        settings = load_settings_or_exit()
        store = load_store_or_exit(settings)
        devices = store.list()

        config_path, config_exists = resolve_config_path_or_exit(allow_missing=True)

        console = Console()

        console.print("[bold]wledpro Info[/bold]\n")
        console.print(f"Data directory: {store.path}")
        console.print(f"Device registry: {store.devices_path}")
        console.print(f"Config file: {config_path if config_exists else 'defaults'}")

        console.print("\n[bold]Configuration[/bold]")
        console.print(f"Discovery timeout: {settings.scanning.timeout}s")
        console.print(f"Refresh interval: {settings.refresh.interval}s")
        console.print(f"Max parallel refreshes: {settings.refresh.max_in_flight}")
        console.print(f"Request timeout: {settings.refresh.request_timeout}s")

        console.print("\n[bold]Statistics[/bold]")
        console.print(f"Devices: {len(devices)}")
        console.print(f"Hidden: {sum(1 for device in devices if device.hidden)}")

        refreshed = [device.last_refresh for device in devices if device.last_refresh]
        if refreshed:
            console.print(f"Last successful refresh: {max(refreshed)}")
        else:
            console.print("No successful refresh recorded yet")

        versions = Counter(
            str(device.attributes.get("version") or "unknown") for device in devices
        )
        for version, count in sorted(versions.items()):
            console.print(f"  Firmware {version}: {count}")
