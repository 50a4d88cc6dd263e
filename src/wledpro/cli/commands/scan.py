from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.table import Table

from wledpro.cli.helpers import (
    build_coordinator,
    load_settings_or_exit,
    load_store_or_exit,
)
from wledpro.cli.render import outcome_table
from wledpro.errors import PersistenceError, ScanError
from wledpro.utils.redaction import Redactor

logger = logging.getLogger(__name__)


def scan(
    refresh: bool = typer.Option(
        True,
        "--refresh/--no-refresh",
        help="Refresh every known device after discovery",
    ),
    redact: bool = typer.Option(
        False,
        "--redact",
        help="Redact sensitive values in output",
    ),
) -> None:
    """Discover WLED devices via mDNS and merge them into the registry."""
    console = Console()

    settings = load_settings_or_exit()
    store = load_store_or_exit(settings)
    coordinator = build_coordinator(settings, store)

    console.print("Discovering WLED devices via mDNS...")
    logger.info("mDNS discovery settings: timeout=%.2fs", settings.scanning.timeout)

    try:
        if refresh:
            report = asyncio.run(coordinator.scan_and_refresh())
        else:
            report = asyncio.run(coordinator.scan_only())
    except ScanError as exc:
        console.print(f"[red]Scan failed:[/red] {exc}")
        raise typer.Exit(1) from None
    except PersistenceError as exc:
        console.print(f"[red]Could not save scan results:[/red] {exc}")
        raise typer.Exit(1) from None

    redactor = Redactor(enabled=redact)

    if not report.discovered:
        console.print("No WLED devices found.")
    else:
        added = set(report.added)
        table = Table()
        table.add_column("Address", style="cyan")
        table.add_column("mDNS name", style="green")
        table.add_column("Identity")
        table.add_column("")
        for found in report.discovered:
            table.add_row(
                redactor.redact_address(found.address),
                found.name,
                redactor.redact_mac(found.identity),
                "[yellow]new[/yellow]" if found.identity in added else "",
            )
        console.print(table)
        console.print(
            f"\n[green]Found {len(report.discovered)} device(s), "
            f"{len(report.added)} new[/green]"
        )

    if report.outcomes:
        devices = {device.identity: device for device in store.list()}
        console.print(outcome_table(report.outcomes, devices, redactor))


def register(app: typer.Typer) -> None:
    app.command()(scan)
