from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.live import Live

from wledpro.cli.helpers import (
    build_coordinator,
    load_settings_or_exit,
    load_store_or_exit,
)
from wledpro.cli.render import device_lists, outcome_table
from wledpro.core import (
    FilterSortConfig,
    RefreshCoordinator,
    RefreshScheduler,
    RegistryView,
)
from wledpro.models import normalize_identity
from wledpro.utils.redaction import Redactor


def refresh(
    identities: Annotated[
        list[str] | None,
        typer.Argument(help="Device identities to refresh (default: all)"),
    ] = None,
    redact: Annotated[
        bool, typer.Option("--redact", help="Redact sensitive values in output")
    ] = False,
) -> None:
    """Refresh devices now and report what happened to each."""
    settings = load_settings_or_exit()
    store = load_store_or_exit(settings)
    coordinator = build_coordinator(settings, store)

    console = Console()
    if identities:
        targets = [normalize_identity(identity) for identity in identities]
        outcomes = asyncio.run(coordinator.refresh_devices(targets))
    else:
        outcomes = asyncio.run(coordinator.refresh_all())

    if not outcomes:
        console.print("No devices to refresh.")
        return

    devices = {device.identity: device for device in store.list()}
    console.print(outcome_table(outcomes, devices, Redactor(enabled=redact)))

    online = sum(1 for outcome in outcomes.values() if outcome.ok)
    console.print(f"\n{online}/{len(outcomes)} device(s) online")
    if any(outcome.persistence_error for outcome in outcomes.values()):
        raise typer.Exit(1)


async def _watch(
    coordinator: RefreshCoordinator,
    view: RegistryView,
    interval: float,
    redactor: Redactor,
    console: Console,
    max_ticks: int | None,
) -> None:
    changed = asyncio.Event()
    unsubscribe = coordinator.subscribe(lambda _event: changed.set())
    scheduler = RefreshScheduler(coordinator, interval=interval, fire_immediately=True)

    def _render():
        online, offline = view.partition()
        return device_lists(online, offline, redactor, refreshing=coordinator.in_flight)

    scheduler.start()
    try:
        with Live(_render(), console=console, auto_refresh=False) as live:
            while (
                max_ticks is None
                or scheduler.ticks < max_ticks
                or coordinator.in_flight
            ):
                try:
                    await asyncio.wait_for(changed.wait(), timeout=interval)
                except (asyncio.TimeoutError, TimeoutError):
                    pass
                changed.clear()
                live.update(_render(), refresh=True)
    finally:
        unsubscribe()
        await scheduler.stop()
        await coordinator.wait_idle()


def watch(
    interval: Annotated[
        float | None,
        typer.Option(
            "--interval", "-i", help="Seconds between refreshes (default from config)"
        ),
    ] = None,
    ticks: Annotated[
        int | None,
        typer.Option("--ticks", help="Stop after this many refresh rounds"),
    ] = None,
    show_hidden: Annotated[
        bool | None,
        typer.Option("--show-hidden/--hide-hidden", help="Include hidden devices"),
    ] = None,
    redact: Annotated[
        bool, typer.Option("--redact", help="Redact sensitive values in output")
    ] = False,
) -> None:
    """Keep refreshing devices periodically and redraw the list."""
    settings = load_settings_or_exit()
    store = load_store_or_exit(settings)
    coordinator = build_coordinator(settings, store)

    config = FilterSortConfig.from_display(settings.display)
    if show_hidden is not None:
        config = config.model_copy(update={"show_hidden_devices": show_hidden})

    every = interval if interval is not None else settings.refresh.interval
    if every <= 0:
        typer.echo("Interval must be positive", err=True)
        raise typer.Exit(1)

    console = Console()
    if ticks is None:
        console.print(f"Refreshing every {every:g}s. Press Ctrl+C to stop.\n")

    try:
        asyncio.run(
            _watch(
                coordinator,
                RegistryView(store, config),
                every,
                Redactor(enabled=redact),
                console,
                ticks,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[green]Stopped.[/green]")


def register(app: typer.Typer) -> None:
    app.command()(refresh)
    app.command()(watch)
