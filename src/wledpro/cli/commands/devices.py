from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Annotated, get_args

import typer
from rich.console import Console

from wledpro.cli.helpers import (
    build_coordinator,
    load_settings_or_exit,
    load_store_or_exit,
)
from wledpro.cli.render import device_lists
from wledpro.config import SortKey
from wledpro.core import FilterSortConfig, RegistryView
from wledpro.errors import DeviceError, NotFound, PersistenceError
from wledpro.models import normalize_identity
from wledpro.utils.redaction import Redactor


def list_devices(
    show_hidden: Annotated[
        bool | None,
        typer.Option(
            "--show-hidden/--hide-hidden",
            help="Include hidden devices (default from config)",
        ),
    ] = None,
    sort_by: Annotated[
        str | None,
        typer.Option("--sort", help="name, address, identity or last_refresh"),
    ] = None,
    descending: Annotated[bool, typer.Option("--desc", help="Reverse order")] = False,
    refresh: Annotated[
        bool,
        typer.Option(
            "--refresh/--no-refresh",
            help="Refresh all devices first; --no-refresh shows stored state only",
        ),
    ] = True,
    redact: Annotated[
        bool, typer.Option("--redact", help="Redact sensitive values in output")
    ] = False,
) -> None:
    """List known devices, online first, then offline."""
    settings = load_settings_or_exit()
    store = load_store_or_exit(settings)

    console = Console()

    config = FilterSortConfig.from_display(settings.display)
    updates: dict[str, object] = {"descending": descending}
    if show_hidden is not None:
        updates["show_hidden_devices"] = show_hidden
    if sort_by is not None:
        if sort_by not in get_args(SortKey):
            console.print(f"[red]Invalid sort key:[/red] {sort_by}")
            raise typer.Exit(1)
        updates["sort_by"] = sort_by
    config = config.model_copy(update=updates)

    if not len(store):
        console.print("No devices known yet.")
        console.print(
            "Use 'wledpro scan' to discover devices or 'wledpro add ADDRESS'."
        )
        return

    if refresh:
        coordinator = build_coordinator(settings, store)
        asyncio.run(coordinator.refresh_all())

    online, offline = RegistryView(store, config).partition()
    console.print(device_lists(online, offline, Redactor(enabled=redact)))

    hidden = sum(1 for device in store.list() if device.hidden)
    if hidden and not config.show_hidden_devices:
        console.print(f"[dim]{hidden} hidden device(s) not shown (--show-hidden)[/dim]")


def add_device(
    address: str = typer.Argument(..., help="Hostname or IP of the controller"),
) -> None:
    """Add a device by address; it must answer to be added."""
    settings = load_settings_or_exit()
    store = load_store_or_exit(settings)
    coordinator = build_coordinator(settings, store)

    console = Console()
    try:
        device = asyncio.run(coordinator.add_device(address))
    except DeviceError as exc:
        console.print(f"[red]Could not add {address}:[/red] {exc}")
        raise typer.Exit(1) from None
    except PersistenceError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from None

    console.print(
        f"[green]✓[/green] Added '{device.display_name}' "
        f"({device.identity}) at {address}"
    )


def _run_action(
    action: str, identity: str, coro_factory: Callable[[], Awaitable[object]]
) -> None:
    console = Console()
    try:
        asyncio.run(coro_factory())
    except NotFound:
        console.print(f"[yellow]![/yellow] Device '{identity}' not found")
        raise typer.Exit(1) from None
    except PersistenceError as exc:
        console.print(f"[red]Could not {action} '{identity}':[/red] {exc}")
        raise typer.Exit(1) from None


def remove_device(
    identity: str = typer.Argument(..., help="Device identity (MAC)"),
) -> None:
    """Remove a device from the registry."""
    settings = load_settings_or_exit()
    store = load_store_or_exit(settings)
    coordinator = build_coordinator(settings, store)
    identity = normalize_identity(identity)

    _run_action("remove", identity, lambda: coordinator.delete_device(identity))
    Console().print(f"[green]✓[/green] Removed device '{identity}'")


def _set_hidden(identity: str, hidden: bool) -> None:
    settings = load_settings_or_exit()
    store = load_store_or_exit(settings)
    coordinator = build_coordinator(settings, store)
    identity = normalize_identity(identity)

    action = "hide" if hidden else "unhide"
    _run_action(action, identity, lambda: coordinator.set_hidden(identity, hidden))
    verb = "Hid" if hidden else "Unhid"
    Console().print(f"[green]✓[/green] {verb} device '{identity}'")


def hide_device(
    identity: str = typer.Argument(..., help="Device identity (MAC)"),
) -> None:
    """Hide a device from the default listing."""
    _set_hidden(identity, True)


def unhide_device(
    identity: str = typer.Argument(..., help="Device identity (MAC)"),
) -> None:
    """Show a hidden device in the default listing again."""
    _set_hidden(identity, False)


def rename_device(
    identity: str = typer.Argument(..., help="Device identity (MAC)"),
    name: str | None = typer.Argument(None, help="New display name"),
    reset: bool = typer.Option(
        False, "--reset", help="Go back to the name the device reports"
    ),
) -> None:
    """Give a device a custom display name."""
    console = Console()
    if name is None and not reset:
        console.print("[red]Pass a NAME or --reset[/red]")
        raise typer.Exit(1)

    settings = load_settings_or_exit()
    store = load_store_or_exit(settings)
    coordinator = build_coordinator(settings, store)
    identity = normalize_identity(identity)

    new_name = None if reset else name
    _run_action(
        "rename", identity, lambda: coordinator.rename_device(identity, new_name)
    )
    if new_name is None:
        console.print(f"[green]✓[/green] '{identity}' uses its reported name again")
    else:
        console.print(f"[green]✓[/green] Renamed '{identity}' → '{new_name}'")


def register(app: typer.Typer) -> None:
    app.command("list")(list_devices)
    app.command("add")(add_device)
    app.command("remove")(remove_device)
    app.command("hide")(hide_device)
    app.command("unhide")(unhide_device)
    app.command("rename")(rename_device)
