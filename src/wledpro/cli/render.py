from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone

from rich.console import Group
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from wledpro.core import RefreshOutcome
from wledpro.models import Device, DeviceStatus
from wledpro.utils.redaction import Redactor

_STATUS_STYLE = {
    DeviceStatus.ONLINE: "green",
    DeviceStatus.OFFLINE: "red",
    DeviceStatus.UNKNOWN: "dim",
    DeviceStatus.REFRESHING: "yellow",
}


def _age(moment: datetime | None, now: datetime | None = None) -> str:
    if moment is None:
        return "never"
    seconds = int(((now or datetime.now(timezone.utc)) - moment).total_seconds())
    if seconds < 60:
        return f"{max(seconds, 0)}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    return moment.strftime("%Y-%m-%d %H:%M")


def status_text(status: DeviceStatus) -> Text:
    return Text(status.value, style=_STATUS_STYLE[status])


def device_table(
    devices: Iterable[Device],
    redactor: Redactor,
    title: str | None = None,
    refreshing: frozenset[str] = frozenset(),
) -> Table:
    table = Table(title=title, title_justify="left")
    table.add_column("Name", style="cyan")
    table.add_column("Identity")
    table.add_column("Address", style="green")
    table.add_column("Status")
    table.add_column("Version")
    table.add_column("Brightness", justify="right")
    table.add_column("Last refresh")

    for device in devices:
        name = escape(device.display_name)
        if device.hidden:
            name = f"{name} [dim](hidden)[/dim]"
        status = device.status
        if device.identity in refreshing:
            status = DeviceStatus.REFRESHING
        brightness = device.attributes.get("brightness")
        table.add_row(
            name,
            redactor.redact_mac(device.identity),
            redactor.redact_address(device.address),
            status_text(status),
            str(device.attributes.get("version") or ""),
            "" if brightness is None else str(brightness),
            _age(device.last_refresh),
        )
    return table


def device_lists(
    online: list[Device],
    offline: list[Device],
    redactor: Redactor,
    refreshing: frozenset[str] = frozenset(),
) -> Group:
    """Online devices first, then the offline section when it has entries."""
    parts: list[Table | Text] = [device_table(online, redactor, refreshing=refreshing)]
    if offline:
        parts.append(
            device_table(
                offline, redactor, title="Offline Devices", refreshing=refreshing
            )
        )
    return Group(*parts)


def outcome_table(
    outcomes: Mapping[str, RefreshOutcome],
    devices: Mapping[str, Device],
    redactor: Redactor,
) -> Table:
    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("Identity")
    table.add_column("Status")
    table.add_column("Note")

    for identity, outcome in outcomes.items():
        device = devices.get(identity)
        if outcome.persistence_error is not None:
            note = f"[red]not saved: {escape(outcome.persistence_error.message)}[/red]"
        elif outcome.dropped:
            note = "removed while refreshing"
        else:
            note = escape(outcome.error or "")
        if outcome.coalesced and not note:
            note = "already refreshing"
        table.add_row(
            escape(device.display_name) if device else "",
            redactor.redact_mac(identity),
            status_text(outcome.status),
            note,
        )
    return table
