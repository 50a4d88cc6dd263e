from __future__ import annotations

from typing import Annotated

import typer

from wledpro.utils.logging import setup_logging

from .commands import config as config_cmd
from .commands.devices import register as register_devices
from .commands.info import register as register_info
from .commands.init import register as register_init
from .commands.mock import register as register_mock
from .commands.refresh import register as register_refresh
from .commands.scan import register as register_scan

app = typer.Typer(
    help="wledpro - keep track of WLED lighting controllers", no_args_is_help=True
)

app.add_typer(config_cmd.app, name="config", help="Show or create the config file")

register_init(app)
register_scan(app)
register_devices(app)
register_refresh(app)
register_info(app)
register_mock(app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
) -> None:
    """wledpro CLI."""
    setup_logging()

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"wledpro version {get_version('wledpro')}")
        raise typer.Exit()
