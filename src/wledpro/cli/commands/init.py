from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from wledpro.cli.helpers import (
    build_store,
    load_settings_or_exit,
    resolve_config_path_or_exit,
)
from wledpro.config import DatabaseConfig, Settings, write_settings
from wledpro.errors import PersistenceError


def register(app: typer.Typer) -> None:
    @app.command()
    def init(
        data_dir: Annotated[
            Path | None,
            typer.Option("--data-dir", "--path", help="Custom data directory"),
        ] = None,
        force: Annotated[
            bool,
            typer.Option("--force", "-f", help="Overwrite existing config and data"),
        ] = False,
    ) -> None:
        """Initialize wledpro configuration and data directory."""
        console = Console()

        defaults = Settings()
        if data_dir is not None:
            defaults = Settings(database=DatabaseConfig(path=str(data_dir)))

        config_path, config_exists = resolve_config_path_or_exit(allow_missing=True)
        if config_exists and not force:
            console.print(f"[dim]Config exists:[/dim] {config_path}")
            settings = load_settings_or_exit()
        else:
            write_settings(defaults, config_path)
            action = "Overwrote" if config_exists else "Created"
            console.print(f"[green]✓[/green] {action} config: {config_path}")
            settings = defaults

        store = build_store(settings, data_dir=data_dir)
        try:
            created = store.init(force=force)
        except PersistenceError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(1) from None

        if created:
            console.print(f"[green]✓[/green] Initialized data dir: {store.path}")
        else:
            console.print(f"[dim]Data dir exists:[/dim] {store.path}")
