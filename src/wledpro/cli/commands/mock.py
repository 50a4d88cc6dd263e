from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from wledpro.core import run_mock_device


def register(app: typer.Typer) -> None:
    @app.command()
    def mock(
        name: str = typer.Option("WLED Mock", "--name", "-n", help="Device name"),
        port: int = typer.Option(8080, "--port", "-p", help="Port to listen on"),
        mac: str = typer.Option("aabbccddeeff", "--mac", help="MAC address to report"),
        advertise: bool = typer.Option(
            True, "--advertise/--no-advertise", help="Announce the device via mDNS"
        ),
    ) -> None:
        """Run a mock WLED controller for development."""
        console = Console()
        console.print(f"Starting mock device '{name}' on port {port}...")
        console.print("Press Ctrl+C to stop.\n")

        try:
            asyncio.run(
                run_mock_device(
                    name=name, port=port, mac_address=mac, advertise=advertise
                )
            )
        except KeyboardInterrupt:
            console.print("\n[green]Mock device stopped.[/green]")
