"""``noet serve`` — run the browser agent."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

console = Console(stderr=True)


def register_serve_command(app: typer.Typer) -> None:
    @app.command("serve")
    def serve(
        native: bool = typer.Option(True, "--native/--no-native", help="Enable the native-messaging transport."),
        websocket: bool = typer.Option(True, "--websocket/--no-websocket", help="Enable the WebSocket transport."),
        debug: Optional[bool] = typer.Option(
            None, "--debug/--no-debug", help="Start with debug mode on (pages stay open)."
        ),
    ) -> None:
        """Start the browser session and serve commands until Ctrl-C."""
        from noet.worker.service import main

        exit_code = main(native=native, websocket=websocket, debug=debug)
        if exit_code != 0:
            console.print("[red]Agent stopped with errors.[/red]")
            raise typer.Exit(code=exit_code)
