"""Unified CLI entry point for noet.

Config precedence: settings.default.toml -> settings.<env>.toml -> settings.local.toml -> env vars (NOET_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

import typer

from noet import __version__
from noet.cli.call_cmd import register_call_commands
from noet.cli.serve_cmd import register_serve_command
from noet.cli.settings_cmd import settings_app

APP_HELP = (
    "noet — drive a logged-in note.com browser session from the command line. "
    "`noet serve` runs the agent; `noet call` and `noet publish` talk to it. "
    "Config precedence: settings.default.toml -> settings.<env>.toml -> settings.local.toml -> env vars (NOET_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.add_typer(settings_app, name="settings")
register_serve_command(app)
register_call_commands(app)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context, version: bool = typer.Option(False, "--version", help="Show version and exit.")) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"noet {__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
