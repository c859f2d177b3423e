"""CLI commands for inspecting and validating noet settings."""

from __future__ import annotations

import json

import typer
from rich.console import Console

settings_app = typer.Typer(help="Inspect and validate noet configuration.")
console = Console()


@settings_app.command("show")
def show_settings() -> None:
    """Display the currently resolved settings."""
    from noet.settings import get_settings

    settings = get_settings()
    console.print_json(json.dumps(settings.model_dump(mode="json"), indent=2, default=str))


@settings_app.command("validate")
def validate_settings() -> None:
    """Validate settings and the locator profile, and report any issues."""
    from noet.settings import get_settings
    from noet.site.loader import load_site_profile

    try:
        settings = get_settings()
        profile = load_site_profile(settings.site.locators_path)
    except Exception as e:
        console.print(f"[red]✗[/red] Settings validation failed: {e}")
        raise typer.Exit(code=1)
    console.print("[green]✓[/green] Settings are valid.")
    console.print(f"  Environment: {settings.env}")
    console.print(f"  Browser profile: {settings.browser.user_data_dir}")
    console.print(f"  Locator profile: {profile.name} v{profile.version}")
    console.print(f"  Transports: native={settings.transport.native_enabled} websocket={settings.transport.websocket_enabled}")
