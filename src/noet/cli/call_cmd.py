"""``noet call`` and ``noet publish`` — controller-side commands.

Both start a short-lived controller server, wait for the running agent to
connect over the WebSocket transport, send one command and print the
result.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console

console = Console()
err_console = Console(stderr=True)

_H1_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$")


def split_title(markdown: str) -> tuple[str, str]:
    """Use a leading ``# heading`` as the title and drop it from the body."""
    lines = markdown.lstrip("\ufeff").splitlines()
    for i, line in enumerate(lines):
        if not line.strip():
            continue
        match = _H1_RE.match(line.strip())
        if match:
            return match.group(1), "\n".join(lines[i + 1 :]).lstrip("\n")
        break
    return "", markdown


async def _send(command: str, params: dict[str, Any]) -> dict[str, Any]:
    from noet.controller.client import ControllerServer
    from noet.settings import get_settings

    c = get_settings().controller
    async with ControllerServer(
        c.host,
        c.port,
        command_timeout=c.command_timeout_sec,
        connect_timeout=c.connect_timeout_sec,
    ) as server:
        err_console.print(f"Waiting for the agent on ws://{c.host}:{server.port} ...")
        return await server.request(command, params)


def _run(command: str, params: dict[str, Any]) -> dict[str, Any]:
    from noet.controller.client import CommandError

    try:
        return asyncio.run(_send(command, params))
    except CommandError as exc:
        err_console.print(f"[red]✗[/red] {exc.code}: {exc}")
        raise typer.Exit(code=1)


def _print_response(response: dict[str, Any]) -> None:
    console.print_json(json.dumps(response, ensure_ascii=False, default=str))
    if response.get("status") != "success":
        raise typer.Exit(code=1)


def register_call_commands(app: typer.Typer) -> None:
    @app.command("call")
    def call(
        command: str = typer.Argument(..., help="Command name, e.g. ping, check_auth, list_articles."),
        params: str = typer.Option("{}", "--params", "-p", help="Command parameters as a JSON object."),
    ) -> None:
        """Send one command to the running agent and print the response."""
        try:
            parsed = json.loads(params)
        except ValueError as exc:
            err_console.print(f"[red]✗[/red] --params is not valid JSON: {exc}")
            raise typer.Exit(code=2)
        if not isinstance(parsed, dict):
            err_console.print("[red]✗[/red] --params must be a JSON object")
            raise typer.Exit(code=2)
        _print_response(_run(command, parsed))

    @app.command("publish")
    def publish(
        file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Markdown article."),
        title: Optional[str] = typer.Option(None, "--title", "-t", help="Title (default: the leading # heading)."),
        tag: List[str] = typer.Option([], "--tag", help="Hashtag; repeatable."),
        magazine: List[str] = typer.Option([], "--magazine", "-m", help="Magazine name; repeatable."),
        header_image: Optional[Path] = typer.Option(None, "--header-image", help="Eyecatch image file."),
        draft: bool = typer.Option(False, "--draft", help="Save as draft instead of publishing."),
        key: Optional[str] = typer.Option(None, "--update", help="Update the article with this key instead."),
    ) -> None:
        """Create (or update) an article from a Markdown file, uploading its local images."""
        from noet.controller.images import collect_images, header_image_payload
        from noet.exceptions import InvalidParamsError

        text = file.read_text(encoding="utf-8")
        heading, body = split_title(text)
        final_title = title or heading
        if not final_title:
            err_console.print("[red]✗[/red] No --title given and the file has no leading # heading")
            raise typer.Exit(code=2)

        try:
            images = collect_images(file, body)
            header = header_image_payload(header_image) if header_image else None
        except InvalidParamsError as exc:
            err_console.print(f"[red]✗[/red] {exc}")
            raise typer.Exit(code=2)

        params: dict[str, Any] = {
            "title": final_title,
            "body": body,
            "body_format": "markdown",
            "tags": tag,
            "magazines": magazine,
            "draft": draft,
            "images": images,
        }
        if header is not None:
            params["header_image"] = header
        if key:
            params["key"] = key

        err_console.print(f"{'Updating' if key else 'Creating'} '{final_title}' with {len(images)} image(s)")
        _print_response(_run("update_article" if key else "create_article", params))
