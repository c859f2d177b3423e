"""Native-messaging transport: length-prefixed JSON over a host's stdio.

The host executable is addressed by its logical name (``com.noet.host``)
and resolved through the browser's ``NativeMessagingHosts`` manifest, the
same lookup Chrome performs. Each frame is a 4-byte little-endian length
followed by that many bytes of UTF-8 JSON.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import struct
import sys
from pathlib import Path
from typing import Any

from noet.exceptions import FrameError, TransportError
from noet.transport.base import DispatchFn, TransportAdapter

logger = logging.getLogger(__name__)

# Chrome's limits: host->browser messages up to 1 MiB, browser->host up to 64 MiB.
MAX_INCOMING_FRAME_BYTES = 1024 * 1024
MAX_OUTGOING_FRAME_BYTES = 64 * 1024 * 1024

_HEADER = struct.Struct("<I")


def encode_frame(message: dict[str, Any], *, limit: int = MAX_OUTGOING_FRAME_BYTES) -> bytes:
    """Serialize *message* into one native-messaging frame.

    Raises:
        FrameError: The message is not JSON-serializable or exceeds *limit*.
    """
    try:
        raw = json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise FrameError(f"Message is not serializable: {exc}") from exc
    if len(raw) > limit:
        raise FrameError(f"Frame too large: {len(raw)} bytes exceeds {limit}")
    return _HEADER.pack(len(raw)) + raw


def decode_frame(raw: bytes) -> Any:
    """Decode a frame body; raises ``ValueError`` on invalid JSON."""
    return json.loads(raw.decode("utf-8"))


async def read_frame(reader: asyncio.StreamReader, *, limit: int = MAX_INCOMING_FRAME_BYTES) -> bytes | None:
    """Read one frame body, or ``None`` at end of stream."""
    try:
        header = await reader.readexactly(_HEADER.size)
    except asyncio.IncompleteReadError:
        return None
    (length,) = _HEADER.unpack(header)
    if length > limit:
        raise TransportError(f"Incoming frame of {length} bytes exceeds {limit}")
    try:
        return await reader.readexactly(length)
    except asyncio.IncompleteReadError:
        return None


def manifest_candidates(host_name: str, *, platform: str | None = None, home: Path | None = None) -> list[Path]:
    """Locations Chromium-family browsers read native host manifests from."""
    platform = platform or sys.platform
    home = home or Path.home()
    filename = f"{host_name}.json"

    if platform == "darwin":
        base = home / "Library" / "Application Support"
        dirs = [
            base / "Google" / "Chrome",
            base / "Chromium",
            base / "BraveSoftware" / "Brave-Browser",
            base / "Microsoft Edge",
        ]
    elif platform.startswith("linux"):
        cfg = Path(os.environ.get("XDG_CONFIG_HOME") or home / ".config")
        dirs = [
            cfg / "google-chrome",
            cfg / "chromium",
            cfg / "BraveSoftware" / "Brave-Browser",
            cfg / "microsoft-edge",
        ]
    elif platform == "win32":
        local = os.environ.get("LOCALAPPDATA")
        dirs = [(Path(local) if local else home / "AppData" / "Local") / "noet"]
    else:
        dirs = []
    return [d / "NativeMessagingHosts" / filename for d in dirs]


def resolve_host_path(host_name: str, override: str = "", *, candidates: list[Path] | None = None) -> Path:
    """Find the executable registered for *host_name*.

    Raises:
        TransportError: If no manifest names an existing executable.
    """
    if override:
        path = Path(override).expanduser()
        if not path.exists():
            raise TransportError(f"Native host not found at {path}")
        return path

    for manifest in candidates if candidates is not None else manifest_candidates(host_name):
        if not manifest.is_file():
            continue
        try:
            data = json.loads(manifest.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable native host manifest %s: %s", manifest, exc)
            continue
        if data.get("name") not in (None, host_name):
            continue
        path = Path(str(data.get("path", "")))
        if not path.is_absolute():
            path = manifest.parent / path
        if path.exists():
            logger.debug("Resolved native host %s -> %s", host_name, path)
            return path
    raise TransportError(f"No native messaging manifest found for {host_name}")


class NativeTransport(TransportAdapter):
    """Spawns the native host and exchanges frames over its stdin/stdout."""

    def __init__(
        self,
        host_name: str,
        dispatch: DispatchFn,
        *,
        host_path: str = "",
        max_frame_bytes: int = MAX_OUTGOING_FRAME_BYTES,
        **kwargs: Any,
    ) -> None:
        super().__init__("native", dispatch, **kwargs)
        self.host_name = host_name
        self.host_path = host_path
        self.max_frame_bytes = max_frame_bytes
        self._proc: asyncio.subprocess.Process | None = None

    async def _connect(self) -> None:
        path = resolve_host_path(self.host_name, self.host_path)
        self._proc = await asyncio.create_subprocess_exec(
            str(path),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
        )
        logger.info("Native host %s started (pid=%s)", self.host_name, self._proc.pid)

    async def _receive(self) -> Any | None:
        if self._proc is None or self._proc.stdout is None:
            return None
        while True:
            body = await read_frame(self._proc.stdout)
            if body is None:
                return None
            try:
                return decode_frame(body)
            except ValueError as exc:
                logger.warning("Dropping undecodable native frame (%d bytes): %s", len(body), exc)

    async def _send(self, message: dict[str, Any]) -> None:
        if self._proc is None or self._proc.stdin is None:
            raise TransportError("Native host is not running")
        frame = encode_frame(message, limit=self.max_frame_bytes)
        self._proc.stdin.write(frame)
        await self._proc.stdin.drain()

    async def _close(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None or proc.returncode is not None:
            return
        try:
            proc.terminate()
            await asyncio.wait_for(proc.wait(), timeout=2.0)
        except ProcessLookupError:
            return
        except asyncio.TimeoutError:
            proc.kill()
        logger.debug("Native host %s stopped", self.host_name)
