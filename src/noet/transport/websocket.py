"""WebSocket transport: one JSON text message per frame to a loopback server."""

from __future__ import annotations

import json
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from noet.exceptions import FrameError
from noet.transport.base import DispatchFn, TransportAdapter

logger = logging.getLogger(__name__)


class WebSocketTransport(TransportAdapter):
    """Connects to the controller's WebSocket server and serves its requests."""

    def __init__(self, url: str, dispatch: DispatchFn, *, max_size: int = 16 * 1024 * 1024, **kwargs: Any) -> None:
        super().__init__("websocket", dispatch, **kwargs)
        self.url = url
        self.max_size = max_size
        self._ws: Any = None

    async def _connect(self) -> None:
        self._ws = await websockets.connect(self.url, max_size=self.max_size, ping_interval=20)

    async def _receive(self) -> Any | None:
        if self._ws is None:
            return None
        while True:
            try:
                raw = await self._ws.recv()
            except ConnectionClosed:
                return None
            try:
                return json.loads(raw)
            except ValueError as exc:
                logger.warning("Dropping undecodable WebSocket message: %s", exc)

    async def _send(self, message: dict[str, Any]) -> None:
        if self._ws is None:
            raise ConnectionError("WebSocket is not connected")
        try:
            text = json.dumps(message, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise FrameError(f"Message is not serializable: {exc}") from exc
        await self._ws.send(text)

    async def _close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception as exc:
                logger.debug("WebSocket close failed: %s", exc)
