"""Controller side of the socket channel.

The controller listens on the loopback port; the agent's WebSocket adapter
connects to it. Requests get fresh UUID ids and are matched to responses
through a map of pending futures, so several calls may be in flight on one
connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from noet.exceptions import NoetError

logger = logging.getLogger(__name__)


class CommandError(NoetError):
    """An error response from the agent, or a call that got no response."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(message)


class ControllerServer:
    """WebSocket server that sends commands to a connected agent.

    Args:
        host: Interface to bind.
        port: Port to bind; ``0`` picks a free one (see ``port`` after start).
        command_timeout: Seconds to wait for each response.
        connect_timeout: Seconds to wait for the agent to connect.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 9876,
        *,
        command_timeout: float = 60.0,
        connect_timeout: float = 30.0,
    ) -> None:
        self.host = host
        self._port = port
        self.command_timeout = command_timeout
        self.connect_timeout = connect_timeout
        self._server: Any = None
        self._agent: Any = None
        self._connected = asyncio.Event()
        self._pending: dict[str, asyncio.Future[dict[str, Any]]] = {}

    @property
    def port(self) -> int:
        if self._server is not None:
            for sock in self._server.sockets:
                return int(sock.getsockname()[1])
        return self._port

    async def start(self) -> None:
        self._server = await websockets.serve(self._handle_agent, self.host, self._port, max_size=None)
        logger.info("Controller listening on ws://%s:%d", self.host, self.port)

    async def stop(self) -> None:
        self._fail_pending("TRANSPORT", "Controller stopped")
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def __aenter__(self) -> ControllerServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def wait_for_agent(self, timeout: float | None = None) -> None:
        """Block until an agent is connected.

        Raises:
            CommandError: With code ``TRANSPORT`` on timeout.
        """
        try:
            await asyncio.wait_for(self._connected.wait(), timeout or self.connect_timeout)
        except asyncio.TimeoutError:
            raise CommandError(
                "TRANSPORT",
                f"No agent connected within {timeout or self.connect_timeout:.0f}s; is `noet serve` running?",
            ) from None

    async def _handle_agent(self, ws: Any) -> None:
        if self._agent is not None:
            logger.warning("A second agent connected; replacing the previous connection")
        self._agent = ws
        self._connected.set()
        logger.info("Agent connected")
        try:
            async for raw in ws:
                self._on_message(raw)
        except ConnectionClosed:
            pass
        finally:
            if self._agent is ws:
                self._agent = None
                self._connected.clear()
                self._fail_pending("TRANSPORT", "Agent disconnected")
            logger.info("Agent disconnected")

    def _on_message(self, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring undecodable message from agent")
            return
        future = self._pending.pop(str(message.get("id", "")), None)
        if future is None:
            logger.warning("Response for unknown request id=%s", message.get("id"))
            return
        if not future.done():
            future.set_result(message)

    def _fail_pending(self, code: str, message: str) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(CommandError(code, message))

    async def request(self, command: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send one command and return the raw response message."""
        await self.wait_for_agent()
        request_id = str(uuid.uuid4())
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        payload = {"id": request_id, "command": command, "params": params or {}}
        logger.debug("-> %s (id=%s)", command, request_id)
        try:
            await self._agent.send(json.dumps(payload, ensure_ascii=False))
            return await asyncio.wait_for(future, self.command_timeout)
        except asyncio.TimeoutError:
            raise CommandError("TIMEOUT", f"No response to {command} within {self.command_timeout:.0f}s") from None
        finally:
            self._pending.pop(request_id, None)

    async def call(self, command: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send one command and return its ``data``.

        Raises:
            CommandError: On an error response, disconnect or timeout.
        """
        response = await self.request(command, params)
        if response.get("status") == "success":
            return response.get("data") or {}
        error = response.get("error") or {}
        raise CommandError(error.get("code", "UNKNOWN"), error.get("message", "Unknown error"))
