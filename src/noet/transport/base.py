"""Transport supervisor shared by the native and WebSocket adapters.

An adapter is an explicit state machine::

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED -> ...

``run()`` drives it until ``stop()``: connect, pump messages until the
channel drops, then sleep ``backoff_delay(attempt)`` and try again. Each
inbound request is dispatched in its own task so a long flow never blocks
the channel; its response goes back on the adapter it arrived on.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from noet.exceptions import FrameError
from noet.models.protocol import CommandResponse

logger = logging.getLogger(__name__)

DispatchFn = Callable[[Any], Awaitable[dict[str, Any]]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def backoff_delay(attempt: int, base: float = 1.0, factor: float = 1.0, cap: float = 30.0) -> float:
    """Seconds to wait before reconnect *attempt* (1-based).

    ``factor=1`` gives a fixed delay of *base*; larger factors grow
    geometrically up to *cap*.
    """
    if attempt < 1:
        return 0.0
    return min(cap, base * factor ** (attempt - 1))


class TransportAdapter(abc.ABC):
    """Base class for a controller-facing channel.

    Subclasses implement ``_connect``, ``_receive``, ``_send`` and
    ``_close``. ``_receive`` returns ``None`` when the channel is closed.

    Args:
        name: Label used in logs.
        dispatch: Coroutine function turning a request into a response.
        base: Reconnect delay for the first attempt, in seconds.
        factor: Growth of the delay per failed attempt.
        cap: Upper bound of the delay.
    """

    def __init__(
        self,
        name: str,
        dispatch: DispatchFn,
        *,
        base: float = 1.0,
        factor: float = 1.0,
        cap: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.name = name
        self._dispatch = dispatch
        self._base = base
        self._factor = factor
        self._cap = cap
        self._sleep = sleep or asyncio.sleep
        self._state = ConnectionState.DISCONNECTED
        self._stopping = asyncio.Event()
        self._tasks: set[asyncio.Task[None]] = set()
        self._send_lock = asyncio.Lock()
        self.attempts = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    def _transition(self, state: ConnectionState) -> None:
        if state != self._state:
            logger.debug("%s transport: %s -> %s", self.name, self._state.value, state.value)
            self._state = state

    # ------------------------------------------------------------------
    # Channel primitives
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def _connect(self) -> None:
        """Open the channel; raise on failure."""

    @abc.abstractmethod
    async def _receive(self) -> Any | None:
        """Return the next decoded message, or ``None`` once closed."""

    @abc.abstractmethod
    async def _send(self, message: dict[str, Any]) -> None:
        """Encode and write one message."""

    @abc.abstractmethod
    async def _close(self) -> None:
        """Release the channel; must not raise."""

    # ------------------------------------------------------------------
    # Supervisor
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Keep the channel connected until ``stop()`` is called."""
        failures = 0
        while not self._stopping.is_set():
            self._transition(ConnectionState.CONNECTING)
            self.attempts += 1
            try:
                await self._connect()
            except Exception as exc:
                failures += 1
                logger.warning("%s transport: connect failed (%s)", self.name, exc)
            else:
                failures = 0
                self._transition(ConnectionState.CONNECTED)
                logger.info("%s transport connected", self.name)
                try:
                    await self._pump()
                except Exception as exc:
                    logger.warning("%s transport: channel error (%s)", self.name, exc)
                finally:
                    await self._close()
                failures += 1
                logger.info("%s transport disconnected", self.name)

            self._transition(ConnectionState.DISCONNECTED)
            if self._stopping.is_set():
                break
            delay = backoff_delay(failures, self._base, self._factor, self._cap)
            logger.debug("%s transport: reconnecting in %.1fs", self.name, delay)
            await self._wait_or_stop(delay)

        await self._drain()

    async def stop(self) -> None:
        """Stop reconnecting and close the current channel."""
        self._stopping.set()
        await self._close()

    async def _wait_or_stop(self, delay: float) -> None:
        stop_wait = asyncio.ensure_future(self._stopping.wait())
        sleeper = asyncio.ensure_future(self._sleep(delay))
        try:
            await asyncio.wait({stop_wait, sleeper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_wait.cancel()
            sleeper.cancel()

    async def _pump(self) -> None:
        while not self._stopping.is_set():
            message = await self._receive()
            if message is None:
                return
            task = asyncio.create_task(self._respond(message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _respond(self, message: Any) -> None:
        response = await self._dispatch(message)
        try:
            await self._deliver(response)
        except FrameError as exc:
            # Answer the id anyway so the controller is never left waiting.
            logger.warning("%s transport: response id=%s not sendable (%s)", self.name, response.get("id"), exc)
            fallback = CommandResponse.failure(
                response.get("id", ""), "UNKNOWN", f"Response could not be sent: {exc}"
            ).to_wire()
            try:
                await self._deliver(fallback)
            except Exception as fallback_exc:
                self._log_undelivered(fallback, fallback_exc)
        except Exception as exc:
            self._log_undelivered(response, exc)

    async def _deliver(self, response: dict[str, Any]) -> None:
        async with self._send_lock:
            await self._send(response)

    def _log_undelivered(self, response: dict[str, Any], exc: Exception) -> None:
        logger.warning("%s transport: could not deliver response id=%s (%s)", self.name, response.get("id"), exc)

    async def _drain(self) -> None:
        if self._tasks:
            for task in list(self._tasks):
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
