"""Long-running agent: browser session, dispatcher and transports.

Usage::

    noet serve                 # both transports, settings from config/
    noet serve --no-native     # WebSocket only

Wires the pieces together and runs until interrupted. Each enabled
transport reconnects on its own; the dispatcher does not know which one a
request came from.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from noet.browser.session import BrowserSession
from noet.browser.timing import HumanTiming, RateLimiter
from noet.dispatch.dispatcher import CommandDispatcher
from noet.flows.engine import FlowEngine
from noet.settings.config import Settings
from noet.site.loader import load_site_profile
from noet.transport.base import TransportAdapter
from noet.transport.native import NativeTransport
from noet.transport.websocket import WebSocketTransport

logger = logging.getLogger(__name__)


def build_dispatcher(settings: Settings, session: BrowserSession) -> CommandDispatcher:
    """Create the engine and dispatcher for *session* from *settings*."""
    profile = load_site_profile(settings.site.locators_path)
    timing = HumanTiming(settings.timing.scale, typing_max_chars=settings.timing.typing_max_chars)
    engine = FlowEngine(
        session,
        profile,
        timing,
        probe_timeout_ms=settings.timing.probe_timeout_ms,
        upload_timeout_ms=settings.timing.upload_timeout_ms,
    )
    limiter = RateLimiter(settings.timing.min_command_interval_ms / 1000)
    return CommandDispatcher(engine, debug_mode=settings.debug, rate_limiter=limiter)


def build_transports(
    settings: Settings,
    dispatcher: CommandDispatcher,
    *,
    native: bool = True,
    websocket: bool = True,
) -> list[TransportAdapter]:
    """Instantiate the transports enabled in *settings* and by the flags."""
    t = settings.transport
    backoff = {"base": t.reconnect_base_sec, "factor": t.reconnect_factor, "cap": t.reconnect_max_sec}
    transports: list[TransportAdapter] = []
    if native and t.native_enabled:
        transports.append(
            NativeTransport(t.native_host_name, dispatcher.dispatch, host_path=t.native_host_path, **backoff)
        )
    if websocket and t.websocket_enabled:
        transports.append(WebSocketTransport(t.websocket_url, dispatcher.dispatch, **backoff))
    return transports


async def run_service(settings: Settings, *, native: bool = True, websocket: bool = True) -> int:
    """Run the agent until SIGINT/SIGTERM. Returns a process exit code."""
    async with BrowserSession(settings) as session:
        dispatcher = build_dispatcher(settings, session)
        transports = build_transports(settings, dispatcher, native=native, websocket=websocket)
        if not transports:
            logger.error("No transport enabled; nothing to serve")
            return 1

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                pass  # Windows

        logger.info(
            "noet agent ready (transports=%s, debug=%s)",
            ", ".join(t.name for t in transports),
            dispatcher.debug_mode,
        )
        tasks = [asyncio.create_task(t.run(), name=f"transport-{t.name}") for t in transports]
        try:
            await stop.wait()
        finally:
            logger.info("Shutting down")
            for transport in transports:
                await transport.stop()
            await asyncio.gather(*tasks, return_exceptions=True)
    return 0


def configure_logging(level: str = "INFO", env: str = "local") -> None:
    """Set up logging for the agent.

    Outside ``local``, emits JSON-structured logs with a ``severity`` field::

        {"severity": "INFO", "message": "...", "logger": "..."}

    Locally, uses a human-readable plain-text format. Both go to stderr.
    """
    import json as _json

    log_level = getattr(logging, level.upper(), logging.INFO)

    if env != "local":

        class _JsonFormatter(logging.Formatter):
            """JSON formatter emitting severity-tagged entries."""

            def format(self, record: logging.LogRecord) -> str:
                entry = {
                    "severity": record.levelname,
                    "message": record.getMessage(),
                    "logger": record.name,
                    "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
                }
                if record.exc_info and record.exc_info[1]:
                    entry["exception"] = self.formatException(record.exc_info)
                return _json.dumps(entry, default=str, ensure_ascii=False)

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_JsonFormatter())
        logging.root.handlers.clear()
        logging.root.addHandler(handler)
        logging.root.setLevel(log_level)
    else:
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            stream=sys.stderr,
        )

    # Quieten noisy libraries
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def main(*, native: bool = True, websocket: bool = True, debug: bool | None = None) -> int:
    """Entry point used by ``noet serve``."""
    from noet.settings import get_settings

    settings = get_settings()
    configure_logging(settings.log_level, settings.env)
    if debug is not None:
        settings = settings.model_copy(update={"debug": debug})
    try:
        return asyncio.run(run_service(settings, native=native, websocket=websocket))
    except KeyboardInterrupt:
        return 0
