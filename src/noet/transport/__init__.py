"""Controller-facing transports.

* ``base`` — ``TransportAdapter`` supervisor and ``backoff_delay``.
* ``native`` — native-messaging host over stdio.
* ``websocket`` — loopback WebSocket client.
"""

from noet.transport.base import ConnectionState, TransportAdapter, backoff_delay
from noet.transport.native import NativeTransport
from noet.transport.websocket import WebSocketTransport

__all__ = [
    "ConnectionState",
    "NativeTransport",
    "TransportAdapter",
    "WebSocketTransport",
    "backoff_delay",
]
