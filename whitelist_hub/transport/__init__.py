# Transport Layer
# WebSocket endpoint, per-connection outbound queues and the HTTP application

from whitelist_hub.transport.queue import QueuedWebSocketTransport, QueueFullError, TransportClosedError
from whitelist_hub.transport.handler import WebSocketHandler

__all__ = [
    "QueuedWebSocketTransport",
    "QueueFullError",
    "TransportClosedError",
    "WebSocketHandler",
]
