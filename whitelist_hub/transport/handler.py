"""
WebSocket Handler

Binds FastAPI WebSocket connections to a WhitelistHub.

Per connection:
1. accept the socket and start its queued transport
2. feed every inbound message to the hub, in order
3. on disconnect (or once the hub has closed the session), notify the hub
   exactly once and drain the transport

The hub never awaits an agent: outbound frames go through the transport's
queue and are written by its own task.
"""

import asyncio
import logging

from fastapi import WebSocket, WebSocketDisconnect

from whitelist_hub.hub import WhitelistHub
from whitelist_hub.transport.queue import QueuedWebSocketTransport

logger = logging.getLogger(__name__)

CLOSE_GOING_AWAY = 1001


class WebSocketHandler:
    """
    Handles agent WebSocket connections for one hub.
    """

    def __init__(
        self,
        hub: WhitelistHub,
        outbound_queue_size: int = 200,
        close_timeout_seconds: float = 5.0,
    ):
        """
        Args:
            hub: Hub receiving frames and transport events
            outbound_queue_size: Max queued outbound frames per connection
            close_timeout_seconds: Max wait for a transport to drain on close
        """
        self._hub = hub
        self._queue_size = outbound_queue_size
        self._close_timeout = close_timeout_seconds
        self._transports: set[QueuedWebSocketTransport] = set()

    async def handle_connection(self, websocket: WebSocket) -> None:
        """
        Handle a WebSocket connection lifecycle.

        Args:
            websocket: The WebSocket connection
        """
        await websocket.accept()

        peer = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"

        async def close_socket(code: int, reason: str) -> None:
            await websocket.close(code=code, reason=reason)

        transport = QueuedWebSocketTransport(
            conn_id=peer,
            send_fn=websocket.send_text,
            close_fn=close_socket,
            max_size=self._queue_size,
        )
        connection = self._hub.open_connection(transport)
        transport.conn_id = f"{connection.conn_id}@{peer}"

        await transport.start()
        self._transports.add(transport)
        logger.info(f"Agent connected: {transport.conn_id}")

        peer_closed = False
        try:
            while not connection.is_closed:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    peer_closed = True
                    break

                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes")
                if raw is None:
                    continue

                await self._hub.handle_frame(connection, raw)

        except WebSocketDisconnect:
            peer_closed = True

        except asyncio.CancelledError:
            raise

        except Exception as e:
            logger.error(f"WebSocket error on {transport.conn_id}: {e}")

        finally:
            self._hub.close_connection(connection)
            await transport.stop(timeout=self._close_timeout, peer_closed=peer_closed)
            self._transports.discard(transport)
            logger.info(f"Agent connection finished: {transport.conn_id}")

    async def shutdown(self) -> None:
        """Close every open agent socket."""
        transports = list(self._transports)
        for transport in transports:
            transport.close(CLOSE_GOING_AWAY, "Server shutdown")
        await asyncio.gather(
            *(t.stop(timeout=self._close_timeout) for t in transports),
            return_exceptions=True,
        )
