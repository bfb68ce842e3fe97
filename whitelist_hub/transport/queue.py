"""
Queued WebSocket Transport

Per-connection outbound queue with a single writer task.

The hub's send path is synchronous (it never awaits a remote agent), while
WebSocket writes are async. This adapter bridges the two:
- send() enqueues without blocking and raises on backpressure or after close
- a single writer coroutine drains the queue to the socket, serializing writes
- close() enqueues a close request behind already queued frames, so a final
  reply (e.g. a rejected auth_result) is flushed before the socket closes
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from whitelist_hub.session.ports import AgentTransport

logger = logging.getLogger(__name__)


class QueueFullError(Exception):
    """Raised when the outbound queue is full (backpressure)."""
    def __init__(self, conn_id: str, queue_size: int):
        self.conn_id = conn_id
        self.queue_size = queue_size
        super().__init__(f"Queue full for {conn_id} (size={queue_size})")


class TransportClosedError(Exception):
    """Raised when sending on a transport that is closing or closed."""
    def __init__(self, conn_id: str):
        self.conn_id = conn_id
        super().__init__(f"Transport closed for {conn_id}")


@dataclass(frozen=True)
class _CloseRequest:
    code: int
    reason: str


class QueuedWebSocketTransport(AgentTransport):
    """
    Outbound side of a single agent WebSocket.

    Features:
    - Non-blocking send with a bounded depth
    - Single writer task to serialize WebSocket sends
    - Close requests ordered after pending frames
    """

    def __init__(
        self,
        conn_id: str,
        send_fn: Callable[[str], Awaitable[None]],
        close_fn: Callable[[int, str], Awaitable[None]],
        max_size: int = 200
    ):
        """
        Initialize the transport.

        Args:
            conn_id: Label used in logs
            send_fn: Async function writing one text message to the socket
            close_fn: Async function closing the socket (code, reason)
            max_size: Max queued frames before backpressure
        """
        self.conn_id = conn_id
        self._send_fn = send_fn
        self._close_fn = close_fn
        self._max_size = max_size

        # Unbounded so the close request always fits; send() enforces max_size
        self._queue: asyncio.Queue[str | _CloseRequest] = asyncio.Queue()
        self._writer_task: asyncio.Task | None = None
        self._close_requested = False
        self._peer_closed = False

    async def start(self) -> None:
        """Start the writer task."""
        if self._writer_task is None:
            self._writer_task = asyncio.create_task(
                self._writer_loop(),
                name=f"transport_writer_{self.conn_id}"
            )

    def send(self, text: str) -> None:
        """
        Queue a frame without blocking.

        Raises:
            TransportClosedError: If close was requested or the writer died
            QueueFullError: If the queue is full (backpressure condition)
        """
        if self._close_requested:
            raise TransportClosedError(self.conn_id)
        if self._queue.qsize() >= self._max_size:
            raise QueueFullError(self.conn_id, self._max_size)
        self._queue.put_nowait(text)

    def close(self, code: int = 1000, reason: str = "") -> None:
        """Request close after already queued frames. Idempotent."""
        if self._close_requested:
            return
        self._close_requested = True
        self._queue.put_nowait(_CloseRequest(code, reason))

    async def stop(self, timeout: float = 5.0, peer_closed: bool = False) -> None:
        """
        Drain pending frames, close the socket and stop the writer.

        Args:
            timeout: Max time to wait for the writer to finish
            peer_closed: The remote side already closed; skip writes
        """
        if peer_closed:
            self._peer_closed = True
        self.close(1000, "")

        task = self._writer_task
        if task is None:
            return

        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Writer for {self.conn_id} did not drain in {timeout}s")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._writer_task = None

    @property
    def qsize(self) -> int:
        """Current queue depth."""
        return self._queue.qsize()

    @property
    def is_closing(self) -> bool:
        return self._close_requested

    async def _writer_loop(self) -> None:
        """
        Single writer loop that drains the queue.

        Exits after performing a close request or on the first failed send.
        """
        while True:
            try:
                item = await self._queue.get()
            except asyncio.CancelledError:
                break

            if isinstance(item, _CloseRequest):
                if not self._peer_closed:
                    try:
                        await self._close_fn(item.code, item.reason)
                    except Exception as e:
                        logger.debug(f"Close failed for {self.conn_id}: {e}")
                break

            if self._peer_closed:
                continue

            try:
                await self._send_fn(item)
            except Exception as e:
                logger.warning(f"Send failed for {self.conn_id}: {e}")
                # Connection likely dead; refuse further sends
                self._close_requested = True
                break
