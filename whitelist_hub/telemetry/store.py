"""
Server Telemetry Store

Per-server observability data reported by agents:
- a latest-value state snapshot (overwritten on every state frame)
- a bounded ring buffer of discrete events (oldest evicted first)

Events are recorded on connect, on disconnect, and whenever an agent
reports an application event (player joins, chat, commands, ...).

Each server has an independent buffer; recording for one server never
touches another server's data.
"""

import logging
import threading
from collections import deque
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from whitelist_hub.protocol import now_ms

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 500
DEFAULT_EVENT_LIMIT = 100


class HubEventType(str, Enum):
    """Event types recorded by the hub itself (agents may send any string)."""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ServerEvent(BaseModel):
    """A single recorded event. Immutable once appended."""

    timestamp: int = Field(
        default_factory=now_ms,
        description="When the hub recorded the event, epoch ms"
    )
    event_type: str = Field(..., description="Event type")
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Event data as reported"
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ts": self.timestamp,
            "type": self.event_type,
            "payload": self.payload,
        }


class StateSnapshot(BaseModel):
    """Latest reported state of a server."""

    received_at: int = Field(default_factory=now_ms)
    payload: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"receivedAt": self.received_at, "payload": self.payload}


def parse_event_limit(limit: Any, default: int = DEFAULT_EVENT_LIMIT) -> int:
    """
    Normalize a caller supplied event limit.

    Missing, non-numeric, zero or negative values fall back to ``default``.
    """
    if limit is None or isinstance(limit, bool):
        return default
    try:
        value = int(limit)
    except (TypeError, ValueError, OverflowError):
        return default
    return value if value > 0 else default


class TelemetryStore:
    """
    In-memory state cells and event ring buffers, keyed by server id.
    """

    def __init__(
        self,
        max_events_per_server: int = DEFAULT_MAX_EVENTS,
        default_event_limit: int = DEFAULT_EVENT_LIMIT,
    ):
        """
        Initialize the store.

        Args:
            max_events_per_server: Ring buffer capacity (oldest evicted)
            default_event_limit: Limit used by get_events when none is given
        """
        if max_events_per_server <= 0:
            raise ValueError("max_events_per_server must be positive")

        self._max_events = max_events_per_server
        self._default_limit = default_event_limit

        self._events: dict[str, deque[ServerEvent]] = {}
        self._states: dict[str, StateSnapshot] = {}

        self._lock = threading.Lock()

    @property
    def max_events(self) -> int:
        return self._max_events

    def record_event(self, tenant_id: str, event: ServerEvent) -> None:
        """Append an event, evicting the oldest once over capacity."""
        with self._lock:
            buffer = self._events.get(tenant_id)
            if buffer is None:
                buffer = deque(maxlen=self._max_events)
                self._events[tenant_id] = buffer
            buffer.append(event)

    def set_state(self, tenant_id: str, snapshot: StateSnapshot) -> None:
        """Overwrite the server's state snapshot."""
        with self._lock:
            self._states[tenant_id] = snapshot

    def get_state(self, tenant_id: str) -> StateSnapshot | None:
        return self._states.get(tenant_id)

    def get_events(self, tenant_id: str, limit: Any = None) -> list[ServerEvent]:
        """
        Get the most recent events for a server.

        Args:
            tenant_id: Server to query
            limit: Max events to return; see parse_event_limit

        Returns:
            At most min(limit, capacity) events, oldest first
        """
        count = min(parse_event_limit(limit, self._default_limit), self._max_events)
        with self._lock:
            buffer = self._events.get(tenant_id)
            if not buffer:
                return []
            events = list(buffer)
        return events[-count:]

    def total_events(self) -> int:
        """Total buffered events across all servers."""
        with self._lock:
            return sum(len(buffer) for buffer in self._events.values())

    def servers(self) -> list[str]:
        """Servers that have any recorded state or events."""
        with self._lock:
            return sorted(set(self._events) | set(self._states))
