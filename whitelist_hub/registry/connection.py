"""
Connection Model

Represents one live transport session from a Minecraft agent.
A connection is created when the transport accepts a socket and destroyed
when the transport closes it (or the hub rejects its credentials).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING
from uuid import uuid4

from pydantic import BaseModel, Field

from whitelist_hub.protocol import now_ms

if TYPE_CHECKING:
    from whitelist_hub.session.ports import AgentTransport


class ConnectionState(str, Enum):
    """Session state machine states."""
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """
    Hub-side view of a single agent connection.

    Compared and hashed by identity: two connections for the same tenant
    are never equal, which is what the registry's stale-unregister guard
    relies on.
    """
    transport: "AgentTransport"
    conn_id: str = field(default_factory=lambda: uuid4().hex[:12])
    state: ConnectionState = ConnectionState.UNAUTHENTICATED
    tenant_id: str | None = None
    opened_at: int = field(default_factory=now_ms)
    connected_at: int | None = None
    last_seen: int = field(default_factory=now_ms)

    @property
    def is_authenticated(self) -> bool:
        return self.state == ConnectionState.AUTHENTICATED

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    def touch(self) -> None:
        """Update last_seen to current time."""
        self.last_seen = now_ms()

    def __repr__(self) -> str:
        return (
            f"Connection(conn_id={self.conn_id!r}, state={self.state.value}, "
            f"tenant_id={self.tenant_id!r})"
        )


class TenantConnection(BaseModel):
    """Snapshot of an authenticated tenant slot (for listing endpoints)."""

    tenant_id: str = Field(..., description="Tenant (server) identifier")
    conn_id: str = Field(..., description="Connection currently holding the slot")
    connected_at: int = Field(..., description="Authentication time, epoch ms")
    last_seen: int = Field(..., description="Last inbound frame, epoch ms")

    def to_public_dict(self) -> dict:
        return {
            "serverId": self.tenant_id,
            "connectedAt": self.connected_at,
            "lastSeen": self.last_seen,
        }
