"""
Connection Registry

In-memory index of authenticated agent connections.

Two maps are kept in step:
- forward: tenant_id -> Connection (at most one live slot per tenant)
- reverse: Connection -> tenant_id (every authenticated connection, so a
  closing connection can find its tenant even after being superseded)

A tenant re-authenticating on a new connection replaces the forward entry
(last writer wins). Unregistering a superseded connection must not clobber
the newer entry, so the forward entry is only removed when it still points
at the connection being unregistered.

All operations are synchronous. On the asyncio loop they run to completion
without yielding; the lock additionally keeps them safe for callers on
other threads.
"""

import logging
import threading

from whitelist_hub.registry.connection import Connection, TenantConnection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Tracks which live connection represents each tenant."""

    def __init__(self):
        # Primary index: tenant_id -> Connection
        self._by_tenant: dict[str, Connection] = {}

        # Reverse index: Connection -> tenant_id (insertion ordered)
        self._tenant_by_conn: dict[Connection, str] = {}

        self._lock = threading.RLock()

    def register_authenticated(
        self,
        connection: Connection,
        tenant_id: str
    ) -> Connection | None:
        """
        Insert or replace the tenant slot with this connection.

        Args:
            connection: Freshly authenticated connection
            tenant_id: Tenant it authenticated as

        Returns:
            The connection previously holding the slot, if a different one did
        """
        with self._lock:
            previous_tenant = self._tenant_by_conn.get(connection)
            if previous_tenant is not None and previous_tenant != tenant_id:
                if self._by_tenant.get(previous_tenant) is connection:
                    del self._by_tenant[previous_tenant]

            superseded = self._by_tenant.get(tenant_id)
            self._by_tenant[tenant_id] = connection
            self._tenant_by_conn[connection] = tenant_id

        if superseded is not None and superseded is not connection:
            logger.info(
                f"Server {tenant_id} re-authenticated on {connection.conn_id}, "
                f"superseding {superseded.conn_id}"
            )
            return superseded
        return None

    def unregister(self, connection: Connection) -> bool:
        """
        Remove a connection from the registry.

        The tenant slot is only cleared if it still refers to this exact
        connection. No-op for connections that never authenticated.

        Returns:
            True if the connection was registered
        """
        with self._lock:
            tenant_id = self._tenant_by_conn.pop(connection, None)
            if tenant_id is None:
                return False

            if self._by_tenant.get(tenant_id) is connection:
                del self._by_tenant[tenant_id]
            else:
                logger.debug(
                    f"Stale unregister for {tenant_id} from {connection.conn_id}; "
                    f"slot kept by newer connection"
                )
            return True

    def resolve(self, tenant_id: str) -> Connection | None:
        """Get the live connection for a tenant."""
        return self._by_tenant.get(tenant_id)

    def any_authenticated(self) -> Connection | None:
        """
        Get an arbitrary authenticated connection.

        Used for legacy single-server callers that do not name a tenant.
        Returns the first slot holder in tenant insertion order; superseded
        connections are never picked.
        """
        with self._lock:
            for connection in self._by_tenant.values():
                if connection.is_authenticated:
                    return connection
        return None

    def list_tenants(self) -> list[TenantConnection]:
        """Snapshot of all tenants that currently have a live connection."""
        with self._lock:
            slots = list(self._by_tenant.items())

        return [
            TenantConnection(
                tenant_id=tenant_id,
                conn_id=connection.conn_id,
                connected_at=connection.connected_at or connection.opened_at,
                last_seen=connection.last_seen,
            )
            for tenant_id, connection in slots
        ]

    def is_registered(self, connection: Connection) -> bool:
        return connection in self._tenant_by_conn

    @property
    def tenant_count(self) -> int:
        """Number of tenants with a live slot."""
        return len(self._by_tenant)

    @property
    def connection_count(self) -> int:
        """Number of authenticated connections, including superseded ones."""
        return len(self._tenant_by_conn)
