"""
Command Router

Delivers whitelist commands to the agent connection representing a server.

Delivery is best-effort and at-most-once: the wire protocol has no
acknowledgement, so a command is either handed to a live connection's
transport or dropped. Nothing is queued for servers that are offline;
callers get False and decide whether to tell an operator.

Routing:
1. The live connection registered for the requested server
2. Otherwise, when fallback routing is enabled, any authenticated
   connection (compatibility with single-server deployments whose
   callers never name a server)
"""

import logging
from typing import Any

from whitelist_hub.protocol import create_whitelist_add, create_whitelist_remove, encode_frame
from whitelist_hub.registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)


class CommandRouter:
    """Routes outbound commands to agent connections."""

    def __init__(self, registry: ConnectionRegistry, fallback_routing: bool = True):
        """
        Args:
            registry: Tenant -> connection index
            fallback_routing: Use any authenticated connection when the
                requested server has none
        """
        self._registry = registry
        self._fallback_routing = fallback_routing

    def resolve_target(self, tenant_id: str | None) -> Connection | None:
        """Find the connection a command for ``tenant_id`` would go to."""
        connection = self._registry.resolve(tenant_id) if tenant_id else None
        if connection is None and self._fallback_routing:
            connection = self._registry.any_authenticated()
            if connection is not None and tenant_id:
                logger.warning(
                    f"No live connection for {tenant_id!r}; "
                    f"falling back to {connection.tenant_id!r}"
                )
        return connection

    def send_whitelist_add(self, tenant_id: str | None, username: str) -> bool:
        """
        Ask a server to add a player to its whitelist.

        Returns:
            True if the command was handed to a live connection
        """
        return self._dispatch(tenant_id, username, create_whitelist_add)

    def send_whitelist_remove(self, tenant_id: str | None, username: str) -> bool:
        """
        Ask a server to remove a player from its whitelist.

        Returns:
            True if the command was handed to a live connection
        """
        return self._dispatch(tenant_id, username, create_whitelist_remove)

    def _dispatch(self, tenant_id: str | None, username: str, build) -> bool:
        connection = self.resolve_target(tenant_id)
        if connection is None:
            logger.warning(f"Cannot deliver command for {username!r}: server {tenant_id!r} offline")
            return False

        # serverId names the agent's own server, which differs from the
        # requested one only after a fallback
        frame: dict[str, Any] = build(username, connection.tenant_id)
        try:
            connection.transport.send(encode_frame(frame))
        except Exception as e:
            logger.warning(
                f"Delivery of {frame['type']} to {connection.tenant_id!r} "
                f"({connection.conn_id}) failed: {e}"
            )
            return False

        logger.info(f"Sent {frame['type']} {username!r} to {connection.tenant_id!r}")
        return True
