"""
Whitelist Hub

Owns one isolated set of hub state (connection registry, telemetry store)
and the components that act on it. Several hubs can live in one process;
nothing here is a module-level global.

Mutation happens only through the session handler (frames and transport
events). The read side and command delivery are exposed for the HTTP layer
and the Discord bot.
"""

import logging
from typing import Any

from whitelist_hub.config import HubSettings
from whitelist_hub.credentials import CredentialStore
from whitelist_hub.registry import Connection, ConnectionRegistry, TenantConnection
from whitelist_hub.routing import CommandRouter
from whitelist_hub.session import AgentTransport, SessionProtocolHandler
from whitelist_hub.telemetry import ServerEvent, StateSnapshot, TelemetryStore

logger = logging.getLogger(__name__)


class WhitelistHub:
    """Multi-tenant connection hub for Minecraft server agents."""

    def __init__(
        self,
        credentials: CredentialStore,
        settings: HubSettings | None = None,
    ):
        """
        Args:
            credentials: Source of per-server API keys
            settings: Hub configuration (defaults if omitted)
        """
        self.settings = settings or HubSettings()
        self.credentials = credentials

        self.registry = ConnectionRegistry()
        self.telemetry = TelemetryStore(
            max_events_per_server=self.settings.max_events,
            default_event_limit=self.settings.default_event_limit,
        )
        self.router = CommandRouter(
            self.registry,
            fallback_routing=self.settings.fallback_routing,
        )
        self.sessions = SessionProtocolHandler(
            registry=self.registry,
            telemetry=self.telemetry,
            credentials=credentials,
            auth_timeout_seconds=self.settings.auth_timeout_seconds,
            close_superseded=self.settings.close_superseded,
        )

    # === transport events ===

    def open_connection(self, transport: AgentTransport) -> Connection:
        return self.sessions.open(transport)

    async def handle_frame(self, connection: Connection, raw: str | bytes | dict) -> None:
        await self.sessions.handle_frame(connection, raw)

    def close_connection(self, connection: Connection) -> None:
        self.sessions.close(connection)

    # === read side ===

    def list_tenants(self) -> list[TenantConnection]:
        return self.registry.list_tenants()

    def get_state(self, tenant_id: str) -> StateSnapshot | None:
        return self.telemetry.get_state(tenant_id)

    def get_events(self, tenant_id: str, limit: Any = None) -> list[ServerEvent]:
        return self.telemetry.get_events(tenant_id, limit)

    # === commands ===

    def send_whitelist_add(self, tenant_id: str | None, username: str) -> bool:
        return self.router.send_whitelist_add(tenant_id, username)

    def send_whitelist_remove(self, tenant_id: str | None, username: str) -> bool:
        return self.router.send_whitelist_remove(tenant_id, username)

    def stats(self) -> dict[str, int]:
        return {
            "servers": self.registry.tenant_count,
            "connections": self.registry.connection_count,
            "events": self.telemetry.total_events(),
        }
