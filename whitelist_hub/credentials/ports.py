"""
Credential Store Port

Read-only contract the hub uses to authenticate agents. The hub only ever
asks "what API key is configured for this server?"; everything else about a
server (name, address, port) is display metadata owned by the store.

All lookups are async: adapters may read files or remote storage.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class ServerCredential:
    """
    A configured Minecraft server (tenant).

    ``api_key`` is a secret and must never be logged or serialized to
    observability endpoints.
    """
    server_id: str
    api_key: str
    name: str | None = None
    address: str | None = None
    port: int | None = None
    online_mode: bool | None = None

    def to_public_dict(self) -> dict:
        return {
            "serverId": self.server_id,
            "name": self.name,
            "address": self.address,
            "port": self.port,
            "onlineMode": self.online_mode,
        }


class CredentialStoreError(Exception):
    """The credential store could not be read."""
    pass


class CredentialStore(ABC):
    """
    Storage interface for per-server credentials.
    """

    @abstractmethod
    async def get_server(self, server_id: str) -> ServerCredential | None:
        """
        Get a configured server.

        Returns:
            The server, or None if it is unknown or has no usable API key

        Raises:
            CredentialStoreError: If the backing storage is unreadable
        """
        ...

    @abstractmethod
    async def list_servers(self) -> list[ServerCredential]:
        """List all configured servers."""
        ...

    async def get_tenant_api_key(self, server_id: str) -> str | None:
        """Get the expected API key for a server, or None if not configured."""
        server = await self.get_server(server_id)
        return server.api_key if server else None
