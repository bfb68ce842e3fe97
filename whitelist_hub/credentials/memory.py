"""
In-Memory Credential Store

Dict-backed adapter for tests and for embedding the hub in another process
that already holds its server configuration.
"""

import asyncio

from whitelist_hub.credentials.ports import CredentialStore, ServerCredential


class InMemoryCredentialStore(CredentialStore):
    """
    In-memory credential storage.

    Uses dict with asyncio.Lock for concurrent async safety.
    """

    def __init__(self, servers: dict[str, str] | None = None):
        """
        Args:
            servers: Optional initial mapping of server_id -> api_key
        """
        self._servers: dict[str, ServerCredential] = {}
        self._lock = asyncio.Lock()

        for server_id, api_key in (servers or {}).items():
            self._servers[server_id] = ServerCredential(server_id=server_id, api_key=api_key)

    async def put(self, credential: ServerCredential) -> None:
        async with self._lock:
            self._servers[credential.server_id] = credential

    async def remove(self, server_id: str) -> bool:
        async with self._lock:
            return self._servers.pop(server_id, None) is not None

    async def get_server(self, server_id: str) -> ServerCredential | None:
        async with self._lock:
            server = self._servers.get(server_id)
        if server is None or not server.api_key:
            return None
        return server

    async def list_servers(self) -> list[ServerCredential]:
        async with self._lock:
            return [s for s in self._servers.values() if s.api_key]
