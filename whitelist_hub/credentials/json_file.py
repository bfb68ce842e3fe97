"""
JSON File Credential Store

Reads server credentials from the dashboard's JSON config file. The file is
re-read on every lookup so keys rotated from the dashboard take effect on
the next agent authentication without restarting the hub.

Format:
    {
        "minecraftApiKey": "legacy-key",
        "servers": {
            "alpha": {"apiKey": "...", "name": "Alpha SMP",
                      "address": "mc.example.org", "port": 25565,
                      "onlineMode": true}
        }
    }

The legacy top-level ``minecraftApiKey`` configures the "default" server
when ``servers`` has no "default" entry.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from whitelist_hub.credentials.ports import (
    CredentialStore,
    CredentialStoreError,
    ServerCredential,
)
from whitelist_hub.protocol import DEFAULT_SERVER_ID

logger = logging.getLogger(__name__)


def _optional(value: Any, kind: type) -> Any:
    if isinstance(value, bool) and kind is not bool:
        return None
    return value if isinstance(value, kind) else None


def parse_servers(config: Any) -> dict[str, ServerCredential]:
    """
    Extract usable server credentials from a parsed config document.

    Entries without a non-empty string API key are skipped.
    """
    if not isinstance(config, dict):
        raise CredentialStoreError("Config root must be a JSON object")

    servers: dict[str, ServerCredential] = {}

    raw_servers = config.get("servers")
    if raw_servers is None:
        raw_servers = {}
    if not isinstance(raw_servers, dict):
        raise CredentialStoreError("'servers' must be a JSON object")

    for server_id, entry in raw_servers.items():
        if not isinstance(entry, dict):
            continue
        api_key = entry.get("apiKey")
        if not isinstance(api_key, str) or not api_key:
            continue
        servers[server_id] = ServerCredential(
            server_id=server_id,
            api_key=api_key,
            name=_optional(entry.get("name"), str),
            address=_optional(entry.get("address"), str),
            port=_optional(entry.get("port"), int),
            online_mode=_optional(entry.get("onlineMode"), bool),
        )

    legacy_key = config.get("minecraftApiKey")
    if DEFAULT_SERVER_ID not in servers and isinstance(legacy_key, str) and legacy_key:
        servers[DEFAULT_SERVER_ID] = ServerCredential(
            server_id=DEFAULT_SERVER_ID,
            api_key=legacy_key,
        )

    return servers


class JsonFileCredentialStore(CredentialStore):
    """Credential store backed by a JSON config file."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, ServerCredential]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise CredentialStoreError(f"Cannot read {self._path}: {e}") from e

        try:
            config = json.loads(text)
        except ValueError as e:
            raise CredentialStoreError(f"Malformed JSON in {self._path}: {e}") from e

        return parse_servers(config)

    async def _load(self) -> dict[str, ServerCredential]:
        return await asyncio.to_thread(self._read)

    async def get_server(self, server_id: str) -> ServerCredential | None:
        servers = await self._load()
        return servers.get(server_id)

    async def list_servers(self) -> list[ServerCredential]:
        servers = await self._load()
        return list(servers.values())
