# Credential Store
# Per-server API keys used to authenticate agents
#
# This module provides:
# - The port interface (ABC) the hub depends on
# - In-memory and JSON-file adapters
# - A factory selecting the adapter from settings

from whitelist_hub.credentials.ports import (
    CredentialStore,
    CredentialStoreError,
    ServerCredential,
)
from whitelist_hub.credentials.memory import InMemoryCredentialStore
from whitelist_hub.credentials.json_file import JsonFileCredentialStore, parse_servers
from whitelist_hub.credentials.factory import create_credential_store

__all__ = [
    "CredentialStore",
    "CredentialStoreError",
    "ServerCredential",
    "InMemoryCredentialStore",
    "JsonFileCredentialStore",
    "parse_servers",
    "create_credential_store",
]
