# Connection Registry
# Tracks live agent connections and the tenant each one represents

from whitelist_hub.registry.connection import Connection, ConnectionState, TenantConnection
from whitelist_hub.registry.registry import ConnectionRegistry

__all__ = ["Connection", "ConnectionState", "TenantConnection", "ConnectionRegistry"]
