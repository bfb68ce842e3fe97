# Whitelist Hub - multi-tenant connection hub for Minecraft server agents
# Relays whitelist commands from the Discord/REST side to live server agents

__version__ = "0.1.0"

from whitelist_hub.hub import WhitelistHub
from whitelist_hub.config import HubSettings, settings_from_env

__all__ = [
    "__version__",
    "WhitelistHub",
    "HubSettings",
    "settings_from_env",
]
