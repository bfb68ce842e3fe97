# Command Routing
# Delivers whitelist commands to the live connection of a server

from whitelist_hub.routing.commands import CommandRouter

__all__ = ["CommandRouter"]
