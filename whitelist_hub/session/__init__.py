# Agent Sessions
# Per-connection protocol state machine (auth gate, heartbeats, telemetry frames)

from whitelist_hub.session.ports import AgentTransport
from whitelist_hub.session.handler import SessionProtocolHandler

__all__ = ["AgentTransport", "SessionProtocolHandler"]
