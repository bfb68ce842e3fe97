# Server Telemetry
# Latest state snapshots and bounded event logs reported by agents

from whitelist_hub.telemetry.store import (
    DEFAULT_MAX_EVENTS,
    DEFAULT_EVENT_LIMIT,
    HubEventType,
    ServerEvent,
    StateSnapshot,
    TelemetryStore,
    parse_event_limit,
)

__all__ = [
    "DEFAULT_MAX_EVENTS",
    "DEFAULT_EVENT_LIMIT",
    "HubEventType",
    "ServerEvent",
    "StateSnapshot",
    "TelemetryStore",
    "parse_event_limit",
]
