"""
Hub Configuration

Environment-based settings for the hub and its HTTP surface.

Environment variables (all optional):
    WLH_CREDENTIAL_BACKEND: "file" (JSON config) or "memory"
    WLH_DATA_DIR: Directory holding the JSON credential file
    WLH_CREDENTIALS_FILE: Credential file name within the data dir
    WLH_MAX_EVENTS: Event ring buffer capacity per server (1-500)
    WLH_DEFAULT_EVENT_LIMIT: Default number of events returned
    WLH_AUTH_TIMEOUT: Seconds allowed for the credential lookup of one auth frame
    WLH_OUTBOUND_QUEUE_SIZE: Per-connection outbound queue depth
    WLH_CLOSE_TIMEOUT: Seconds to wait for a connection's writer to drain
    WLH_CLOSE_SUPERSEDED: "true" to close a connection replaced by a newer one
    WLH_FALLBACK_ROUTING: "false" to disable routing to any server
    WLH_ADMIN_TOKENS: Comma-separated bearer tokens for admin endpoints
    WLH_LOG_LEVEL: Log level name

Values can also be placed in a .env file in the working directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

# Hard upper bound on events kept per server
MAX_EVENTS_CEILING = 500


class CredentialBackend(str, Enum):
    """Supported credential store backends."""
    FILE = "file"
    MEMORY = "memory"


@dataclass
class HubSettings:
    """
    Configuration for the hub.

    Attributes:
        credential_backend: Where agent API keys are looked up
        data_dir: Directory of the JSON credential file
        credentials_file: Name of the JSON credential file
        max_events: Event ring buffer capacity per server
        default_event_limit: Events returned when the caller gives no limit
        auth_timeout_seconds: Bound on the credential lookup per auth frame
        outbound_queue_size: Max frames buffered per connection
        close_timeout_seconds: Max wait for a writer to drain on close
        close_superseded: Close the older connection when a server re-authenticates
        fallback_routing: Route commands for offline servers to any live server
        admin_tokens: Bearer tokens accepted by admin endpoints
        log_level: Root log level
    """
    credential_backend: CredentialBackend = CredentialBackend.FILE
    data_dir: Path = Path("data")
    credentials_file: str = "config.json"
    max_events: int = 500
    default_event_limit: int = 100
    auth_timeout_seconds: float = 5.0
    outbound_queue_size: int = 200
    close_timeout_seconds: float = 5.0
    close_superseded: bool = False
    fallback_routing: bool = True
    admin_tokens: frozenset[str] = field(default_factory=frozenset)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not 0 < self.max_events <= MAX_EVENTS_CEILING:
            raise ValueError(f"max_events must be between 1 and {MAX_EVENTS_CEILING}")
        if self.default_event_limit <= 0:
            raise ValueError("default_event_limit must be positive")
        if self.outbound_queue_size <= 0:
            raise ValueError("outbound_queue_size must be positive")
        if self.auth_timeout_seconds <= 0:
            raise ValueError("auth_timeout_seconds must be positive")

    @property
    def credentials_path(self) -> Path:
        return Path(self.data_dir) / self.credentials_file


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_tokens(name: str) -> frozenset[str]:
    raw = os.getenv(name, "")
    return frozenset(token.strip() for token in raw.split(",") if token.strip())


def settings_from_env() -> HubSettings:
    """
    Create HubSettings from environment variables.

    Raises:
        ValueError: If a numeric or enum variable is invalid
    """
    return HubSettings(
        credential_backend=CredentialBackend(
            os.getenv("WLH_CREDENTIAL_BACKEND", "file").lower()
        ),
        data_dir=Path(os.getenv("WLH_DATA_DIR", "data")),
        credentials_file=os.getenv("WLH_CREDENTIALS_FILE", "config.json"),
        max_events=int(os.getenv("WLH_MAX_EVENTS", "500")),
        default_event_limit=int(os.getenv("WLH_DEFAULT_EVENT_LIMIT", "100")),
        auth_timeout_seconds=float(os.getenv("WLH_AUTH_TIMEOUT", "5.0")),
        outbound_queue_size=int(os.getenv("WLH_OUTBOUND_QUEUE_SIZE", "200")),
        close_timeout_seconds=float(os.getenv("WLH_CLOSE_TIMEOUT", "5.0")),
        close_superseded=_env_bool("WLH_CLOSE_SUPERSEDED", False),
        fallback_routing=_env_bool("WLH_FALLBACK_ROUTING", True),
        admin_tokens=_env_tokens("WLH_ADMIN_TOKENS"),
        log_level=os.getenv("WLH_LOG_LEVEL", "INFO").upper(),
    )
