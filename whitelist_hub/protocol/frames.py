"""
Hub Wire Protocol

Every frame exchanged with a Minecraft agent is a single JSON object with a
``type`` discriminator. The transport delimits frames (one WebSocket text
message per frame).

Inbound (agent -> hub):
- ping                      -> pong{ts}
- auth{serverId, apiKey}    -> auth_result{ok, error?}
- event{eventType, payload} -> no reply
- state{payload}            -> no reply

Outbound (hub -> agent, not replies):
- whitelist_add{username, serverId}
- whitelist_remove{username, serverId}
- error{error}

Inbound models are deliberately lenient: agents run on third-party servers
and occasionally send partial frames, so optional fields fall back to
defaults instead of failing validation.
"""

import json
import logging
import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

# Tenant used when an agent authenticates without a serverId
DEFAULT_SERVER_ID = "default"

# Event type recorded when an agent omits eventType
UNKNOWN_EVENT_TYPE = "unknown"


class FrameType(str, Enum):
    """Frame discriminators (the ``type`` field)."""
    # Inbound
    PING = "ping"
    AUTH = "auth"
    EVENT = "event"
    STATE = "state"

    # Outbound
    PONG = "pong"
    AUTH_RESULT = "auth_result"
    ERROR = "error"
    WHITELIST_ADD = "whitelist_add"
    WHITELIST_REMOVE = "whitelist_remove"


class AuthError(str, Enum):
    """Error codes carried by auth_result and error frames."""
    SERVER_NOT_CONFIGURED = "server_not_configured"
    INVALID_KEY = "invalid_key"
    NOT_AUTHENTICATED = "not_authenticated"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class AuthFrame(BaseModel):
    """Inbound ``auth`` frame."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    server_id: str = Field(
        default=DEFAULT_SERVER_ID,
        alias="serverId",
        description="Tenant the agent claims to be"
    )
    api_key: str | None = Field(
        default=None,
        alias="apiKey",
        description="Shared secret for the tenant"
    )

    @field_validator("server_id", mode="before")
    @classmethod
    def _default_server_id(cls, value: Any) -> str:
        if isinstance(value, str) and value:
            return value
        return DEFAULT_SERVER_ID

    @field_validator("api_key", mode="before")
    @classmethod
    def _string_key_only(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None


class EventFrame(BaseModel):
    """Inbound ``event`` frame (fire-and-forget telemetry)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event_type: str = Field(default=UNKNOWN_EVENT_TYPE, alias="eventType")
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("event_type", mode="before")
    @classmethod
    def _default_event_type(cls, value: Any) -> str:
        if isinstance(value, str) and value:
            return value
        return UNKNOWN_EVENT_TYPE

    @field_validator("payload", mode="before")
    @classmethod
    def _object_payload(cls, value: Any) -> dict[str, Any]:
        return value if isinstance(value, dict) else {}


class StateFrame(BaseModel):
    """Inbound ``state`` frame (latest-value server state)."""

    model_config = ConfigDict(extra="ignore")

    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("payload", mode="before")
    @classmethod
    def _object_payload(cls, value: Any) -> dict[str, Any]:
        return value if isinstance(value, dict) else {}


def decode_frame(raw: str | bytes | dict) -> dict[str, Any] | None:
    """
    Decode a raw transport message into a frame object.

    Returns:
        The frame as a dict, or None if the message is not a JSON object.
        Malformed input never raises.
    """
    if isinstance(raw, dict):
        return raw

    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Dropping undecodable binary frame")
            return None

    if not isinstance(raw, str):
        return None

    try:
        frame = json.loads(raw)
    except ValueError:
        logger.debug("Dropping non-JSON frame")
        return None

    if not isinstance(frame, dict):
        logger.debug(f"Dropping non-object frame: {type(frame).__name__}")
        return None

    return frame


def encode_frame(frame: dict[str, Any]) -> str:
    """Serialize an outbound frame."""
    return json.dumps(frame, separators=(",", ":"))


def create_pong() -> dict[str, Any]:
    return {"type": FrameType.PONG.value, "ts": now_ms()}


def create_auth_result(error: AuthError | None = None) -> dict[str, Any]:
    """Create an auth_result frame; ``error`` is present iff ok is false."""
    if error is None:
        return {"type": FrameType.AUTH_RESULT.value, "ok": True}
    return {"type": FrameType.AUTH_RESULT.value, "ok": False, "error": error.value}


def create_error(error: AuthError) -> dict[str, Any]:
    return {"type": FrameType.ERROR.value, "error": error.value}


def create_whitelist_add(username: str, server_id: str) -> dict[str, Any]:
    return {
        "type": FrameType.WHITELIST_ADD.value,
        "username": username,
        "serverId": server_id,
    }


def create_whitelist_remove(username: str, server_id: str) -> dict[str, Any]:
    return {
        "type": FrameType.WHITELIST_REMOVE.value,
        "username": username,
        "serverId": server_id,
    }
