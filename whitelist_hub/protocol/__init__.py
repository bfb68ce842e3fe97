# Wire Protocol
# Frame types, inbound frame models and outbound frame builders

from whitelist_hub.protocol.frames import (
    DEFAULT_SERVER_ID,
    FrameType,
    AuthError,
    AuthFrame,
    EventFrame,
    StateFrame,
    now_ms,
    decode_frame,
    encode_frame,
    create_pong,
    create_auth_result,
    create_error,
    create_whitelist_add,
    create_whitelist_remove,
)

__all__ = [
    "DEFAULT_SERVER_ID",
    "FrameType",
    "AuthError",
    "AuthFrame",
    "EventFrame",
    "StateFrame",
    "now_ms",
    "decode_frame",
    "encode_frame",
    "create_pong",
    "create_auth_result",
    "create_error",
    "create_whitelist_add",
    "create_whitelist_remove",
]
