"""
Session Protocol Handler

Per-connection state machine for agent frames.

States:
    UNAUTHENTICATED -> AUTHENTICATED -> CLOSED
    UNAUTHENTICATED -> CLOSED (rejected credentials or transport close)

Rules:
- ping is answered in every state (heartbeats may precede auth)
- auth is the only other frame accepted before authentication; anything
  else gets error{not_authenticated} and the connection stays open
- a rejected auth replies auth_result{ok:false} and closes the transport
- event/state frames from an authenticated connection update that
  server's telemetry and get no reply
- malformed frames are dropped silently

The credential lookup inside auth is the only await. Everything that
mutates the registry or telemetry runs synchronously after it, so no other
frame can interleave with a registry replacement.
"""

import asyncio
import hmac
import logging
from typing import Any, Callable

from whitelist_hub.credentials import CredentialStore, CredentialStoreError
from whitelist_hub.protocol import (
    AuthError,
    AuthFrame,
    EventFrame,
    FrameType,
    StateFrame,
    create_auth_result,
    create_error,
    create_pong,
    decode_frame,
    encode_frame,
    now_ms,
)
from whitelist_hub.registry import Connection, ConnectionRegistry, ConnectionState
from whitelist_hub.session.ports import AgentTransport
from whitelist_hub.telemetry import HubEventType, ServerEvent, StateSnapshot, TelemetryStore

logger = logging.getLogger(__name__)

# WebSocket close codes
CLOSE_POLICY_VIOLATION = 1008
CLOSE_NORMAL = 1000


class SessionProtocolHandler:
    """
    Interprets inbound frames for every agent connection.

    One handler instance serves all connections of a hub; per-connection
    state lives on the Connection object.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        telemetry: TelemetryStore,
        credentials: CredentialStore,
        auth_timeout_seconds: float = 5.0,
        close_superseded: bool = False,
    ):
        """
        Initialize the handler.

        Args:
            registry: Tenant -> connection index
            telemetry: Per-server state and event buffers
            credentials: Source of expected API keys
            auth_timeout_seconds: Bound on one credential lookup
            close_superseded: Close the older connection when a server
                re-authenticates on a new one
        """
        self._registry = registry
        self._telemetry = telemetry
        self._credentials = credentials
        self._auth_timeout = auth_timeout_seconds
        self._close_superseded = close_superseded

        self._authenticated_handlers: dict[str, Callable[[Connection, dict[str, Any]], None]] = {
            FrameType.EVENT.value: self._handle_event,
            FrameType.STATE.value: self._handle_state,
            FrameType.AUTH.value: self._handle_repeat_auth,
        }

    def open(self, transport: AgentTransport) -> Connection:
        """Create the hub-side record for a newly accepted transport."""
        connection = Connection(transport=transport)
        logger.debug(f"Connection opened: {connection.conn_id}")
        return connection

    async def handle_frame(self, connection: Connection, raw: str | bytes | dict) -> None:
        """
        Process one inbound frame.

        Never raises for protocol-level problems; those become frames or
        are dropped.
        """
        if connection.is_closed:
            return

        frame = decode_frame(raw)
        if frame is None:
            return

        frame_type = frame.get("type")
        if not isinstance(frame_type, str):
            logger.debug(f"Dropping frame with non-string type from {connection.conn_id}")
            return

        if frame_type == FrameType.PING.value:
            if connection.is_authenticated:
                connection.touch()
            self._send(connection, create_pong())
            return

        if not connection.is_authenticated:
            if frame_type == FrameType.AUTH.value:
                await self._handle_auth(connection, frame)
            else:
                self._send(connection, create_error(AuthError.NOT_AUTHENTICATED))
            return

        connection.touch()
        handler = self._authenticated_handlers.get(frame_type)
        if handler:
            handler(connection, frame)
        else:
            logger.debug(
                f"Ignoring unsupported frame type {frame_type!r} from {connection.tenant_id}"
            )

    def close(self, connection: Connection) -> None:
        """
        Handle transport close. Idempotent.

        An authenticated connection records a disconnected event and leaves
        the registry; its tenant slot is only cleared if it still owns it.
        """
        if connection.is_closed:
            return

        was_authenticated = connection.is_authenticated
        connection.state = ConnectionState.CLOSED

        if not was_authenticated:
            logger.debug(f"Unauthenticated connection closed: {connection.conn_id}")
            return

        tenant_id = connection.tenant_id
        self._telemetry.record_event(
            tenant_id,
            ServerEvent(
                event_type=HubEventType.DISCONNECTED.value,
                payload={"connId": connection.conn_id},
            ),
        )
        self._registry.unregister(connection)
        logger.info(f"Server {tenant_id} disconnected ({connection.conn_id})")

    # === auth ===

    async def _handle_auth(self, connection: Connection, frame: dict[str, Any]) -> None:
        auth = AuthFrame.model_validate(frame)
        expected_key = await self._lookup_api_key(auth.server_id)

        # The transport may have closed while the lookup was suspended
        if connection.state != ConnectionState.UNAUTHENTICATED:
            logger.debug(
                f"Discarding auth result for {auth.server_id}: "
                f"connection {connection.conn_id} is {connection.state.value}"
            )
            return

        if expected_key is None:
            logger.warning(
                f"Rejecting {connection.conn_id}: server {auth.server_id!r} is not configured"
            )
            self._reject(connection, AuthError.SERVER_NOT_CONFIGURED)
            return

        if auth.api_key is None or not hmac.compare_digest(
            auth.api_key.encode("utf-8", "surrogatepass"),
            expected_key.encode("utf-8", "surrogatepass"),
        ):
            logger.warning(
                f"Rejecting {connection.conn_id}: invalid API key for server {auth.server_id!r}"
            )
            self._reject(connection, AuthError.INVALID_KEY)
            return

        self._accept(connection, auth.server_id)

    async def _lookup_api_key(self, server_id: str) -> str | None:
        """Bounded credential lookup; any failure means "not configured"."""
        try:
            api_key = await asyncio.wait_for(
                self._credentials.get_tenant_api_key(server_id),
                timeout=self._auth_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Credential lookup for {server_id!r} timed out")
            return None
        except CredentialStoreError as e:
            logger.warning(f"Credential store unavailable: {e}")
            return None
        except Exception as e:
            logger.error(f"Credential lookup for {server_id!r} failed: {e}")
            return None

        if not isinstance(api_key, str) or not api_key:
            return None
        return api_key

    def _accept(self, connection: Connection, tenant_id: str) -> None:
        connection.state = ConnectionState.AUTHENTICATED
        connection.tenant_id = tenant_id
        connection.connected_at = now_ms()
        connection.touch()

        superseded = self._registry.register_authenticated(connection, tenant_id)
        self._telemetry.record_event(
            tenant_id,
            ServerEvent(
                event_type=HubEventType.CONNECTED.value,
                payload={"connId": connection.conn_id},
            ),
        )
        self._send(connection, create_auth_result())
        logger.info(f"Server {tenant_id} authenticated ({connection.conn_id})")

        if superseded is not None and self._close_superseded:
            logger.info(f"Closing superseded connection {superseded.conn_id} for {tenant_id}")
            self._close_transport(superseded, CLOSE_NORMAL, "superseded")

    def _reject(self, connection: Connection, error: AuthError) -> None:
        self._send(connection, create_auth_result(error))
        connection.state = ConnectionState.CLOSED
        self._close_transport(connection, CLOSE_POLICY_VIOLATION, error.value)

    def _handle_repeat_auth(self, connection: Connection, frame: dict[str, Any]) -> None:
        logger.debug(
            f"Ignoring auth on already authenticated connection {connection.conn_id} "
            f"({connection.tenant_id})"
        )

    # === telemetry ===

    def _handle_event(self, connection: Connection, frame: dict[str, Any]) -> None:
        event = EventFrame.model_validate(frame)
        self._telemetry.record_event(
            connection.tenant_id,
            ServerEvent(event_type=event.event_type, payload=event.payload),
        )

    def _handle_state(self, connection: Connection, frame: dict[str, Any]) -> None:
        state = StateFrame.model_validate(frame)
        self._telemetry.set_state(
            connection.tenant_id,
            StateSnapshot(payload=state.payload),
        )

    # === transport ===

    def _send(self, connection: Connection, frame: dict[str, Any]) -> bool:
        try:
            connection.transport.send(encode_frame(frame))
            return True
        except Exception as e:
            logger.debug(f"Could not send {frame.get('type')} to {connection.conn_id}: {e}")
            return False

    def _close_transport(self, connection: Connection, code: int, reason: str) -> None:
        try:
            connection.transport.close(code=code, reason=reason)
        except Exception as e:
            logger.debug(f"Error closing {connection.conn_id}: {e}")
