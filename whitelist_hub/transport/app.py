"""
Whitelist Hub Application

FastAPI application exposing the hub:
- WS  /ws                                    agent endpoint
- GET /api/health                            liveness (open)
- GET /api/hub/servers                       connected servers (admin)
- GET /api/hub/servers/{server_id}/state     latest state snapshot (admin)
- GET /api/hub/servers/{server_id}/events    recent events (admin)
- POST /api/hub/servers/{server_id}/whitelist  deliver add/remove (admin)

Configuration comes from WLH_* environment variables (see
whitelist_hub.config); a .env file in the working directory is loaded first.

Run with:
    uvicorn whitelist_hub.transport.app:app --host 0.0.0.0 --port 3001
"""

import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException, Request, WebSocket
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()

from whitelist_hub.config import HubSettings, settings_from_env
from whitelist_hub.credentials import CredentialStore, create_credential_store
from whitelist_hub.hub import WhitelistHub
from whitelist_hub.transport.handler import WebSocketHandler

logger = logging.getLogger(__name__)

MINECRAFT_USERNAME = re.compile(r"^[A-Za-z0-9_]{3,16}$")


class WhitelistAction(str, Enum):
    ADD = "add"
    REMOVE = "remove"


class WhitelistCommandRequest(BaseModel):
    """Body of POST /api/hub/servers/{server_id}/whitelist."""

    username: str = Field(..., description="Minecraft username")
    action: WhitelistAction = Field(default=WhitelistAction.ADD)

    @field_validator("username")
    @classmethod
    def _valid_username(cls, value: str) -> str:
        value = value.strip()
        if not MINECRAFT_USERNAME.match(value):
            raise ValueError("Invalid Minecraft username")
        return value


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def get_hub(request: Request) -> WhitelistHub:
    hub = getattr(request.app.state, "hub", None)
    if hub is None:
        raise HTTPException(status_code=503, detail="Hub not initialized")
    return hub


async def require_admin(
    request: Request,
    authorization: str | None = Header(None),
) -> str:
    """Accept a bearer token listed in WLH_ADMIN_TOKENS."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authentication required")

    settings: HubSettings = request.app.state.settings
    if not settings.admin_tokens:
        raise HTTPException(status_code=403, detail="No admin users configured")

    token = authorization[len("Bearer "):].strip()
    if token not in settings.admin_tokens:
        raise HTTPException(status_code=403, detail="Unauthorized")
    return token


def create_app(
    settings: HubSettings | None = None,
    credential_store: CredentialStore | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Hub settings (read from the environment if omitted)
        credential_store: Credential store (built from settings if omitted)
    """
    settings = settings or settings_from_env()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Creates the hub and its WebSocket handler, and closes agent sockets
        on shutdown.
        """
        logger.info("Starting Whitelist Hub...")

        store = credential_store or create_credential_store(settings)
        hub = WhitelistHub(credentials=store, settings=settings)
        handler = WebSocketHandler(
            hub,
            outbound_queue_size=settings.outbound_queue_size,
            close_timeout_seconds=settings.close_timeout_seconds,
        )

        app.state.settings = settings
        app.state.hub = hub
        app.state.ws_handler = handler

        if settings.close_superseded:
            logger.info("Superseded connections will be closed on re-authentication")
        if not settings.fallback_routing:
            logger.info("Fallback routing disabled; commands require a live server connection")

        logger.info("Whitelist Hub started")

        yield

        logger.info("Shutting down Whitelist Hub...")
        await handler.shutdown()
        app.state.hub = None
        logger.info("Whitelist Hub stopped")

    app = FastAPI(
        title="Whitelist Hub",
        description="Relays whitelist commands to connected Minecraft servers",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for Minecraft agents.

        The agent must send auth before anything but ping is accepted.
        """
        handler: WebSocketHandler | None = getattr(websocket.app.state, "ws_handler", None)
        if handler is None or getattr(websocket.app.state, "hub", None) is None:
            await websocket.close(code=1011, reason="Hub not initialized")
            return

        await handler.handle_connection(websocket)

    @app.get("/api/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        hub = getattr(request.app.state, "hub", None)
        return {
            "status": "ok" if hub else "starting",
            "servers": hub.registry.tenant_count if hub else 0,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/api/hub/servers", dependencies=[Depends(require_admin)])
    async def list_servers(hub: WhitelistHub = Depends(get_hub)):
        return {"servers": [t.to_public_dict() for t in hub.list_tenants()]}

    @app.get("/api/hub/servers/{server_id}/state", dependencies=[Depends(require_admin)])
    async def get_server_state(server_id: str, hub: WhitelistHub = Depends(get_hub)):
        snapshot = hub.get_state(server_id)
        if snapshot is None:
            raise HTTPException(status_code=404, detail="No state reported")
        return {"serverId": server_id, **snapshot.to_dict()}

    @app.get("/api/hub/servers/{server_id}/events", dependencies=[Depends(require_admin)])
    async def get_server_events(
        server_id: str,
        limit: str | None = None,
        hub: WhitelistHub = Depends(get_hub),
    ):
        events = hub.get_events(server_id, limit)
        return {"serverId": server_id, "events": [e.to_dict() for e in events]}

    @app.post("/api/hub/servers/{server_id}/whitelist", dependencies=[Depends(require_admin)])
    async def send_whitelist_command(
        server_id: str,
        body: WhitelistCommandRequest,
        hub: WhitelistHub = Depends(get_hub),
    ):
        if body.action == WhitelistAction.ADD:
            delivered = hub.send_whitelist_add(server_id, body.username)
        else:
            delivered = hub.send_whitelist_remove(server_id, body.username)

        if not delivered:
            logger.warning(
                f"Whitelist {body.action.value} for {body.username!r} on {server_id!r} "
                f"was not delivered"
            )
        return {
            "serverId": server_id,
            "username": body.username,
            "action": body.action.value,
            "delivered": delivered,
        }

    return app


app = create_app()
