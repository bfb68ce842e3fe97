"""
Tests for the agent session state machine.
"""

import asyncio

import pytest

from whitelist_hub.config import HubSettings
from whitelist_hub.credentials import CredentialStore, CredentialStoreError, ServerCredential
from whitelist_hub.hub import WhitelistHub
from whitelist_hub.registry import ConnectionState


class BrokenStore(CredentialStore):
    async def get_server(self, server_id):
        raise CredentialStoreError("disk on fire")

    async def list_servers(self):
        raise CredentialStoreError("disk on fire")


class GatedStore(CredentialStore):
    """Holds every lookup until ``release`` is set."""

    def __init__(self, api_key: str):
        self.api_key = api_key
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def get_server(self, server_id):
        self.started.set()
        await self.release.wait()
        return ServerCredential(server_id=server_id, api_key=self.api_key)

    async def list_servers(self):
        return []


# =============================================================================
# Authentication
# =============================================================================

@pytest.mark.asyncio
async def test_auth_success(hub, authenticate):
    connection, transport = await authenticate("alpha")

    assert transport.sent == [{"type": "auth_result", "ok": True}]
    assert connection.state == ConnectionState.AUTHENTICATED
    assert connection.tenant_id == "alpha"
    assert connection.connected_at is not None
    assert hub.registry.resolve("alpha") is connection

    events = hub.get_events("alpha")
    assert [e.event_type for e in events] == ["connected"]
    assert events[0].payload == {"connId": connection.conn_id}


@pytest.mark.asyncio
async def test_auth_invalid_key(hub, authenticate):
    connection, transport = await authenticate("alpha", api_key="wrong")

    assert transport.sent == [{"type": "auth_result", "ok": False, "error": "invalid_key"}]
    assert transport.closes == [(1008, "invalid_key")]
    assert connection.is_closed
    assert hub.registry.resolve("alpha") is None
    assert hub.get_events("alpha") == []


@pytest.mark.asyncio
async def test_auth_unknown_server(hub, authenticate):
    connection, transport = await authenticate("gamma", api_key="anything")

    assert transport.sent == [
        {"type": "auth_result", "ok": False, "error": "server_not_configured"}
    ]
    assert transport.closed
    assert connection.is_closed


@pytest.mark.asyncio
async def test_auth_without_server_id_uses_default(hub, make_transport):
    transport = make_transport()
    connection = hub.open_connection(transport)

    await hub.handle_frame(connection, '{"type":"auth","apiKey":"legacy-secret"}')

    assert transport.sent == [{"type": "auth_result", "ok": True}]
    assert connection.tenant_id == "default"


@pytest.mark.asyncio
async def test_auth_missing_key_is_invalid(hub, make_transport):
    transport = make_transport()
    connection = hub.open_connection(transport)

    await hub.handle_frame(connection, {"type": "auth", "serverId": "alpha"})

    assert transport.sent[0]["error"] == "invalid_key"
    assert connection.is_closed


@pytest.mark.asyncio
async def test_auth_unencodable_key_is_invalid(hub, make_transport):
    transport = make_transport()
    connection = hub.open_connection(transport)

    await hub.handle_frame(connection, '{"type":"auth","serverId":"alpha","apiKey":"\\ud800"}')

    assert transport.sent == [{"type": "auth_result", "ok": False, "error": "invalid_key"}]
    assert connection.is_closed


@pytest.mark.asyncio
async def test_auth_store_failure_means_not_configured(make_transport):
    hub = WhitelistHub(credentials=BrokenStore())
    transport = make_transport()
    connection = hub.open_connection(transport)

    await hub.handle_frame(connection, {"type": "auth", "serverId": "alpha", "apiKey": "x"})

    assert transport.sent == [
        {"type": "auth_result", "ok": False, "error": "server_not_configured"}
    ]
    assert connection.is_closed


@pytest.mark.asyncio
async def test_auth_lookup_timeout_means_not_configured(make_transport):
    store = GatedStore("alpha-secret")
    hub = WhitelistHub(credentials=store, settings=HubSettings(auth_timeout_seconds=0.05))
    transport = make_transport()
    connection = hub.open_connection(transport)

    await hub.handle_frame(
        connection, {"type": "auth", "serverId": "alpha", "apiKey": "alpha-secret"}
    )

    assert transport.sent[0]["error"] == "server_not_configured"
    assert connection.is_closed


@pytest.mark.asyncio
async def test_close_during_lookup_discards_result(make_transport):
    store = GatedStore("alpha-secret")
    hub = WhitelistHub(credentials=store)
    transport = make_transport()
    connection = hub.open_connection(transport)

    task = asyncio.create_task(hub.handle_frame(
        connection, {"type": "auth", "serverId": "alpha", "apiKey": "alpha-secret"}
    ))
    await store.started.wait()
    hub.close_connection(connection)
    store.release.set()
    await task

    assert transport.sent == []
    assert hub.registry.resolve("alpha") is None
    assert hub.get_events("alpha") == []


@pytest.mark.asyncio
async def test_repeat_auth_is_ignored(hub, authenticate):
    connection, transport = await authenticate("alpha")

    await hub.handle_frame(connection, {"type": "auth", "serverId": "beta", "apiKey": "beta-secret"})

    assert transport.sent == [{"type": "auth_result", "ok": True}]
    assert connection.tenant_id == "alpha"
    assert hub.registry.resolve("beta") is None


# =============================================================================
# Unauthenticated traffic
# =============================================================================

@pytest.mark.asyncio
async def test_frames_before_auth_are_refused(hub, make_transport):
    transport = make_transport()
    connection = hub.open_connection(transport)

    await hub.handle_frame(connection, {"type": "event", "eventType": "chat"})
    await hub.handle_frame(connection, {"type": "state", "payload": {"online": 1}})

    assert transport.sent == [
        {"type": "error", "error": "not_authenticated"},
        {"type": "error", "error": "not_authenticated"},
    ]
    assert not transport.closed
    assert connection.state == ConnectionState.UNAUTHENTICATED
    assert hub.telemetry.servers() == []


@pytest.mark.asyncio
async def test_ping_before_auth(hub, make_transport):
    transport = make_transport()
    connection = hub.open_connection(transport)

    await hub.handle_frame(connection, '{"type":"ping"}')

    assert len(transport.sent) == 1
    assert transport.sent[0]["type"] == "pong"
    assert connection.state == ConnectionState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_malformed_frames_are_dropped(hub, make_transport):
    transport = make_transport()
    connection = hub.open_connection(transport)

    await hub.handle_frame(connection, "not json at all")
    await hub.handle_frame(connection, "[1,2,3]")
    await hub.handle_frame(connection, b"\xff\xff")

    assert transport.sent == []
    assert not transport.closed


@pytest.mark.asyncio
async def test_non_string_type_is_dropped(hub, authenticate):
    connection, transport = await authenticate("alpha")

    await hub.handle_frame(connection, '{"type": ["event"]}')
    await hub.handle_frame(connection, '{"type": {"x": 1}}')
    await hub.handle_frame(connection, {"type": None})
    await hub.handle_frame(connection, {"type": "ping"})

    assert [f["type"] for f in transport.sent] == ["auth_result", "pong"]
    assert connection.is_authenticated
    assert hub.registry.resolve("alpha") is connection


# =============================================================================
# Telemetry
# =============================================================================

@pytest.mark.asyncio
async def test_event_and_state_are_recorded(hub, authenticate):
    connection, transport = await authenticate("alpha")

    await hub.handle_frame(connection, {
        "type": "event", "eventType": "player_join", "payload": {"player": "Steve"},
    })
    await hub.handle_frame(connection, {"type": "state", "payload": {"online": 1}})

    assert transport.sent == [{"type": "auth_result", "ok": True}]
    events = hub.get_events("alpha")
    assert [e.event_type for e in events] == ["connected", "player_join"]
    assert events[-1].payload == {"player": "Steve"}
    assert hub.get_state("alpha").payload == {"online": 1}


@pytest.mark.asyncio
async def test_event_type_defaults_to_unknown(hub, authenticate):
    connection, _ = await authenticate("alpha")

    await hub.handle_frame(connection, {"type": "event", "payload": "junk"})

    last = hub.get_events("alpha")[-1]
    assert last.event_type == "unknown"
    assert last.payload == {}


@pytest.mark.asyncio
async def test_frames_update_last_seen(hub, authenticate):
    connection, _ = await authenticate("alpha")
    connection.last_seen = 0

    await hub.handle_frame(connection, {"type": "ping"})

    assert connection.last_seen > 0


@pytest.mark.asyncio
async def test_concurrent_servers_are_isolated(hub, authenticate):
    alpha, alpha_transport = await authenticate("alpha")
    beta, beta_transport = await authenticate("beta")

    await hub.handle_frame(alpha, {"type": "event", "eventType": "a_only"})
    await hub.handle_frame(beta, {"type": "state", "payload": {"who": "beta"}})

    assert [e.event_type for e in hub.get_events("beta")] == ["connected"]
    assert hub.get_state("alpha") is None
    assert hub.get_state("beta").payload == {"who": "beta"}
    assert {t.tenant_id for t in hub.list_tenants()} == {"alpha", "beta"}


# =============================================================================
# Close
# =============================================================================

@pytest.mark.asyncio
async def test_close_records_disconnect_once(hub, authenticate):
    connection, _ = await authenticate("alpha")

    hub.close_connection(connection)
    hub.close_connection(connection)

    events = hub.get_events("alpha")
    assert [e.event_type for e in events] == ["connected", "disconnected"]
    assert hub.registry.resolve("alpha") is None


@pytest.mark.asyncio
async def test_frames_after_close_are_ignored(hub, authenticate):
    connection, transport = await authenticate("alpha")
    hub.close_connection(connection)

    await hub.handle_frame(connection, {"type": "ping"})
    await hub.handle_frame(connection, {"type": "state", "payload": {"online": 9}})

    assert transport.frames_of("pong") == []
    assert hub.get_state("alpha") is None


@pytest.mark.asyncio
async def test_close_unauthenticated_leaves_no_trace(hub, make_transport):
    connection = hub.open_connection(make_transport())

    hub.close_connection(connection)

    assert connection.is_closed
    assert hub.telemetry.servers() == []


@pytest.mark.asyncio
async def test_superseded_close_keeps_new_connection(hub, authenticate):
    old, old_transport = await authenticate("alpha")
    new, _ = await authenticate("alpha")

    assert hub.registry.resolve("alpha") is new
    assert not old_transport.closed

    hub.close_connection(old)

    assert hub.registry.resolve("alpha") is new
    assert [e.event_type for e in hub.get_events("alpha")] == [
        "connected", "connected", "disconnected",
    ]


@pytest.mark.asyncio
async def test_close_superseded_option(credential_store, make_transport):
    hub = WhitelistHub(
        credentials=credential_store,
        settings=HubSettings(close_superseded=True),
    )
    auth = {"type": "auth", "serverId": "alpha", "apiKey": "alpha-secret"}

    old_transport = make_transport()
    old = hub.open_connection(old_transport)
    await hub.handle_frame(old, auth)
    new = hub.open_connection(make_transport())
    await hub.handle_frame(new, auth)

    assert old_transport.closes == [(1000, "superseded")]
    assert hub.registry.resolve("alpha") is new


@pytest.mark.asyncio
async def test_stats(hub, authenticate):
    await authenticate("alpha")
    await authenticate("alpha")
    await authenticate("beta")

    assert hub.stats() == {"servers": 2, "connections": 3, "events": 3}
