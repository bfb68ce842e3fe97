"""
Pytest fixtures for Whitelist Hub tests.
"""

import json

import pytest

from whitelist_hub.config import CredentialBackend, HubSettings
from whitelist_hub.credentials import InMemoryCredentialStore
from whitelist_hub.hub import WhitelistHub
from whitelist_hub.session.ports import AgentTransport

API_KEYS = {
    "alpha": "alpha-secret",
    "beta": "beta-secret",
    "default": "legacy-secret",
}


class MockTransport(AgentTransport):
    """Records outbound frames and close requests instead of doing I/O."""

    def __init__(self, fail_sends: bool = False):
        self.sent: list[dict] = []
        self.closes: list[tuple[int, str]] = []
        self.fail_sends = fail_sends

    def send(self, text: str) -> None:
        if self.fail_sends:
            raise RuntimeError("socket gone")
        self.sent.append(json.loads(text))

    def close(self, code: int = 1000, reason: str = "") -> None:
        self.closes.append((code, reason))

    @property
    def closed(self) -> bool:
        return bool(self.closes)

    def frames_of(self, frame_type: str) -> list[dict]:
        return [f for f in self.sent if f.get("type") == frame_type]


@pytest.fixture
def make_transport():
    """Factory for MockTransport instances."""
    def _make(fail_sends: bool = False) -> MockTransport:
        return MockTransport(fail_sends=fail_sends)
    return _make


@pytest.fixture
def credential_store():
    return InMemoryCredentialStore(dict(API_KEYS))


@pytest.fixture
def settings():
    return HubSettings(
        credential_backend=CredentialBackend.MEMORY,
        max_events=500,
        auth_timeout_seconds=1.0,
    )


@pytest.fixture
def hub(credential_store, settings):
    return WhitelistHub(credentials=credential_store, settings=settings)


@pytest.fixture
def authenticate(hub, make_transport):
    """Open a connection and authenticate it as ``server_id``."""
    async def _authenticate(server_id: str, api_key: str | None = None):
        transport = make_transport()
        connection = hub.open_connection(transport)
        await hub.handle_frame(connection, {
            "type": "auth",
            "serverId": server_id,
            "apiKey": api_key if api_key is not None else API_KEYS[server_id],
        })
        return connection, transport
    return _authenticate
