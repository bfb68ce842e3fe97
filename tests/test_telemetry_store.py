"""
Tests for per-server state snapshots and event ring buffers.
"""

import pytest

from whitelist_hub.telemetry import (
    ServerEvent,
    StateSnapshot,
    TelemetryStore,
    parse_event_limit,
)


def event(n: int) -> ServerEvent:
    return ServerEvent(event_type="chat", payload={"n": n})


@pytest.fixture
def store():
    return TelemetryStore(max_events_per_server=500, default_event_limit=100)


def test_ring_buffer_evicts_oldest(store):
    for n in range(600):
        store.record_event("alpha", event(n))

    events = store.get_events("alpha", 1000)

    assert len(events) == 500
    assert events[0].payload == {"n": 100}
    assert events[-1].payload == {"n": 599}


def test_default_limit(store):
    for n in range(150):
        store.record_event("alpha", event(n))

    events = store.get_events("alpha")

    assert len(events) == 100
    assert [e.payload["n"] for e in events] == list(range(50, 150))


def test_limit_returns_most_recent_oldest_first(store):
    for n in range(10):
        store.record_event("alpha", event(n))

    assert [e.payload["n"] for e in store.get_events("alpha", 3)] == [7, 8, 9]


@pytest.mark.parametrize("limit", [0, -5, "abc", None, True, float("inf")])
def test_invalid_limit_falls_back_to_default(limit):
    assert parse_event_limit(limit, 100) == 100


def test_numeric_string_limit():
    assert parse_event_limit("25", 100) == 25


def test_limit_capped_by_capacity():
    store = TelemetryStore(max_events_per_server=5)
    for n in range(20):
        store.record_event("alpha", event(n))

    assert len(store.get_events("alpha", 50)) == 5


def test_unknown_server_is_empty(store):
    assert store.get_events("nobody") == []
    assert store.get_state("nobody") is None


def test_servers_are_isolated(store):
    store.record_event("alpha", event(1))
    store.set_state("alpha", StateSnapshot(payload={"online": 1}))

    assert store.get_events("beta") == []
    assert store.get_state("beta") is None
    assert store.servers() == ["alpha"]


def test_state_is_overwritten(store):
    store.set_state("alpha", StateSnapshot(payload={"online": 1}))
    store.set_state("alpha", StateSnapshot(payload={"online": 4}))

    assert store.get_state("alpha").payload == {"online": 4}


def test_total_events(store):
    store.record_event("alpha", event(1))
    store.record_event("beta", event(2))
    store.record_event("beta", event(3))
    assert store.total_events() == 3


def test_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        TelemetryStore(max_events_per_server=0)


def test_event_to_dict():
    recorded = ServerEvent(timestamp=1234, event_type="player_join", payload={"player": "Steve"})
    assert recorded.to_dict() == {
        "ts": 1234,
        "type": "player_join",
        "payload": {"player": "Steve"},
    }
