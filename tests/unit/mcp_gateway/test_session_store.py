from __future__ import annotations

import uuid

import pytest

from apps.mcp_gateway.service.sessions import SessionStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_resolve_uses_caller_header() -> None:
    assert SessionStore.resolve("  abc-123 ") == "abc-123"


@pytest.mark.parametrize("header", [None, "", "   "])
def test_resolve_generates_fresh_ids(header: str | None) -> None:
    first = SessionStore.resolve(header)
    second = SessionStore.resolve(header)

    assert first != second
    uuid.UUID(first)


def test_touch_creates_unknown_sessions_lazily() -> None:
    clock = FakeClock()
    store = SessionStore(clock=clock)

    session = store.touch("never-issued")

    assert session.id == "never-issued"
    assert session.created_at == session.last_activity == 1000.0
    assert "never-issued" in store
    assert len(store) == 1


def test_touch_updates_last_activity() -> None:
    clock = FakeClock()
    store = SessionStore(clock=clock)
    store.touch("s1")

    clock.now += 30
    session = store.touch("s1")

    assert session.created_at == 1000.0
    assert session.last_activity == 1030.0
    assert len(store) == 1


def test_idle_sessions_expire_after_ttl() -> None:
    clock = FakeClock()
    store = SessionStore(ttl_seconds=60, sweep_interval_seconds=10, clock=clock)
    store.touch("idle")
    store.touch("busy")

    clock.now += 45
    store.touch("busy")
    clock.now += 30

    assert store.get("idle") is None
    assert store.get("busy") is not None
    assert store.sweep() == 1
    assert "idle" not in store
    assert len(store) == 1


def test_touch_sweeps_lazily_once_per_interval() -> None:
    clock = FakeClock()
    store = SessionStore(ttl_seconds=10, sweep_interval_seconds=100, clock=clock)
    store.touch("old")

    clock.now += 50
    store.touch("new")
    assert len(store) == 2

    clock.now += 60
    store.touch("new")
    assert len(store) == 1


def test_zero_ttl_never_expires() -> None:
    clock = FakeClock()
    store = SessionStore(ttl_seconds=0, clock=clock)
    store.touch("forever")

    clock.now += 10_000_000

    assert store.get("forever") is not None
    assert store.sweep() == 0


def test_negative_settings_are_rejected() -> None:
    with pytest.raises(ValueError):
        SessionStore(ttl_seconds=-1)
    with pytest.raises(ValueError):
        SessionStore(sweep_interval_seconds=-1)
