"""Tests for the in-memory session store."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from face_verify.domain.errors import SessionNotFound
from face_verify.services.store import (
    SESSION_ID_ALPHABET,
    SESSION_ID_LENGTH,
    SessionStore,
    generate_session_id,
)
from tests.conftest import FixedClock


def test_generate_session_id_format() -> None:
    session_id = generate_session_id()
    assert len(session_id) == SESSION_ID_LENGTH
    assert set(session_id) <= set(SESSION_ID_ALPHABET)


def test_create_regenerates_on_collision(clock: FixedClock) -> None:
    ids = iter(["abcd1234", "ABCD1234", "ZZZZ9999"])
    store = SessionStore(clock=clock, id_factory=lambda: next(ids))

    first = store.create("owner-1", duration_seconds=60, capacity=10)
    second = store.create("owner-2", duration_seconds=60, capacity=10)

    assert first.id == "ABCD1234"
    assert second.id == "ZZZZ9999"
    assert store.count() == 2


def test_get_returns_snapshot_and_normalizes_id(store: SessionStore) -> None:
    session = store.create("owner", duration_seconds=60, capacity=10)

    snapshot = store.get(session.id.lower())
    assert snapshot is not None
    snapshot.participants.append("not-stored")  # type: ignore[arg-type]

    fresh = store.get(session.id)
    assert fresh is not None
    assert fresh.participants == []


def test_mutate_missing_session_raises(store: SessionStore) -> None:
    with pytest.raises(SessionNotFound):
        store.mutate("MISSING1", lambda session: None)


def test_delete(store: SessionStore) -> None:
    session = store.create("owner", duration_seconds=60, capacity=10)
    assert store.delete(session.id) is True
    assert store.delete(session.id) is False
    assert store.get(session.id) is None


def test_sweep_removes_only_expired(store: SessionStore, clock: FixedClock) -> None:
    short = store.create("owner-1", duration_seconds=60, capacity=10)
    clock.advance(30)
    long = store.create("owner-2", duration_seconds=600, capacity=10)
    clock.advance(31)

    assert store.sweep_expired() == [short.id]
    assert store.get(short.id) is None
    assert store.get(long.id) is not None


def test_sweep_removes_malformed_sessions(
    store: SessionStore, clock: FixedClock
) -> None:
    session = store.create("owner", duration_seconds=60, capacity=10)

    def corrupt(live) -> None:
        live.created_at = None

    store.mutate(session.id, corrupt)

    assert store.sweep_expired() == [session.id]


def test_sweep_calls_hook_before_delete(
    store: SessionStore, clock: FixedClock
) -> None:
    session = store.create("owner", duration_seconds=10, capacity=10)
    seen: list[str] = []
    clock.advance(11)

    store.sweep_expired(before_delete=lambda live: seen.append(live.id))

    assert seen == [session.id]


def test_concurrent_mutations_are_serialized(store: SessionStore) -> None:
    session = store.create("owner", duration_seconds=60, capacity=1000)
    barrier = threading.Barrier(8)

    def append(index: int) -> None:
        barrier.wait()
        for offset in range(50):

            def apply(live) -> None:
                current = list(live.participants)
                current.append((index, offset))
                live.participants = current

            store.mutate(session.id, apply)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(append, range(8)))

    final = store.get(session.id)
    assert final is not None
    assert len(final.participants) == 400
