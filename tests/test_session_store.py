"""Tests for the in-memory screening session store."""
import pytest

from database.session_store import SessionStore
from utils.exceptions import SessionNotFoundError


def new_session(store, session_id="s1", **fields):
    defaults = {
        "image_key": f"{session_id}.png",
        "content_type": "image/png",
        "customer_image_url": f"http://testserver/image/{session_id}",
    }
    defaults.update(fields)
    return store.create(session_id, **defaults)


def test_create_and_get(session_store, clock):
    created = new_session(session_store, similar_image_urls=["https://a"])
    fetched = session_store.get("s1")

    assert fetched is created
    assert fetched.similar_image_urls == ["https://a"]
    assert fetched.created_at == clock.now
    assert fetched.item_type is None


def test_get_unknown_session(session_store):
    with pytest.raises(SessionNotFoundError) as exc_info:
        session_store.get("missing")
    assert exc_info.value.status_code == 404


def test_update_refreshes_expiry(session_store, clock):
    new_session(session_store)
    clock.advance(3000)
    session_store.update("s1", item_type="Art")
    clock.advance(3000)

    session = session_store.get("s1")
    assert session.item_type == "Art"
    assert session.updated_at == 4000.0


def test_session_expires_after_ttl(session_store, clock):
    new_session(session_store)
    clock.advance(3601)

    assert "s1" not in session_store
    with pytest.raises(SessionNotFoundError):
        session_store.get("s1")


def test_purge_expired_counts_removed(session_store, clock):
    new_session(session_store, "a")
    clock.advance(2000)
    new_session(session_store, "b")
    clock.advance(2000)

    assert session_store.purge_expired() == 1
    assert len(session_store) == 1


def test_update_rejects_unknown_or_fixed_fields(session_store):
    new_session(session_store)
    with pytest.raises(AttributeError):
        session_store.update("s1", colour="red")
    with pytest.raises(AttributeError):
        session_store.update("s1", session_id="other")


def test_update_unknown_session(session_store):
    with pytest.raises(SessionNotFoundError):
        session_store.update("missing", analysis="text")


def test_evicts_least_recently_updated_when_full(clock):
    store = SessionStore(ttl_seconds=3600, max_sessions=2, clock=clock)
    new_session(store, "a")
    new_session(store, "b")
    store.update("a", analysis="keep me")
    new_session(store, "c")

    assert "a" in store
    assert "b" not in store
    assert "c" in store


def test_delete(session_store):
    new_session(session_store)
    assert session_store.delete("s1") is True
    assert session_store.delete("s1") is False


def test_eviction_listener_sees_expired_session(session_store, clock):
    evicted = []
    session_store.add_eviction_listener(lambda session: evicted.append(session.image_key))
    new_session(session_store)
    clock.advance(3601)

    assert len(session_store) == 0
    assert evicted == ["s1.png"]


def test_eviction_listener_sees_size_eviction_and_delete(clock):
    store = SessionStore(ttl_seconds=3600, max_sessions=1, clock=clock)
    evicted = []
    store.add_eviction_listener(lambda session: evicted.append(session.session_id))

    new_session(store, "a")
    new_session(store, "b")
    store.delete("b")
    store.delete("b")

    assert evicted == ["a", "b"]


def test_failing_eviction_listener_does_not_break_store(session_store, clock):
    def broken(session):
        raise RuntimeError("cleanup failed")

    session_store.add_eviction_listener(broken)
    new_session(session_store)
    clock.advance(3601)

    with pytest.raises(SessionNotFoundError):
        session_store.get("s1")
