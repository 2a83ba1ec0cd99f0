import pytest

from todosite.auth.store import (
    MemorySessionStore,
    RedisSessionStore,
    SESSION_KEY_PREFIX,
    build_session_store,
)


def _exercise(store):
    a1 = store.create({"user_id": "u1", "auth_hash": "h"}, ttl=60)
    a2 = store.create({"user_id": "u1", "auth_hash": "h"}, ttl=60)
    b1 = store.create({"user_id": "u2", "auth_hash": "h"}, ttl=60)
    assert len({a1, a2, b1}) == 3

    assert store.get(a1) == {"user_id": "u1", "auth_hash": "h"}
    assert store.get("missing") is None

    store.delete(a1)
    assert store.get(a1) is None
    assert store.get(a2) is not None

    assert store.delete_for_user("u1") == 1
    assert store.get(a2) is None
    assert store.get(b1) is not None


def test_memory_store():
    _exercise(MemorySessionStore())


def test_memory_store_expires_sessions():
    store = MemorySessionStore()
    sid = store.create({"user_id": "u1"}, ttl=0)
    assert store.get(sid) is None


def test_memory_store_drops_empty_user_index():
    store = MemorySessionStore()
    a = store.create({"user_id": "u1"}, ttl=60)
    b = store.create({"user_id": "u2"}, ttl=0)
    store.delete(a)
    assert store.get(b) is None
    assert store._by_user == {}

    store.create({"user_id": "u3"}, ttl=0)
    store.create({"user_id": "u4"}, ttl=60)
    assert set(store._by_user) == {"u4"}


def test_redis_store():
    fakeredis = pytest.importorskip("fakeredis")
    client = fakeredis.FakeRedis(decode_responses=True)
    store = RedisSessionStore(client)
    _exercise(store)


def test_redis_store_sets_ttl():
    fakeredis = pytest.importorskip("fakeredis")
    client = fakeredis.FakeRedis(decode_responses=True)
    store = RedisSessionStore(client)
    sid = store.create({"user_id": "u1"}, ttl=120)
    assert 0 < client.ttl(SESSION_KEY_PREFIX + sid) <= 120


def test_redis_store_ignores_corrupt_payload():
    fakeredis = pytest.importorskip("fakeredis")
    client = fakeredis.FakeRedis(decode_responses=True)
    client.set(SESSION_KEY_PREFIX + "bad", "{not json")
    assert RedisSessionStore(client).get("bad") is None


def test_build_session_store_from_env(monkeypatch):
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("TODO_SESSION_BACKEND", raising=False)
    assert isinstance(build_session_store(), MemorySessionStore)

    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
    assert isinstance(build_session_store(), RedisSessionStore)

    monkeypatch.setenv("TODO_SESSION_BACKEND", "memcached")
    with pytest.raises(RuntimeError):
        build_session_store()
