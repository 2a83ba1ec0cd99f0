import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from todosite.auth.store import MemorySessionStore, set_session_store
from todosite.infra.db import init_db, reset_engine, session_scope

PASSWORD = "correct horse battery staple"


@pytest.fixture()
def env(tmp_path: Path, monkeypatch):
    """
    Point the app at a throwaway SQLite file and a fresh in-memory session store.
    """
    monkeypatch.setenv("SECRET_KEY", "test-secret-key")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'todo.db'}")
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.setenv("TODO_SESSION_BACKEND", "memory")
    monkeypatch.delenv("TODO_SESSION_MAX_AGE", raising=False)
    reset_engine()
    store = MemorySessionStore()
    set_session_store(store)
    yield store
    reset_engine()
    set_session_store(None)


@pytest.fixture()
def db(env):
    init_db()
    with session_scope() as s:
        yield s


@pytest.fixture()
def client(env):
    from todosite.app import app

    with TestClient(app) as c:
        yield c


def register(client, username="alice", email="alice@mail.com", password=PASSWORD, **kw):
    return client.post(
        "/register",
        data={"username": username, "email": email, "password": password},
        follow_redirects=False,
        **kw,
    )


def login(client, username="alice", password=PASSWORD, next="/todo"):
    return client.post(
        "/login",
        data={"username": username, "password": password, "next": next},
        follow_redirects=False,
    )


@pytest.fixture()
def logged_in(client):
    """A client with a registered and logged-in user 'alice'."""
    assert register(client).status_code == 303
    assert login(client).status_code == 303
    return client
