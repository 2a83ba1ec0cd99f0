# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Session stores.

Two backends share one small interface:

- ``RedisSessionStore``: the production backend, one key per session with a TTL
  plus a per-user set so every session of a user can be dropped at once.
- ``MemorySessionStore``: process-local dict, for development and tests.

``get_session_store()`` picks the backend from the environment and keeps a
single shared instance (one connection pool per process).
"""

from __future__ import annotations

import json
import logging
import os
import secrets
import threading
import time
from typing import Any, Dict, Optional, Set, Tuple

import redis

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:"
USER_INDEX_PREFIX = "user_sessions:"


class SessionStoreError(RuntimeError):
    """The session store could not be reached or returned garbage."""


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


class MemorySessionStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._by_user: Dict[str, Set[str]] = {}

    def _unindex(self, sid: str, payload: Dict[str, Any]) -> None:
        key = str(payload.get("user_id"))
        sids = self._by_user.get(key)
        if sids is None:
            return
        sids.discard(sid)
        if not sids:
            del self._by_user[key]

    def _purge_expired(self, now: float) -> None:
        dead = [sid for sid, (exp, _) in self._data.items() if exp <= now]
        for sid in dead:
            _, payload = self._data.pop(sid)
            self._unindex(sid, payload)

    def create(self, payload: Dict[str, Any], ttl: int) -> str:
        sid = new_session_id()
        with self._lock:
            now = time.monotonic()
            self._purge_expired(now)
            self._data[sid] = (now + ttl, dict(payload))
            self._by_user.setdefault(str(payload.get("user_id")), set()).add(sid)
        return sid

    def get(self, sid: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            hit = self._data.get(sid)
            if hit is None:
                return None
            exp, payload = hit
            if exp <= time.monotonic():
                self._data.pop(sid, None)
                self._unindex(sid, payload)
                return None
            return dict(payload)

    def delete(self, sid: str) -> None:
        with self._lock:
            hit = self._data.pop(sid, None)
            if hit is not None:
                self._unindex(sid, hit[1])

    def delete_for_user(self, user_id: str) -> int:
        with self._lock:
            sids = self._by_user.pop(str(user_id), set())
            for sid in sids:
                self._data.pop(sid, None)
            return len(sids)


class RedisSessionStore:
    def __init__(self, client: "redis.Redis") -> None:
        self._r = client

    @classmethod
    def from_url(cls, url: str) -> "RedisSessionStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def create(self, payload: Dict[str, Any], ttl: int) -> str:
        sid = new_session_id()
        user_key = USER_INDEX_PREFIX + str(payload.get("user_id"))
        try:
            pipe = self._r.pipeline()
            pipe.set(SESSION_KEY_PREFIX + sid, json.dumps(payload), ex=ttl)
            pipe.sadd(user_key, sid)
            pipe.expire(user_key, ttl)
            pipe.execute()
        except redis.RedisError as e:
            raise SessionStoreError(f"Could not create session: {e}") from e
        return sid

    def get(self, sid: str) -> Optional[Dict[str, Any]]:
        try:
            raw = self._r.get(SESSION_KEY_PREFIX + sid)
        except redis.RedisError as e:
            raise SessionStoreError(f"Could not read session: {e}") from e
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable session payload")
            return None
        return data if isinstance(data, dict) else None

    def delete(self, sid: str) -> None:
        try:
            raw = self._r.getdel(SESSION_KEY_PREFIX + sid)
            if raw:
                user_id = (json.loads(raw) or {}).get("user_id")
                if user_id:
                    self._r.srem(USER_INDEX_PREFIX + str(user_id), sid)
        except redis.RedisError as e:
            raise SessionStoreError(f"Could not delete session: {e}") from e

    def delete_for_user(self, user_id: str) -> int:
        user_key = USER_INDEX_PREFIX + str(user_id)
        try:
            sids = self._r.smembers(user_key) or set()
            pipe = self._r.pipeline()
            for sid in sids:
                pipe.delete(SESSION_KEY_PREFIX + sid)
            pipe.delete(user_key)
            pipe.execute()
        except redis.RedisError as e:
            raise SessionStoreError(f"Could not delete sessions: {e}") from e
        return len(sids)


_STORE = None


def build_session_store():
    redis_url = os.getenv("REDIS_URL", "").strip()
    backend = os.getenv("TODO_SESSION_BACKEND", "redis" if redis_url else "memory").strip().lower()
    if backend == "redis":
        if not redis_url:
            raise RuntimeError("TODO_SESSION_BACKEND=redis needs REDIS_URL")
        logger.info("Using redis session store")
        return RedisSessionStore.from_url(redis_url)
    if backend == "memory":
        logger.info("Using in-memory session store")
        return MemorySessionStore()
    raise RuntimeError(f"Unknown session backend '{backend}'")


def get_session_store():
    global _STORE
    if _STORE is None:
        _STORE = build_session_store()
    return _STORE


def set_session_store(store) -> None:
    global _STORE
    _STORE = store
