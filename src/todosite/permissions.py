# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import hmac
import logging
import os
import uuid
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from fastapi import HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError

from todosite.auth.passwords import auth_hash
from todosite.auth.session import COOKIE_NAME, session_max_age, sign_session, verify_session
from todosite.auth.store import SessionStoreError, get_session_store
from todosite.auth.users import UserRecord, get_user
from todosite.infra.db import session_scope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    user_id: uuid.UUID
    username: str
    email: str
    session_id: str


def _user_from_session(sid: str) -> Optional[CurrentUser]:
    payload = get_session_store().get(sid)
    if not payload:
        return None
    try:
        user_id = uuid.UUID(str(payload.get("user_id") or ""))
    except ValueError:
        return None
    with session_scope() as db:
        u = get_user(db, user_id)
    if not u:
        return None
    if not hmac.compare_digest(str(payload.get("auth_hash") or ""), auth_hash(u.password_hash)):
        return None
    return CurrentUser(user_id=u.user_id, username=u.username, email=u.email, session_id=sid)


def load_user_from_request(request: Request) -> Optional[CurrentUser]:
    token = request.cookies.get(COOKIE_NAME, "")
    sid = verify_session(token)
    if not sid:
        return None
    try:
        return _user_from_session(sid)
    except SessionStoreError:
        logger.exception("Session store lookup failed")
    except SQLAlchemyError:
        logger.exception("User lookup failed while authenticating request")
    return None


def current_user_optional(request: Request) -> Optional[CurrentUser]:
    u = getattr(request.state, "user", None)
    if u is not None:
        return u
    return load_user_from_request(request)


def require_user(request: Request) -> CurrentUser:
    u = current_user_optional(request)
    if u:
        return u
    next_url = str(request.url.path)
    if request.url.query:
        next_url += "?" + request.url.query
    loc = f"/login?next={quote(next_url, safe='/')}"
    raise HTTPException(status_code=303, headers={"Location": loc})


def safe_next(next_url: str, default: str = "/todo") -> str:
    """Only allow local redirect targets."""
    n = (next_url or "").strip()
    if not n.startswith("/") or n.startswith("//") or "\\" in n:
        return default
    return n


def start_session(user: UserRecord) -> str:
    """Create a server-side session for ``user`` and return the signed cookie value."""
    sid = get_session_store().create(
        {"user_id": str(user.user_id), "auth_hash": auth_hash(user.password_hash)},
        ttl=session_max_age(),
    )
    return sign_session(sid)


def end_session(sid: str) -> None:
    try:
        get_session_store().delete(sid)
    except SessionStoreError:
        logger.exception("Could not delete session")


def cookie_settings() -> dict:
    secure = os.getenv("TODO_COOKIE_SECURE", "false").lower() in {"1", "true", "yes", "y"}
    if os.getenv("TODO_ENV", "development").strip().lower() == "production":
        secure = True
    return {"httponly": True, "samesite": "lax", "secure": secure, "max_age": session_max_age()}
