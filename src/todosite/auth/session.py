# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Signed session cookies.

The cookie only carries an opaque session id; the session payload itself lives
in the session store (see ``todosite.auth.store``).
"""

from __future__ import annotations

import os
from typing import Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

COOKIE_NAME = os.getenv("TODO_COOKIE_NAME", "todo_session")
DEFAULT_MAX_AGE_SECONDS = 86400  # 24 hours


def session_max_age() -> int:
    return int(os.getenv("TODO_SESSION_MAX_AGE", str(DEFAULT_MAX_AGE_SECONDS)))


def _serializer() -> URLSafeTimedSerializer:
    secret = os.getenv("SECRET_KEY") or os.getenv("TODO_SECRET_KEY")
    if not secret:
        raise RuntimeError("SECRET_KEY (or TODO_SECRET_KEY) is not set")
    salt = os.getenv("TODO_SESSION_SALT", "todosite.session.v1")
    return URLSafeTimedSerializer(secret_key=secret, salt=salt)


def sign_session(session_id: str) -> str:
    s = _serializer()
    return s.dumps({"sid": session_id})


def verify_session(token: str, *, max_age: Optional[int] = None) -> Optional[str]:
    """Return the session id carried by a cookie, or None if it is forged or expired."""
    if not token:
        return None
    s = _serializer()
    try:
        data = s.loads(token, max_age=max_age if max_age is not None else session_max_age())
    except (BadSignature, BadTimeSignature):
        return None
    sid = (data or {}).get("sid") if isinstance(data, dict) else None
    sid = str(sid or "").strip()
    return sid or None
