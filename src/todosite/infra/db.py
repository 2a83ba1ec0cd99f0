# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Engine, session factory and schema bootstrap.

The engine (and its connection pool) is created lazily from ``DATABASE_URL``
and shared by every request.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from todosite.infra.models import Base

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./data/todo.db"

SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)

_ENGINE: Optional[Engine] = None


def database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record) -> None:
    # ON DELETE CASCADE is a no-op in SQLite unless this is set per connection.
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str) -> Engine:
    u = make_url(url)
    connect_args = {}
    if u.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if u.database and u.database != ":memory:":
            Path(u.database).parent.mkdir(parents=True, exist_ok=True)

    echo = os.getenv("DATABASE_ECHO", "false").lower() in {"1", "true", "yes", "y"}
    engine = create_engine(url, echo=echo, connect_args=connect_args, pool_pre_ping=True)
    if u.get_backend_name() == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_engine() -> Engine:
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = build_engine(database_url())
    return _ENGINE


def reset_engine() -> None:
    """Dispose the shared engine so the next call rebuilds it from the environment."""
    global _ENGINE
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None


def init_db() -> None:
    engine = get_engine()
    logger.info("Creating tables on %s", engine.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    db = SessionLocal(bind=get_engine())
    try:
        yield db
    finally:
        db.close()


def get_db() -> Iterator[Session]:
    """FastAPI dependency: one session per request."""
    with session_scope() as db:
        yield db
