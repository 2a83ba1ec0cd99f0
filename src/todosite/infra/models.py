# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""SQLAlchemy models for users, password credentials and todos.

``updated_at`` columns are owned by the database: the triggers attached at the
bottom of this module stamp them on every UPDATE, on PostgreSQL and SQLite.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    DDL,
    Boolean,
    Column,
    DateTime,
    FetchedValue,
    ForeignKey,
    Index,
    Text,
    Uuid,
    event,
    false,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow() -> datetime:
    # CURRENT_TIMESTAMP on SQLite only has second precision; list order needs more.
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "user_info"

    user_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, server_onupdate=FetchedValue())

    password = relationship("UserPassword", back_populates="user", uselist=False, passive_deletes=True)
    todos = relationship("Todo", back_populates="owner", passive_deletes=True)


class UserPassword(Base):
    __tablename__ = "user_password"

    user_id = Column(Uuid, ForeignKey("user_info.user_id", ondelete="CASCADE"), primary_key=True)
    password_hash = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), nullable=True, server_default=func.now(), server_onupdate=FetchedValue()
    )

    user = relationship("User", back_populates="password")


class Todo(Base):
    __tablename__ = "todo"

    todo_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("user_info.user_id", ondelete="CASCADE"), nullable=False, index=True)
    todo_content = Column(Text, nullable=False)
    is_completed = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=True, server_default=func.now(), server_onupdate=FetchedValue()
    )

    owner = relationship("User", back_populates="todos")


# Case-insensitive uniqueness
Index("uq_user_info_username_lower", func.lower(User.__table__.c.username), unique=True)
Index("uq_user_info_email_lower", func.lower(User.__table__.c.email), unique=True)


# --- updated_at triggers ---

_PG_SET_UPDATED_AT = DDL(
    """
    CREATE OR REPLACE FUNCTION set_updated_at() RETURNS trigger AS $$
    BEGIN
        NEW.updated_at = NOW();
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql
    """
).execute_if(dialect="postgresql")

_PG_TRIGGER = """
CREATE TRIGGER set_updated_at
    BEFORE UPDATE ON %(table)s
    FOR EACH ROW
    WHEN (OLD IS DISTINCT FROM NEW)
    EXECUTE FUNCTION set_updated_at()
"""

# recursive_triggers is off by default, so the inner UPDATE does not re-fire.
_SQLITE_TRIGGER = """
CREATE TRIGGER IF NOT EXISTS %(table)s_set_updated_at
    AFTER UPDATE ON %(table)s
    FOR EACH ROW
    WHEN NEW.updated_at IS OLD.updated_at
BEGIN
    UPDATE %(table)s SET updated_at = CURRENT_TIMESTAMP WHERE rowid = NEW.rowid;
END
"""

event.listen(Base.metadata, "before_create", _PG_SET_UPDATED_AT)

for _table in (User.__table__, UserPassword.__table__, Todo.__table__):
    event.listen(_table, "after_create", DDL(_PG_TRIGGER).execute_if(dialect="postgresql"))
    event.listen(_table, "after_create", DDL(_SQLITE_TRIGGER).execute_if(dialect="sqlite"))
