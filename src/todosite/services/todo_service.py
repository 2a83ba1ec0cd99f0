# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from todosite.core.validation import parse_todo_content
from todosite.infra.models import Todo


class TodoNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class TodoItem:
    todo_id: uuid.UUID
    todo_content: str
    is_completed: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


def _item(t: Todo) -> TodoItem:
    return TodoItem(
        todo_id=t.todo_id,
        todo_content=t.todo_content,
        is_completed=bool(t.is_completed),
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


def list_todos(db: Session, user_id: uuid.UUID) -> List[TodoItem]:
    """Todos of one user, newest first."""
    q = (
        select(Todo)
        .where(Todo.user_id == user_id)
        .order_by(Todo.created_at.desc(), Todo.todo_id)
    )
    return [_item(t) for t in db.scalars(q)]


def get_todo(db: Session, user_id: uuid.UUID, todo_id: uuid.UUID) -> TodoItem:
    q = (
        select(Todo)
        .where(Todo.todo_id == todo_id, Todo.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    t = db.scalars(q).first()
    if t is None:
        raise TodoNotFoundError(str(todo_id))
    return _item(t)


def create_todo(db: Session, user_id: uuid.UUID, content: str) -> TodoItem:
    text = parse_todo_content(content)
    t = Todo(todo_id=uuid.uuid4(), user_id=user_id, todo_content=text, is_completed=False)
    db.add(t)
    db.commit()
    db.refresh(t)
    return _item(t)


def set_completed(db: Session, user_id: uuid.UUID, todo_id: uuid.UUID, completed: bool) -> None:
    res = db.execute(
        update(Todo)
        .where(Todo.todo_id == todo_id, Todo.user_id == user_id)
        .values(is_completed=bool(completed))
    )
    db.commit()
    if not res.rowcount:
        raise TodoNotFoundError(str(todo_id))


def toggle_todo(db: Session, user_id: uuid.UUID, todo_id: uuid.UUID) -> bool:
    """Flip the completion flag and return the new value."""
    res = db.execute(
        update(Todo)
        .where(Todo.todo_id == todo_id, Todo.user_id == user_id)
        .values(is_completed=~Todo.is_completed)
    )
    db.commit()
    if not res.rowcount:
        raise TodoNotFoundError(str(todo_id))
    return get_todo(db, user_id, todo_id).is_completed


def delete_todo(db: Session, user_id: uuid.UUID, todo_id: uuid.UUID) -> None:
    res = db.execute(delete(Todo).where(Todo.todo_id == todo_id, Todo.user_id == user_id))
    db.commit()
    if not res.rowcount:
        raise TodoNotFoundError(str(todo_id))
