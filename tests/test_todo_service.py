import uuid

import pytest

from conftest import PASSWORD
from todosite.auth.users import register_user
from todosite.core.validation import InvalidTodoError
from todosite.services.todo_service import (
    TodoNotFoundError,
    create_todo,
    delete_todo,
    get_todo,
    list_todos,
    set_completed,
    toggle_todo,
)


@pytest.fixture()
def users(db):
    alice = register_user(db, username="alice", email="alice@mail.com", password=PASSWORD)
    bob = register_user(db, username="bob", email="bob@mail.com", password=PASSWORD)
    return alice, bob


def test_create_and_list(db, users):
    alice, bob = users
    t = create_todo(db, alice.user_id, "  buy milk  ")
    assert t.todo_content == "buy milk"
    assert t.is_completed is False
    assert t.created_at is not None

    create_todo(db, alice.user_id, "walk dog")
    assert {x.todo_content for x in list_todos(db, alice.user_id)} == {"buy milk", "walk dog"}
    assert list_todos(db, bob.user_id) == []


def test_list_is_newest_first(db, users):
    alice, _ = users
    for content in ("first", "second", "third"):
        create_todo(db, alice.user_id, content)
    assert [t.todo_content for t in list_todos(db, alice.user_id)] == ["third", "second", "first"]


def test_create_rejects_empty_content(db, users):
    alice, _ = users
    with pytest.raises(InvalidTodoError):
        create_todo(db, alice.user_id, "   ")


def test_toggle_persists(db, users):
    alice, _ = users
    t = create_todo(db, alice.user_id, "buy milk")
    assert toggle_todo(db, alice.user_id, t.todo_id) is True
    db.expire_all()
    assert get_todo(db, alice.user_id, t.todo_id).is_completed is True
    assert toggle_todo(db, alice.user_id, t.todo_id) is False
    db.expire_all()
    assert get_todo(db, alice.user_id, t.todo_id).is_completed is False


def test_set_completed(db, users):
    alice, _ = users
    t = create_todo(db, alice.user_id, "buy milk")
    set_completed(db, alice.user_id, t.todo_id, True)
    set_completed(db, alice.user_id, t.todo_id, True)
    db.expire_all()
    assert get_todo(db, alice.user_id, t.todo_id).is_completed is True


def test_delete(db, users):
    alice, _ = users
    t = create_todo(db, alice.user_id, "buy milk")
    delete_todo(db, alice.user_id, t.todo_id)
    assert list_todos(db, alice.user_id) == []
    with pytest.raises(TodoNotFoundError):
        delete_todo(db, alice.user_id, t.todo_id)


def test_other_users_todos_are_not_reachable(db, users):
    alice, bob = users
    t = create_todo(db, alice.user_id, "private")
    with pytest.raises(TodoNotFoundError):
        get_todo(db, bob.user_id, t.todo_id)
    with pytest.raises(TodoNotFoundError):
        toggle_todo(db, bob.user_id, t.todo_id)
    with pytest.raises(TodoNotFoundError):
        set_completed(db, bob.user_id, t.todo_id, True)
    with pytest.raises(TodoNotFoundError):
        delete_todo(db, bob.user_id, t.todo_id)
    with pytest.raises(TodoNotFoundError):
        toggle_todo(db, alice.user_id, uuid.uuid4())
    db.expire_all()
    assert get_todo(db, alice.user_id, t.todo_id).is_completed is False
