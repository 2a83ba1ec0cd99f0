# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""User accounts stored in ``user_info`` + ``user_password``.

Registration, credential checks, password changes and account deletion. All
functions take an open SQLAlchemy session and commit their own work.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from todosite.auth.passwords import hash_password, needs_rehash, verify_password
from todosite.core.validation import canon_username, parse_email, parse_password, parse_username
from todosite.infra.models import User, UserPassword

logger = logging.getLogger(__name__)


class RegistrationError(ValueError):
    pass


class UsernameTakenError(RegistrationError):
    def __init__(self) -> None:
        super().__init__("That username is already taken.")


class EmailTakenError(RegistrationError):
    def __init__(self) -> None:
        super().__init__("That email address is already registered.")


@dataclass(frozen=True)
class UserRecord:
    user_id: uuid.UUID
    username: str
    email: str
    password_hash: str


def _credentials_query():
    return select(User.user_id, User.username, User.email, UserPassword.password_hash).join(
        UserPassword, UserPassword.user_id == User.user_id
    )


def _to_record(row) -> UserRecord:
    return UserRecord(
        user_id=row.user_id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
    )


def username_exists(db: Session, username: str) -> bool:
    q = select(User.user_id).where(func.lower(User.username) == canon_username(username))
    return db.execute(q).first() is not None


def email_exists(db: Session, email: str) -> bool:
    q = select(User.user_id).where(func.lower(User.email) == (email or "").strip().lower())
    return db.execute(q).first() is not None


def get_user(db: Session, user_id: uuid.UUID) -> Optional[UserRecord]:
    row = db.execute(_credentials_query().where(User.user_id == user_id)).first()
    return _to_record(row) if row else None


def get_user_by_username(db: Session, username: str) -> Optional[UserRecord]:
    u = canon_username(username)
    if not u:
        return None
    row = db.execute(_credentials_query().where(func.lower(User.username) == u)).first()
    return _to_record(row) if row else None


def register_user(db: Session, *, username: str, email: str, password: str) -> UserRecord:
    """Validate and store a new user with its password credential.

    Raises ``InvalidUsernameError``/``InvalidEmailError``/``InvalidPasswordError``
    for bad input and ``UsernameTakenError``/``EmailTakenError`` for duplicates.
    """
    uname = parse_username(username)
    mail = parse_email(email)
    pw = parse_password(password)

    if username_exists(db, uname):
        raise UsernameTakenError()
    if email_exists(db, mail):
        raise EmailTakenError()

    ph = hash_password(pw)
    user = User(user_id=uuid.uuid4(), username=uname, email=mail)
    user.password = UserPassword(password_hash=ph)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # Lost a race against a concurrent registration.
        if username_exists(db, uname):
            raise UsernameTakenError() from e
        if email_exists(db, mail):
            raise EmailTakenError() from e
        raise

    logger.info("Registered user %s", uname)
    return UserRecord(user_id=user.user_id, username=uname, email=mail, password_hash=ph)


def authenticate(db: Session, username: str, password: str) -> Optional[UserRecord]:
    u = get_user_by_username(db, username)
    if not u:
        return None
    if not verify_password(u.password_hash, password):
        return None
    if needs_rehash(u.password_hash):
        return _store_password_hash(db, u, hash_password(password))
    return u


def _store_password_hash(db: Session, user: UserRecord, new_hash: str) -> UserRecord:
    cred = db.get(UserPassword, user.user_id)
    cred.password_hash = new_hash
    db.commit()
    return UserRecord(user_id=user.user_id, username=user.username, email=user.email, password_hash=new_hash)


def change_password(db: Session, user_id: uuid.UUID, *, current_password: str, new_password: str) -> UserRecord:
    u = get_user(db, user_id)
    if not u:
        raise LookupError("User not found")
    if not verify_password(u.password_hash, current_password):
        raise PermissionError("Current password is incorrect.")
    pw = parse_password(new_password)
    updated = _store_password_hash(db, u, hash_password(pw))
    logger.info("Password changed for user %s", u.username)
    return updated


def delete_user(db: Session, user_id: uuid.UUID) -> bool:
    """Delete a user; the database cascades to their todos and credential row."""
    res = db.execute(delete(User).where(User.user_id == user_id))
    db.commit()
    deleted = (res.rowcount or 0) > 0
    if deleted:
        logger.info("Deleted user %s", user_id)
    return deleted
