# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Input validation for usernames, email addresses, passwords and todo text.

Every ``parse_*`` helper returns the canonical form that gets stored (trimmed,
lower-cased where uniqueness is case-insensitive) or raises a ``ValueError``
subclass whose message is safe to show in a form.
"""

from __future__ import annotations

import re

import regex
from email_validator import EmailNotValidError, validate_email

MAX_USERNAME_LENGTH = 64
MIN_PASSWORD_LENGTH = 12
MAX_PASSWORD_LENGTH = 256
MAX_TODO_LENGTH = 1000

_USERNAME_RE = re.compile(r"^[a-z0-9._-]+$")
_GRAPHEME_RE = regex.compile(r"\X")


class InvalidUsernameError(ValueError):
    pass


class InvalidEmailError(ValueError):
    pass


class InvalidPasswordError(ValueError):
    pass


class InvalidTodoError(ValueError):
    pass


def canon_username(s: str) -> str:
    """Canonicalise usernames for comparisons (trim + lower)."""
    return (s or "").strip().lower()


def parse_username(raw: str) -> str:
    username = canon_username(raw)
    if not username:
        raise InvalidUsernameError("Username cannot be empty.")
    if len(username) > MAX_USERNAME_LENGTH:
        raise InvalidUsernameError(f"Username cannot be longer than {MAX_USERNAME_LENGTH} characters.")
    if not _USERNAME_RE.match(username):
        raise InvalidUsernameError("Username may only contain letters, digits, '-', '_' and '.'.")
    return username


def parse_email(raw: str) -> str:
    email = (raw or "").strip().lower()
    if not email:
        raise InvalidEmailError("Email cannot be empty.")
    try:
        info = validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        raise InvalidEmailError(f"Invalid email address: {e}") from e
    return info.normalized.lower()


def grapheme_length(s: str) -> int:
    """Number of user-perceived characters (extended grapheme clusters)."""
    return len(_GRAPHEME_RE.findall(s or ""))


def parse_password(raw: str) -> str:
    # Passwords are never trimmed: whitespace is part of the secret.
    pw = raw or ""
    if not pw:
        raise InvalidPasswordError("Password cannot be empty.")
    length = grapheme_length(pw)
    if length < MIN_PASSWORD_LENGTH:
        raise InvalidPasswordError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
    if length > MAX_PASSWORD_LENGTH:
        raise InvalidPasswordError(f"Password cannot be longer than {MAX_PASSWORD_LENGTH} characters.")
    return pw


def parse_todo_content(raw: str) -> str:
    content = (raw or "").strip()
    if not content:
        raise InvalidTodoError("A todo needs some text.")
    if len(content) > MAX_TODO_LENGTH:
        raise InvalidTodoError(f"A todo cannot be longer than {MAX_TODO_LENGTH} characters.")
    return content
