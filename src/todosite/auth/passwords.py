# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import hashlib

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_PH = PasswordHasher()


def hash_password(plain: str) -> str:
    if not plain:
        raise ValueError("Empty password")
    return _PH.hash(plain)


def verify_password(hash_value: str, plain: str) -> bool:
    if not hash_value or not plain:
        return False
    try:
        return _PH.verify(hash_value, plain)
    except (VerificationError, InvalidHashError):
        return False


def needs_rehash(hash_value: str) -> bool:
    return _PH.check_needs_rehash(hash_value)


def auth_hash(hash_value: str) -> str:
    """Fingerprint of a stored password hash, kept in the session payload.

    Sessions whose fingerprint no longer matches the user's current hash are
    rejected, so a password change logs out every other session.
    """
    return hashlib.sha256((hash_value or "").encode("utf-8")).hexdigest()
