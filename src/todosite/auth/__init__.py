# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication helpers.

This package provides:
- Password hashing/verification (argon2)
- User accounts backed by the ``user_info`` and ``user_password`` tables
- Signed session cookies (itsdangerous) pointing at server-side sessions
- Session stores (redis, or in-memory for development)
"""
