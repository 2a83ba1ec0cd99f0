#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass

from dotenv import load_dotenv

from todosite.auth.users import register_user
from todosite.infra.db import database_url, init_db, session_scope
from todosite.logger import setup_logging


def main() -> None:
    load_dotenv()
    setup_logging()
    init_db()

    username = input("Username: ").strip()
    email = input("Email: ").strip()

    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")

    with session_scope() as db:
        try:
            u = register_user(db, username=username, email=email, password=pw1)
        except ValueError as e:
            raise SystemExit(str(e))

    print(f"OK -> {u.username} ({u.user_id}) in {database_url()}")


if __name__ == "__main__":
    main()
