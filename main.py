#!/usr/bin/env python3
"""
User Auth -- operator command line.

Usage:
  python main.py serve [--host 127.0.0.1] [--port 8000] [--reload]
  python main.py create-user --fullname "Alice Doe" --email alice@x.com --username alice
  python main.py revoke-session alice

create-user prompts for the password (never pass it on the command line) and
creates the account without an avatar -- the administrative path, not the
public signup flow.

revoke-session empties a user's session slot. Their current refresh token
stops working immediately; the access token they hold lives out its (short)
lifetime.

Environment variables: see core/config.py (DATABASE_URL, ACCESS_TOKEN_SECRET,
REFRESH_TOKEN_SECRET, ...). A .env file in the working directory is honoured.
"""

import argparse
import getpass
import sys

from auth.models import User
from auth.passwords import MAX_PASSWORD_BYTES, hash_password, password_too_long
from auth.store import CredentialStore, DuplicateUserError
from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _create_user(args: argparse.Namespace) -> int:
    password = getpass.getpass("Password: ")
    if not password.strip():
        print("  [!] Password must not be empty.")
        return 1
    if password_too_long(password):
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes long.")
        return 1
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.")
        return 1

    store = CredentialStore(get_settings().database_url)
    try:
        user = store.create(
            User(
                fullname=args.fullname,
                username=args.username,
                email=args.email,
                hashed_password=hash_password(password),
            )
        )
    except DuplicateUserError:
        print(f"  [!] A user with username '{args.username}' or email '{args.email}' already exists.")
        return 1
    finally:
        store.close()
    print(f"  Created user {user.username} ({user.id})")
    return 0


def _revoke_session(args: argparse.Namespace) -> int:
    store = CredentialStore(get_settings().database_url)
    try:
        user = store.find_by_identifier(args.identifier)
        if user is None:
            print(f"  [!] No user matches '{args.identifier}'.")
            return 1
        store.clear_refresh_token(user.id)
    finally:
        store.close()
    print(f"  Session revoked for {user.username}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="User Auth -- operator commands")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Create an account (prompts for the password)")
    create.add_argument("--fullname", required=True)
    create.add_argument("--email", required=True)
    create.add_argument("--username", required=True)
    create.set_defaults(func=_create_user)

    revoke = sub.add_parser("revoke-session", help="Invalidate a user's refresh token")
    revoke.add_argument("identifier", help="Username or email")
    revoke.set_defaults(func=_revoke_session)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
