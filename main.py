#!/usr/bin/env python3
"""
Gatehouse -- authentication service: password and passwordless login,
registration and password restore.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py create-user ann@example.com --first-name Ann --last-name Lee
  python main.py purge-expired

Environment variables (see core/config.py for the full list):
  SECRET_KEY     Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL   SQLAlchemy URL for users, sessions and temporary keys.
  AUTH_STRATEGY  "password" (default) or "passwordless".
  SMTP_HOST      Enables real email delivery. Unset: emails are only logged.
"""

import argparse
import getpass
import html
import sys
from typing import Optional

from auth.keystore import TemporaryKeyStore
from auth.service import password_policy_from_settings
from auth.store import UserStore
from core.config import get_settings
from core.errors import AuthError
from core.models import ClientContext
from core.validation import require_email_format


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _create_user(args: argparse.Namespace) -> int:
    """Create a password account directly in the store, bypassing the registration flow."""
    settings = get_settings()
    try:
        require_email_format(args.email)
    except AuthError as e:
        print(f"  [!] {e.message}")
        return 1

    password = args.password or getpass.getpass("Password: ")
    if not args.password and password != getpass.getpass("Confirm password: "):
        print("  [!] Passwords do not match")
        return 1

    problem = password_policy_from_settings(settings).check(password)
    if problem:
        print(f"  [!] {problem}")
        return 1

    store = UserStore(settings.database_url, session_seconds=settings.session_expire_seconds)
    try:
        # Same escaping the registration flow applies to names.
        store.register(args.email, password, html.escape(args.first_name), html.escape(args.last_name), ClientContext())
    except ValueError as e:
        print(f"  [!] {e}")
        return 1
    finally:
        store.close()

    print(f"  User {args.email} created.")
    return 0


def _purge_expired(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = UserStore(settings.database_url)
    keys = TemporaryKeyStore(settings.database_url)
    try:
        sessions = store.purge_expired_sessions()
        codes = keys.purge_expired()
    finally:
        keys.close()
        store.close()
    print(f"  Purged {codes} expired key(s) and {sessions} expired session(s).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="gatehouse",
        description="Authentication service: login, registration and password restore.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  DEBUG=true python main.py serve --reload
  python main.py create-user ann@example.com --first-name Ann --last-name Lee
  python main.py purge-expired
        """,
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Create a password account")
    create.add_argument("email", help="Account email address")
    create.add_argument("--first-name", required=True)
    create.add_argument("--last-name", required=True)
    create.add_argument(
        "--password",
        default="",
        help="Password (prompted when omitted; avoid passing it on the command line)",
    )
    create.set_defaults(func=_create_user)

    purge = sub.add_parser("purge-expired", help="Delete expired codes, reset tokens and sessions")
    purge.set_defaults(func=_purge_expired)

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
