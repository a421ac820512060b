#!/usr/bin/env python3
"""
ProxyPanel -- operator command line.

Usage:
  python main.py serve [--host 127.0.0.1] [--port 8000] [--reload]
  python main.py create-superadmin admin
  python main.py create-superadmin admin --password-stdin < secret.txt
  python main.py expiring
  python main.py expiring --days 14 --json

Environment variables (or .env):
  DATABASE_URL   SQLAlchemy URL shared by the API and this CLI.
  SECRET_KEY     JWT signing key, 32+ characters. Required unless DEBUG=true.
"""

import argparse
import getpass
import json
import logging
import sys
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings
from core.errors import AppError, ConflictError
from inventory.models import ProxyRecord
from inventory.store import InventoryStore
from services.common import parse_body
from services.schemas import UserCreate

logger = logging.getLogger("proxypanel.auth")


def create_superadmin(store: UserStore, username: str, password: str) -> User:
    """Seed a SuperAdmin account.

    This is the one way to create an identity without an authenticated
    SuperAdmin, so there is no actor to audit. The creation is logged instead.
    Raises core.errors.ValidationError on a bad username/password and
    ConflictError if the username is taken.
    """
    parsed = parse_body(UserCreate, {"username": username, "password": password, "role": Role.SUPER_ADMIN.value})
    user = User(username=parsed.username, role=Role.SUPER_ADMIN, hashed_password=hash_password(parsed.password))
    try:
        user_id = store.create_user(user)
    except IntegrityError as exc:
        raise ConflictError("Username already exists.") from exc
    logger.warning("SuperAdmin %r (user_id=%d) created from the command line", parsed.username, user_id)
    return store.get_by_id(user_id)


def expiring_report(inventory: InventoryStore, days: int, now: Optional[datetime] = None) -> list[ProxyRecord]:
    """Active proxies expiring within `days` days (already-expired ones included)."""
    return inventory.list_expiring(days, now=now)


def _format_expiring(proxies: list[ProxyRecord], days: int) -> str:
    if not proxies:
        return f"No active proxies expire within {days} day(s)."
    lines = [f"{len(proxies)} active proxy(ies) expire within {days} day(s):", ""]
    lines.append(f"  {'ID':>5}  {'ENDPOINT':<28} {'PROTO':<7} {'DEPT':>5}  EXPIRES")
    for p in proxies:
        endpoint = f"{p.address}:{p.port}"
        lines.append(f"  {p.id:>5}  {endpoint:<28} {p.protocol.value:<7} {p.department_id:>5}  {p.expires_at}")
    return "\n".join(lines)


def _read_password(args: argparse.Namespace) -> str:
    if args.password_stdin:
        return sys.stdin.readline().rstrip("\n")
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    if first != second:
        raise SystemExit("  [!] Passwords do not match.")
    return first


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _cmd_create_superadmin(args: argparse.Namespace) -> int:
    store = UserStore()
    try:
        user = create_superadmin(store, args.username, _read_password(args))
    except AppError as exc:
        print(f"  [!] {exc}")
        return 1
    finally:
        store.close()
    print(f"  SuperAdmin '{user.username}' created (id {user.id}).")
    return 0


def _cmd_expiring(args: argparse.Namespace) -> int:
    days = args.days if args.days is not None else get_settings().expiry_warning_days
    inventory = InventoryStore()
    try:
        proxies = expiring_report(inventory, days)
    finally:
        inventory.close()

    if args.json:
        rows = [
            {
                "id": p.id,
                "address": p.address,
                "port": p.port,
                "protocol": p.protocol.value,
                "department_id": p.department_id,
                "expires_at": p.expires_at,
            }
            for p in proxies
        ]
        print(json.dumps(rows, indent=2))
    else:
        print(_format_expiring(proxies, days))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proxypanel",
        description="ProxyPanel operator commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development only)")
    serve.set_defaults(func=_cmd_serve)

    seed = sub.add_parser("create-superadmin", help="Create a SuperAdmin account")
    seed.add_argument("username")
    seed.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from the first line of stdin instead of prompting",
    )
    seed.set_defaults(func=_cmd_create_superadmin)

    expiring = sub.add_parser("expiring", help="List active proxies that expire soon")
    expiring.add_argument(
        "--days",
        type=int,
        default=None,
        metavar="N",
        help="Look-ahead window in days (default: EXPIRY_WARNING_DAYS, 7)",
    )
    expiring.add_argument("--json", action="store_true", help="Output JSON instead of a table")
    expiring.set_defaults(func=_cmd_expiring)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
