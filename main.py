#!/usr/bin/env python3
"""
Stockkeeper operator CLI -- bootstrap accounts and catalog data.

Usage:
  python main.py create-admin --email admin@example.com --name "Main Admin"
  python main.py create-admin --email admin@example.com --reset
  python main.py add-type "Fresh coconut" "Dried coconut" "Coconut water"

The password is prompted for when --password is omitted. Every account this
tool creates or resets must change its password at first login.

Environment variables:
  DATABASE_URL  Datastore connection string (default: sqlite:///stockkeeper.db).
  SECRET_KEY    Required by the settings loader unless --database-url is given.
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.models import Account, Role
from auth.store import AccountStore
from auth.tokens import MAX_PASSWORD_BYTES, CredentialVault, password_too_long
from core.config import get_settings
from inventory.store import InventoryStore


def _resolve_db_url(explicit: Optional[str]) -> str:
    return explicit or get_settings().database_url


def _read_password(given: Optional[str]) -> str:
    if given:
        return given
    first = getpass.getpass("  Temporary password: ")
    second = getpass.getpass("  Repeat password: ")
    if first != second:
        raise SystemExit("  [!] Passwords do not match.")
    return first


def create_admin(store: AccountStore, vault: CredentialVault, email: str, name: str, password: str, reset: bool) -> str:
    """Create an ADMIN account, or reset an existing account's password.

    Returns "created", "reset", or "exists". Both writes leave the account
    with must_change_password=True.
    """
    existing = store.get_by_email(email)
    if existing is not None:
        if not reset:
            return "exists"
        store.set_password(existing.id, vault.hash(password), must_change_password=True)
        return "reset"
    store.create_account(
        Account(
            email=email,
            name=name,
            role=Role.ADMIN,
            password_hash=vault.hash(password),
            must_change_password=True,
        )
    )
    return "created"


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="stockkeeper",
        description="Bootstrap accounts and catalog data for Stockkeeper.",
    )
    parser.add_argument("--database-url", metavar="URL", help="Override DATABASE_URL")
    sub = parser.add_subparsers(dest="command", required=True)

    admin = sub.add_parser("create-admin", help="Create an administrator (or reset one with --reset)")
    admin.add_argument("--email", required=True)
    admin.add_argument("--name", default="Administrator")
    admin.add_argument("--password", help="Temporary password (prompted when omitted)")
    admin.add_argument(
        "--reset",
        action="store_true",
        help="If the account exists, replace its password and force a change at next login",
    )

    types = sub.add_parser("add-type", help="Add product types (existing names are left as-is)")
    types.add_argument("names", nargs="+", metavar="NAME")

    args = parser.parse_args(argv)
    db_url = _resolve_db_url(args.database_url)

    if args.command == "create-admin":
        password = _read_password(args.password)
        if not password:
            print("  [!] Password must not be empty.")
            return 1
        if password_too_long(password):
            print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes.")
            return 1
        store = AccountStore(db_url)
        try:
            status = create_admin(store, CredentialVault(), args.email, args.name, password, args.reset)
        finally:
            store.close()
        if status == "exists":
            print(f"  Account {args.email} already exists. Use --reset to replace its password.")
        else:
            print(f"  Admin {args.email} {status}. Password change required at first login.")
        return 0

    inventory = InventoryStore(db_url)
    try:
        for name in args.names:
            type_id = inventory.create_type(name)
            print(f"  {name} (id {type_id})")
    finally:
        inventory.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
