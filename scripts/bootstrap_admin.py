#!/usr/bin/env python3
"""Create or update a coupon admin account from the command line.

    DEV_BOOTSTRAP_ALLOW=1 python scripts/bootstrap_admin.py --email ops@example.com --name Ops

The password is prompted for when ``--password`` is omitted and the admin does
not exist yet; an existing admin keeps its password unless one is given.
"""
from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from app.core.config import DEV_BOOTSTRAP_ALLOW  # noqa: E402
from app.core.database import SessionLocal, engine  # noqa: E402
from app.core.logging_setup import configure_logging  # noqa: E402
from app.models.admin_user import ADMIN_ROLE  # noqa: E402
from app.services.admin_bootstrap import (  # noqa: E402
    ensure_admin_users_table,
    find_admin_by_email,
    upsert_admin_user,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create or update a coupon admin account.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--password", help="prompted for when creating a new admin without it")
    parser.add_argument("--role", default=ADMIN_ROLE)
    parser.add_argument("--force", action="store_true", help="run without DEV_BOOTSTRAP_ALLOW=1")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    if not (DEV_BOOTSTRAP_ALLOW or args.force):
        print("Refusing to run: set DEV_BOOTSTRAP_ALLOW=1 or pass --force.", file=sys.stderr)
        return 1

    try:
        ensure_admin_users_table(engine)
    except RuntimeError as exc:
        print(exc, file=sys.stderr)
        return 1

    with SessionLocal() as db:
        password = args.password
        if not password and find_admin_by_email(db, args.email) is None:
            password = getpass.getpass(f"Password for {args.email}: ")
        try:
            admin, created = upsert_admin_user(
                db,
                email=args.email,
                name=args.name,
                role=args.role,
                password=password,
            )
        except ValueError as exc:
            print(exc, file=sys.stderr)
            return 1

    print(f"Admin {'created' if created else 'updated'}: id={admin.id} email={admin.email} role={admin.role}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
