"""Create an external API key from the command line.

Loads `.env`, inserts the key (plus its default rate-limit row) and prints
the raw key once. Only the key's hash is stored.
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import suppress
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()

from pydantic import ValidationError  # noqa: E402

from taskbill.db import database, schemas  # noqa: E402
from taskbill.db.models import now_utc  # noqa: E402
from taskbill.db.repositories import api_keys as api_key_repo  # noqa: E402
from taskbill.db.repositories import users as user_repo  # noqa: E402


logger = logging.getLogger("taskbill.scripts.create_api_key")

DEFAULT_PERMISSIONS = "read:projects,read:tasks"


# Access SessionLocal dynamically so test fixtures that rebind the
# sessionmaker are respected.
SessionLocal = lambda: database.SessionLocal()  # noqa: E731


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an API key for the /api/v1 endpoints")
    parser.add_argument("--name", required=True, help="Display name for the key")
    parser.add_argument(
        "--permissions",
        default=DEFAULT_PERMISSIONS,
        help=f"Comma-separated permissions (default: {DEFAULT_PERMISSIONS})",
    )
    parser.add_argument(
        "--rate-limit",
        type=int,
        default=60,
        help="Requests per minute (default: 60)",
    )
    parser.add_argument(
        "--expires-in-days",
        type=int,
        default=None,
        help="Expire the key after this many days (default: never)",
    )
    parser.add_argument(
        "--owner-email",
        default=None,
        help="Record this existing user as the key's creator",
    )
    return parser.parse_args(argv)


def create_key(
    name: str,
    permissions: list[str],
    rate_limit: int,
    expires_in_days: int | None = None,
    owner_email: str | None = None,
) -> int:
    try:
        payload = schemas.ApiKeyCreateRequest(
            name=name,
            permissions=permissions,
            rate_limit=rate_limit,
            expires_at=now_utc() + timedelta(days=expires_in_days) if expires_in_days else None,
        )
    except ValidationError as e:
        print(f"Invalid key settings: {e}", file=sys.stderr)
        return 2

    database.ensure_sqlite_schema()
    session = SessionLocal()
    try:
        created_by = None
        if owner_email:
            owner = user_repo.get_user_by_email(session, email=owner_email.strip().lower())
            if owner is None:
                print(f"No user with email {owner_email}", file=sys.stderr)
                return 1
            created_by = owner.id

        api_key, raw_key = api_key_repo.create_api_key(session, payload=payload, created_by=created_by)
        logger.info("api_key_created: id=%s prefix=%s", api_key.id, api_key.key_prefix)
        print(f"Created API key '{api_key.name}' ({api_key.id})")
        print(f"Permissions: {', '.join(api_key.permissions)}")
        print(f"Key (shown once): {raw_key}")
        return 0
    finally:
        with suppress(Exception):
            session.close()


def main(argv: list[str] | None = None) -> int:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    permissions = [p for p in args.permissions.split(",") if p.strip()]
    return create_key(
        name=args.name,
        permissions=permissions,
        rate_limit=args.rate_limit,
        expires_in_days=args.expires_in_days,
        owner_email=args.owner_email,
    )


if __name__ == "__main__":  # pragma: no cover - manual execution path
    sys.exit(main())
