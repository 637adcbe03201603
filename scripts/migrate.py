"""Script to run database migrations."""

import argparse
import sys

from alembic import command
from alembic.config import Config


def _config() -> Config:
    # env.py reads the database URL from settings
    return Config("alembic.ini")


def upgrade(revision: str) -> None:
    """Upgrade the booking schema to a revision."""
    try:
        print(f"Upgrading booking schema to {revision}...")
        command.upgrade(_config(), revision)
        print("✓ Migrations completed successfully!")
    except Exception as e:
        print(f"✗ Migration failed: {e}", file=sys.stderr)
        sys.exit(1)


def downgrade(revision: str) -> None:
    """Step the booking schema back to a revision."""
    try:
        print(f"Downgrading booking schema to {revision}...")
        command.downgrade(_config(), revision)
        print("✓ Downgrade completed successfully!")
    except Exception as e:
        print(f"✗ Downgrade failed: {e}", file=sys.stderr)
        sys.exit(1)


def create_migration(message: str) -> None:
    """Autogenerate a migration from the table metadata."""
    try:
        print(f"Creating migration: {message}")
        command.revision(_config(), message=message, autogenerate=True)
        print("✓ Migration created successfully!")
    except Exception as e:
        print(f"✗ Migration creation failed: {e}", file=sys.stderr)
        sys.exit(1)


def main() -> None:
    parser = argparse.ArgumentParser(description="Manage the booking database schema")
    sub = parser.add_subparsers(dest="command")

    up = sub.add_parser("upgrade", help="apply migrations (default: head)")
    up.add_argument("revision", nargs="?", default="head")

    down = sub.add_parser("downgrade", help="revert migrations")
    down.add_argument("revision", nargs="?", default="-1")

    create = sub.add_parser("create", help="autogenerate a new migration")
    create.add_argument("message", nargs="+")

    sub.add_parser("current", help="show the applied revision")

    args = parser.parse_args()
    if args.command == "downgrade":
        downgrade(args.revision)
    elif args.command == "create":
        create_migration(" ".join(args.message))
    elif args.command == "current":
        command.current(_config(), verbose=True)
    else:
        upgrade(getattr(args, "revision", "head"))


if __name__ == "__main__":
    main()
