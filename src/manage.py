"""Marketplace database management CLI.

Creates and drops the database schema for the marketplace domain when it is
configured with a SQL provider. The default in-memory provider needs neither.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys


def setup_databases():
    """Create the marketplace database schema."""
    from marketplace.domain import marketplace
    from marketplace.utils.db import setup_db

    print("Initializing marketplace domain...")
    marketplace.init()
    print("Creating marketplace database schema...")
    providers = setup_db(marketplace)
    if providers:
        print(f"  schema ready on: {', '.join(providers)}")
    else:
        print("  no SQL provider configured, nothing to create.")
    print("Done.")


def drop_databases():
    """Drop the marketplace database schema."""
    from marketplace.domain import marketplace
    from marketplace.utils.db import drop_db

    print("Initializing marketplace domain...")
    marketplace.init()
    print("Dropping marketplace database schema...")
    providers = drop_db(marketplace)
    if providers:
        print(f"  schema dropped on: {', '.join(providers)}")
    else:
        print("  no SQL provider configured, nothing to drop.")
    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Marketplace database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
