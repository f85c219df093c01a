#!/usr/bin/env python3
"""
Operations utilities - CLI tools for inspecting and resetting the content store.
"""

import argparse
import sys
from pathlib import Path

# Add the repository root to sys.path when run from a checkout
sys.path.insert(0, str(Path(__file__).parent.parent))

from contentstore.core.config import get_db_path, validate_config
from contentstore.core.contract import base_content_uri
from contentstore.core.errors import ContentStoreError
from contentstore.core.provider import DataProvider
from contentstore.util.logging import logger


def init_command(provider: DataProvider, args) -> int:
    health = provider.health()
    print(f"✅ Database ready at {provider.storage.db_path} (version {health.version})")
    return 0


def health_command(provider: DataProvider, args) -> int:
    health = provider.health()
    print(health.model_dump_json(indent=2))
    return 0 if health.db_health else 1


def type_command(provider: DataProvider, args) -> int:
    print(provider.get_type(args.address))
    return 0


def routes_command(provider: DataProvider, args) -> int:
    for pattern, route in provider.router.routes.items():
        print(f"content://{provider.authority}/{'/'.join(pattern)}\t{route.content_type}")
    return 0


def query_command(provider: DataProvider, args) -> int:
    projection = args.columns.split(",") if args.columns else None
    with provider.query(args.address, projection, args.where, args.arg, args.order, args.limit) as cursor:
        columns = cursor.columns
        print("\t".join(columns))
        rows = 0
        for row in cursor:
            print("\t".join("" if row[c] is None else str(row[c]) for c in columns))
            rows += 1
    print(f"({rows} row{'s' if rows != 1 else ''})")
    return 0


def reset_command(provider: DataProvider, args) -> int:
    if not args.force:
        print(f"⚠️  WARNING: This deletes every image and history record in {provider.storage.db_path}")
        response = input("Are you sure you want to continue? (yes/no): ").strip().lower()
        if response != "yes":
            print("Reset cancelled.")
            return 0

    provider.delete(base_content_uri(provider.authority))
    print("✅ Store reset")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Content store operations")
    parser.add_argument("--db-path", default=None, help=f"Database path (default: {get_db_path()})")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the database and tables").set_defaults(func=init_command)
    subparsers.add_parser("health", help="Show database health").set_defaults(func=health_command)

    type_parser = subparsers.add_parser("type", help="Show the content type of an address")
    type_parser.add_argument("address")
    type_parser.set_defaults(func=type_command)

    subparsers.add_parser("routes", help="List the addresses this store answers").set_defaults(func=routes_command)

    query_parser = subparsers.add_parser("query", help="Print rows for an address")
    query_parser.add_argument("address")
    query_parser.add_argument("--columns", help="Comma-separated projection")
    query_parser.add_argument("--where", help="Selection with ? placeholders")
    query_parser.add_argument("--arg", action="append", default=None, help="Selection argument (repeatable)")
    query_parser.add_argument("--order", help="Sort order, e.g. 'image_id DESC'")
    query_parser.add_argument("--limit", type=int, default=None)
    query_parser.set_defaults(func=query_command)

    reset_parser = subparsers.add_parser("reset", help="Delete all data and recreate the tables")
    reset_parser.add_argument("--force", action="store_true", help="Skip the confirmation prompt")
    reset_parser.set_defaults(func=reset_command)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    issues = validate_config()
    if issues:
        for issue in issues:
            print(f"❌ ERROR: {issue}")
        return 1

    provider = DataProvider(db_path=args.db_path)
    try:
        return args.func(provider, args)
    except ContentStoreError as e:
        print(f"❌ {e}")
        return 1
    except Exception as e:
        print(f"❌ Failed with unexpected error: {e}")
        logger.error(f"CLI {args.command} failed: {e}")
        return 1
    finally:
        provider.shutdown()


if __name__ == "__main__":
    sys.exit(main())
