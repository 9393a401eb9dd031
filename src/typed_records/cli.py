"""Command-line entry point: synthesize operations for a database and print them as JSON."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from typed_records.config import load_config, merge_overrides
from typed_records.dump import dumps, list_entities
from typed_records.errors import TypedRecordsError
from typed_records.generator import generate_from_path
from typed_records.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="typed-records",
        description="Synthesize typed record operations from an SQLite schema",
    )
    parser.add_argument(
        "database",
        type=Path,
        help="Path to the SQLite database file",
    )
    parser.add_argument(
        "entity",
        nargs="?",
        help="Name of the entity to dump (omit to dump all)",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="YAML configuration file",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        default=None,
        help="Generate no insert, update or delete operations",
    )
    parser.add_argument(
        "--date-storage",
        choices=["epoch", "text"],
        default=None,
        help="How date properties are stored",
    )
    parser.add_argument(
        "--uuid-storage",
        choices=["text", "blob"],
        default=None,
        help="How UUID properties are stored",
    )
    parser.add_argument(
        "-l", "--list",
        action="store_true",
        help="List entities instead of dumping JSON",
    )
    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="JSON indentation (default: 2)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        overrides = {"logging": {"level": args.log_level}} if args.log_level else {}
        config = load_config(args.config, **overrides)
        configure_logging(config=config.logging)

        generator_config = merge_overrides(
            config.generator,
            read_only=args.read_only,
            date_storage=args.date_storage,
            uuid_storage=args.uuid_storage,
        )
        result = generate_from_path(args.database, generator_config)
    except TypedRecordsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.list:
        print(list_entities(result))
        return 0

    if args.entity is None:
        print(dumps(result, indent=args.indent))
        return 0

    try:
        bundle = result[args.entity]
    except KeyError:
        print(f"Error: Unknown entity: {args.entity}", file=sys.stderr)
        print(list_entities(result), file=sys.stderr)
        return 1
    print(dumps(bundle, indent=args.indent))
    return 0


if __name__ == "__main__":
    sys.exit(main())
