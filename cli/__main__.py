#!/usr/bin/env python3
"""
Ledger CLI - command-line interface for the local personal-finance ledger.

Usage:
    python -m cli <command> <subcommand> [options]

Commands:
    transactions Import, categorize and manage transactions
    categories   Manage categories
    rules        Manage categorization rules
    migrate      Database migrations

Examples:
    python -m cli migrate apply
    python -m cli transactions import statement.csv --date-format UK
    python -m cli rules create "TESCO" Groceries --priority 10
    python -m cli rules test "TESCO STORES 2041"
    python -m cli transactions uncategorized
"""

import sys
import argparse
from cli import transactions, categories, rules, migrate
from config import load_config
from errors import LedgerError
from services.base import Services
from db.manager import DatabaseManager
from logger import get_logger, setup_logging


def main():
    """Main CLI entry point with subcommands."""
    parser = argparse.ArgumentParser(
        prog="cli",
        description="Ledger - Personal finance transaction management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
    )

    transactions.setup_parser(subparsers)
    categories.setup_parser(subparsers)
    rules.setup_parser(subparsers)
    migrate.setup_parser(subparsers)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    try:
        config = load_config()
        setup_logging(config)

        if args.command == "migrate":
            # Migrate commands need db_manager for raw database operations
            args.func(args, DatabaseManager(config))
        else:
            args.func(args, Services(config))
    except LedgerError as e:
        get_logger().error(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        get_logger().exception(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
