#!/usr/bin/env python3

import sys
import argparse
from datetime import date
from pathlib import Path
from categorization import suggest_rule
from cli.categories import resolve_category
from errors import LedgerError
from ingestion import ColumnMapping
from models.transaction import SkippedDuplicate
from logger import get_logger

logger = get_logger()


def _log_transaction(transaction):
    category = transaction.category.name if transaction.category else "Uncategorized"
    logger.info(
        f"{transaction.date}  {transaction.amount:>12}  {category:<20}  "
        f"{transaction.description}"
    )
    logger.info(f"  ID: {transaction.id}")


def _find_or_exit(services, transaction_id):
    transaction = services.transactions.find(transaction_id)
    if not transaction:
        logger.error(f"Transaction with ID '{transaction_id}' not found.")
        sys.exit(1)
    return transaction


def _category_or_exit(services, value):
    category = resolve_category(services, value)
    if not category:
        logger.error(f"Category '{value}' not found.")
        logger.info("Use 'python -m cli categories list' to see available categories.")
        sys.exit(1)
    return category


def cmd_import(args, services):
    """Import transactions from a bank CSV export.

    Args:
        args: Parsed command-line arguments with csv_file and mapping options
        services: Services container with the ingestion pipeline
    """
    csv_path = Path(args.csv_file)
    if not csv_path.exists():
        logger.error(f"File not found: {args.csv_file}")
        sys.exit(1)

    date_format = args.date_format or services.config.date_format

    mapping = None
    if args.date_column or args.description_column or args.amount_column:
        if not (args.date_column and args.description_column and args.amount_column):
            logger.error(
                "--date-column, --description-column and --amount-column "
                "must be given together."
            )
            sys.exit(1)
        mapping = ColumnMapping(
            date_column=args.date_column,
            description_column=args.description_column,
            amount_column=args.amount_column,
            details_column=args.details_column,
            date_format=date_format,
        )

    logger.info(f"CSV file: {args.csv_file}")
    logger.info(f"Date format: {date_format}")
    logger.info("-" * 80)

    try:
        with open(csv_path, "r", newline="", encoding="utf-8-sig") as f:
            result = services.ingestion.import_csv(
                f, mapping=mapping, source_file=csv_path.name, date_format=date_format
            )
    except LedgerError as e:
        logger.error(f"Error during import: {e}")
        sys.exit(1)

    if result.total == 0:
        logger.info("No transactions to import.")
        return

    logger.info(f"✓ Imported {len(result.created)} transaction(s)")
    if result.skipped_count:
        logger.info(f"  ({result.skipped_count} duplicate transaction(s) skipped)")
    if result.failed_count:
        logger.warning(f"  ({result.failed_count} transaction(s) failed, see log)")
    if result.auto_categorized_descriptions:
        logger.info(
            f"  {len(result.auto_categorized_descriptions)} auto-categorized by rules:"
        )
        for description in result.auto_categorized_descriptions:
            logger.info(f"    - {description}")


def cmd_list(args, services):
    """List transactions, optionally filtered by date range and category."""
    if args.start or args.end or args.category:
        category_ids = None
        if args.category:
            category_ids = [_category_or_exit(services, args.category).id]
        transactions = services.transactions.find_by_date_range(
            args.start or date.min,
            args.end or date.max,
            category_ids=category_ids,
        )
    else:
        transactions = services.transactions.find_all()

    if not transactions:
        logger.info("No transactions found.")
        return

    for transaction in transactions:
        _log_transaction(transaction)

    logger.info(f"\nTotal transactions: {len(transactions)}")


def cmd_show(args, services):
    """Show a single transaction."""
    transaction = _find_or_exit(services, args.transaction_id)

    logger.info(f"ID: {transaction.id}")
    logger.info(f"Date: {transaction.date}")
    logger.info(f"Description: {transaction.description}")
    logger.info(f"Amount: {transaction.amount}")
    if transaction.details:
        logger.info(f"Details: {transaction.details}")
    logger.info(
        f"Category: {transaction.category.name if transaction.category else 'Uncategorized'}"
    )
    logger.info(f"Unexpected: {'yes' if transaction.is_unexpected else 'no'}")
    if transaction.source_file:
        logger.info(f"Source file: {transaction.source_file}")
    logger.info(f"Created: {transaction.created_at}")
    logger.info(f"Updated: {transaction.updated_at}")


def cmd_add(args, services):
    """Add a transaction by hand through the ingestion pipeline."""
    draft = {
        "date": args.date,
        "description": args.description,
        "amount": args.amount,
        "details": args.details,
        "is_unexpected": args.unexpected,
    }
    if args.category:
        draft["category_id"] = _category_or_exit(services, args.category).id

    try:
        result = services.ingestion.ingest_one(draft)
    except LedgerError as e:
        logger.error(f"Error adding transaction: {e}")
        sys.exit(1)

    if isinstance(result, SkippedDuplicate):
        logger.info(
            f"⊘ Skipped '{result.description}': a transaction with the same date "
            "and amount already exists"
        )
        return

    logger.info("✓ Transaction added")
    _log_transaction(result)


def _report_failures(result):
    for transaction_id, message in result.failed.items():
        logger.error(f"  ✗ {transaction_id}: {message}")
    if result.failed:
        sys.exit(1)


def cmd_set_category(args, services):
    """Set the category for one or more transactions.

    When a single transaction is categorized, a rule for similar
    descriptions is suggested (and saved with --create-rule).

    Args:
        args: Parsed command-line arguments with transaction_ids and category
        services: Services container with transactions, categories and rules services
    """
    category = _category_or_exit(services, args.category)

    try:
        result = services.ingestion.update_many(
            args.transaction_ids, {"category_id": category.id}
        )
    except LedgerError as e:
        logger.error(f"Error updating transactions: {e}")
        sys.exit(1)

    logger.info(f"✓ {len(result.updated)} transaction(s) categorized as {category.name}")
    for transaction in result.updated:
        logger.info(f"  {transaction.description[:50]}")

    if len(result.updated) == 1:
        _offer_rule(services, result.updated[0], category, args.create_rule)

    _report_failures(result)


def _offer_rule(services, transaction, category, create):
    draft = suggest_rule(transaction, category.id)
    if draft is None:
        return

    if create:
        try:
            rule = services.rules.create(draft)
        except LedgerError as e:
            logger.error(f"Error creating rule: {e}")
            sys.exit(1)
        logger.info(f"✓ Created rule {rule.id}: '{rule.pattern}' -> {category.name}")
    else:
        logger.info(
            f"\nSuggested rule: '{draft.pattern}' -> {category.name} "
            "(re-run with --create-rule to save it)"
        )


def cmd_clear_category(args, services):
    """Clear the category of one or more transactions.

    A matching rule may re-assign a category to each of them.
    """
    try:
        result = services.ingestion.update_many(
            args.transaction_ids, {"category_id": None}
        )
    except LedgerError as e:
        logger.error(f"Error updating transactions: {e}")
        sys.exit(1)

    for transaction in result.updated:
        if transaction.category:
            logger.info(
                f"✓ {transaction.id}: category re-assigned by rule: "
                f"{transaction.category.name}"
            )
        else:
            logger.info(f"✓ {transaction.id}: category cleared")

    _report_failures(result)


def cmd_edit(args, services):
    """Edit the fields of a transaction."""
    patch = {}
    if args.date:
        patch["date"] = args.date
    if args.description:
        patch["description"] = args.description
    if args.amount:
        patch["amount"] = args.amount
    if args.clear_details:
        patch["details"] = None
    elif args.details is not None:
        patch["details"] = args.details
    if args.unexpected is not None:
        patch["is_unexpected"] = args.unexpected

    if not patch:
        logger.error("Nothing to change.")
        sys.exit(1)

    transaction = _find_or_exit(services, args.transaction_id)
    try:
        transaction = services.ingestion.update(transaction.id, patch)
    except LedgerError as e:
        logger.error(f"Error updating transaction: {e}")
        sys.exit(1)

    logger.info("✓ Transaction updated")
    _log_transaction(transaction)


def cmd_delete(args, services):
    """Delete a transaction by ID."""
    transaction = _find_or_exit(services, args.transaction_id)

    logger.info("\nTransaction to delete:")
    _log_transaction(transaction)

    if not args.yes:
        confirm = (
            input("\nAre you sure you want to delete this transaction? (yes/no): ")
            .strip()
            .lower()
        )
        if confirm != "yes":
            logger.info("Deletion cancelled.")
            return

    try:
        services.transactions.delete(transaction.id)
    except LedgerError as e:
        logger.error(f"Error deleting transaction: {e}")
        sys.exit(1)

    logger.info("✓ Transaction deleted successfully.")


def cmd_uncategorized(args, services):
    """List transactions that still need a category."""
    count = services.transactions.count_uncategorized()
    if count == 0:
        logger.info("All transactions are categorized.")
        return

    for transaction in services.transactions.find_uncategorized()[: args.limit]:
        _log_transaction(transaction)

    logger.info(f"\nUncategorized transactions: {count}")


def cmd_suggest(args, services):
    """Ask for category suggestions for a single transaction."""
    transaction = _find_or_exit(services, args.transaction_id)

    suggestions = services.suggestions.suggest_category(
        transaction.description, transaction.amount, transaction.details
    )

    if not suggestions:
        logger.info("No suggestions available.")
        return

    logger.info(f"Suggestions for '{transaction.description}':")
    for suggestion in suggestions:
        logger.info(f"  {suggestion.category} ({suggestion.confidence:.0%})")
        if suggestion.reasoning:
            logger.info(f"    {suggestion.reasoning}")


def setup_parser(subparsers):
    """Setup transactions subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "transactions",
        help="Import and manage transactions",
        description="Import transactions from CSV files and manage them",
    )

    transactions_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available transaction commands",
        dest="subcommand",
        required=True,
    )

    # transactions import
    import_parser = transactions_subparsers.add_parser(
        "import",
        help="Import transactions from a CSV file",
        epilog="""
Examples:
  python -m cli transactions import statement.csv
  python -m cli transactions import statement.csv --date-format US
  python -m cli transactions import export.csv --date-column "Posted" \\
      --description-column "Payee" --amount-column "Value"
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    import_parser.add_argument(
        "csv_file",
        help="Path to the CSV file to import",
    )
    import_parser.add_argument(
        "--date-format",
        choices=["UK", "US"],
        help="Day/month order of ambiguous dates (default from config)",
    )
    import_parser.add_argument("--date-column", help="Header of the date column")
    import_parser.add_argument(
        "--description-column", help="Header of the description column"
    )
    import_parser.add_argument("--amount-column", help="Header of the amount column")
    import_parser.add_argument("--details-column", help="Header of the details column")
    import_parser.set_defaults(func=cmd_import)

    # transactions list
    list_parser = transactions_subparsers.add_parser(
        "list", help="List transactions, newest first"
    )
    list_parser.add_argument(
        "--from",
        dest="start",
        type=date.fromisoformat,
        help="First day to include (YYYY-MM-DD)",
    )
    list_parser.add_argument(
        "--to",
        dest="end",
        type=date.fromisoformat,
        help="Last day to include (YYYY-MM-DD)",
    )
    list_parser.add_argument("--category", help="Category name or ID")
    list_parser.set_defaults(func=cmd_list)

    # transactions show
    show_parser = transactions_subparsers.add_parser(
        "show", help="Show a single transaction"
    )
    show_parser.add_argument("transaction_id", help="Transaction ID")
    show_parser.set_defaults(func=cmd_show)

    # transactions add
    add_parser = transactions_subparsers.add_parser(
        "add",
        help="Add a transaction manually",
        description="Add a transaction; duplicates are skipped and rules applied",
    )
    add_parser.add_argument(
        "--date", required=True, type=date.fromisoformat, help="Date (YYYY-MM-DD)"
    )
    add_parser.add_argument("--description", required=True, help="Description")
    add_parser.add_argument(
        "--amount", required=True, help="Signed amount (negative for expenses)"
    )
    add_parser.add_argument("--details", help="Optional free-text note")
    add_parser.add_argument("--category", help="Category name or ID")
    add_parser.add_argument(
        "--unexpected", action="store_true", help="Flag as an unexpected expense"
    )
    add_parser.set_defaults(func=cmd_add)

    # transactions set-category
    set_category_parser = transactions_subparsers.add_parser(
        "set-category",
        help="Set category for transactions",
        description="Assign a user-defined category to one or more transactions",
    )
    set_category_parser.add_argument(
        "transaction_ids", nargs="+", metavar="transaction_id", help="Transaction ID(s)"
    )
    set_category_parser.add_argument("category", help="Category name or ID")
    set_category_parser.add_argument(
        "--create-rule",
        action="store_true",
        help="Also save the suggested rule (single transaction only)",
    )
    set_category_parser.set_defaults(func=cmd_set_category)

    # transactions clear-category
    clear_category_parser = transactions_subparsers.add_parser(
        "clear-category",
        help="Clear the category of transactions",
        description="Clear transaction categories; a matching rule re-assigns one",
    )
    clear_category_parser.add_argument(
        "transaction_ids", nargs="+", metavar="transaction_id", help="Transaction ID(s)"
    )
    clear_category_parser.set_defaults(func=cmd_clear_category)

    # transactions edit
    edit_parser = transactions_subparsers.add_parser(
        "edit",
        help="Edit a transaction",
        description="Change the date, description, amount, details or "
        "unexpected flag of a transaction",
    )
    edit_parser.add_argument("transaction_id", help="Transaction ID")
    edit_parser.add_argument("--date", type=date.fromisoformat, help="Date (YYYY-MM-DD)")
    edit_parser.add_argument("--description", help="Description")
    edit_parser.add_argument("--amount", help="Signed amount")
    details_group = edit_parser.add_mutually_exclusive_group()
    details_group.add_argument("--details", help="Free-text note")
    details_group.add_argument(
        "--clear-details", action="store_true", help="Remove the note"
    )
    unexpected_group = edit_parser.add_mutually_exclusive_group()
    unexpected_group.add_argument(
        "--unexpected",
        dest="unexpected",
        action="store_true",
        default=None,
        help="Flag as an unexpected expense",
    )
    unexpected_group.add_argument(
        "--expected",
        dest="unexpected",
        action="store_false",
        help="Remove the unexpected flag",
    )
    edit_parser.set_defaults(func=cmd_edit)

    # transactions delete
    delete_parser = transactions_subparsers.add_parser(
        "delete", help="Delete a transaction"
    )
    delete_parser.add_argument("transaction_id", help="Transaction ID")
    delete_parser.add_argument(
        "--yes", action="store_true", help="Skip the confirmation prompt"
    )
    delete_parser.set_defaults(func=cmd_delete)

    # transactions uncategorized
    uncategorized_parser = transactions_subparsers.add_parser(
        "uncategorized", help="List transactions without a category"
    )
    uncategorized_parser.add_argument(
        "--limit", type=int, default=50, help="Maximum rows to show (default: 50)"
    )
    uncategorized_parser.set_defaults(func=cmd_uncategorized)

    # transactions suggest
    suggest_parser = transactions_subparsers.add_parser(
        "suggest",
        help="Suggest categories for a transaction",
        description="Ask the configured LLM for category suggestions, "
        "falling back to the stored rules",
    )
    suggest_parser.add_argument("transaction_id", help="Transaction ID")
    suggest_parser.set_defaults(func=cmd_suggest)
