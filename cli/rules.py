#!/usr/bin/env python3

import sys
from categorization import suggest_rule
from cli.categories import resolve_category
from errors import LedgerError
from logger import get_logger

logger = get_logger()


def _log_rule(rule, category_name):
    kind = "regex" if rule.is_regex else "text"
    state = "" if rule.is_enabled else "  [disabled]"
    logger.info(
        f"[{rule.priority:>3}] {kind:<5} '{rule.pattern}' -> {category_name}{state}"
    )
    logger.info(f"  ID: {rule.id}")
    if rule.description:
        logger.info(f"  {rule.description}")


def _category_id_or_exit(services, value):
    category = resolve_category(services, value)
    if not category:
        logger.error(f"Category '{value}' not found.")
        sys.exit(1)
    return category.id


def cmd_list(args, services):
    """List rules in evaluation order."""
    rules = services.rules.find_all()

    if not rules:
        logger.info("No rules found.")
        return

    names = {category.id: category.name for category in services.categories.find_all()}

    logger.info("\nRules (highest priority first):")
    logger.info("=" * 80)
    for rule in rules:
        _log_rule(rule, names.get(rule.category_id, rule.category_id))

    logger.info(f"\nTotal rules: {len(rules)}")


def cmd_create(args, services):
    """Create a categorization rule."""
    data = {
        "pattern": args.pattern,
        "is_regex": args.regex,
        "description": args.description,
        "priority": args.priority,
        "is_enabled": not args.disabled,
        "category_id": _category_id_or_exit(services, args.category),
    }

    try:
        rule = services.rules.create(data)
    except LedgerError as e:
        logger.error(f"Error creating rule: {e}")
        sys.exit(1)

    logger.info(f"✓ Rule created with ID: {rule.id}")


def cmd_update(args, services):
    """Update selected fields of a rule."""
    patch = {}
    if args.pattern is not None:
        patch["pattern"] = args.pattern
    if args.regex is not None:
        patch["is_regex"] = args.regex
    if args.description is not None:
        patch["description"] = args.description or None
    if args.priority is not None:
        patch["priority"] = args.priority
    if args.enabled is not None:
        patch["is_enabled"] = args.enabled
    if args.category is not None:
        patch["category_id"] = _category_id_or_exit(services, args.category)

    if not patch:
        logger.error("Nothing to update.")
        sys.exit(1)

    try:
        rule = services.rules.update(args.rule_id, patch)
    except LedgerError as e:
        logger.error(f"Error updating rule: {e}")
        sys.exit(1)

    logger.info(f"✓ Rule {rule.id} updated")


def cmd_delete(args, services):
    """Delete a rule by ID."""
    try:
        rule = services.rules.delete(args.rule_id)
    except LedgerError as e:
        logger.error(f"Error deleting rule: {e}")
        sys.exit(1)

    logger.info(f"✓ Rule '{rule.pattern}' deleted successfully.")


def cmd_test(args, services):
    """Show which rule, if any, would categorize a description."""
    engine = services.rules.engine()
    for rule_id in engine.invalid_rule_ids:
        logger.warning(f"Rule {rule_id} has an invalid pattern and is ignored")

    rule = engine.match_rule(args.description)
    if rule is None:
        logger.info(f"No rule matches '{args.description}'")
        return

    category = services.categories.find(rule.category_id)
    _log_rule(rule, category.name if category else rule.category_id)


def cmd_suggest(args, services):
    """Suggest a rule from a categorized transaction."""
    transaction = services.transactions.find(args.transaction_id)
    if not transaction:
        logger.error(f"Transaction with ID '{args.transaction_id}' not found.")
        sys.exit(1)

    draft = suggest_rule(transaction, transaction.category_id)
    if draft is None:
        logger.info("Transaction has no category; nothing to suggest.")
        return

    category_name = transaction.category.name if transaction.category else draft.category_id
    logger.info(f"Suggested rule: '{draft.pattern}' -> {category_name}")

    if args.save:
        try:
            rule = services.rules.create(draft)
        except LedgerError as e:
            logger.error(f"Error creating rule: {e}")
            sys.exit(1)
        logger.info(f"✓ Rule created with ID: {rule.id}")


def setup_parser(subparsers):
    """Setup rules subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "rules",
        help="Manage categorization rules",
        description="Create, test, and manage pattern rules that categorize transactions",
    )

    rules_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available rule commands",
        dest="subcommand",
        required=True,
    )

    # rules list
    list_parser = rules_subparsers.add_parser("list", help="List all rules")
    list_parser.set_defaults(func=cmd_list)

    # rules create
    create_parser = rules_subparsers.add_parser("create", help="Create a rule")
    create_parser.add_argument("pattern", help="Text (or regex) to look for")
    create_parser.add_argument("category", help="Category name or ID to assign")
    create_parser.add_argument(
        "--regex", action="store_true", help="Treat the pattern as a regular expression"
    )
    create_parser.add_argument(
        "--priority", type=int, default=0, help="Higher runs first (default: 0)"
    )
    create_parser.add_argument("--description", help="Optional note")
    create_parser.add_argument(
        "--disabled", action="store_true", help="Create the rule disabled"
    )
    create_parser.set_defaults(func=cmd_create)

    # rules update
    update_parser = rules_subparsers.add_parser("update", help="Update a rule")
    update_parser.add_argument("rule_id", help="Rule ID")
    update_parser.add_argument("--pattern", help="New pattern")
    update_parser.add_argument("--category", help="New category name or ID")
    update_parser.add_argument("--priority", type=int, help="New priority")
    update_parser.add_argument(
        "--description", help="New note (empty string clears it)"
    )
    regex_group = update_parser.add_mutually_exclusive_group()
    regex_group.add_argument("--regex", dest="regex", action="store_true", default=None)
    regex_group.add_argument("--literal", dest="regex", action="store_false")
    enabled_group = update_parser.add_mutually_exclusive_group()
    enabled_group.add_argument(
        "--enable", dest="enabled", action="store_true", default=None
    )
    enabled_group.add_argument("--disable", dest="enabled", action="store_false")
    update_parser.set_defaults(func=cmd_update)

    # rules delete
    delete_parser = rules_subparsers.add_parser("delete", help="Delete a rule")
    delete_parser.add_argument("rule_id", help="Rule ID")
    delete_parser.set_defaults(func=cmd_delete)

    # rules test
    test_parser = rules_subparsers.add_parser(
        "test", help="Show which rule matches a description"
    )
    test_parser.add_argument("description", help="Transaction description to test")
    test_parser.set_defaults(func=cmd_test)

    # rules suggest
    suggest_parser = rules_subparsers.add_parser(
        "suggest",
        help="Suggest a rule from a categorized transaction",
    )
    suggest_parser.add_argument("transaction_id", help="Transaction ID")
    suggest_parser.add_argument(
        "--save", action="store_true", help="Create the suggested rule"
    )
    suggest_parser.set_defaults(func=cmd_suggest)
